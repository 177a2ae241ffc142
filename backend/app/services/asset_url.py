"""
Media host asset URLs.

Delivery URLs issued by the media host have the shape
``<root>/upload/[<transformation>/][v<version>/]<public id>.<ext>``. Derived
images (frame captures, composed thumbnails) are produced by putting a
transformation segment right after the ``/upload/`` marker.
"""

import re
import logging
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)

UPLOAD_MARKER = "/upload/"

# Frame capture offsets in seconds
FRAME_OFFSETS = (10, 30, 60)

_VERSION_SEGMENT = re.compile(r'^v\d+/')
_VERSION_ONLY = re.compile(r'^v\d+$')
# One transformation component, e.g. "so_10", "w_1280", "l_text:Arial_60_bold:Hi"
_TRANSFORMATION_COMPONENT = re.compile(r'^([a-z]{1,3})_\S+$')
# Transformation parameter keys accepted by the media host
TRANSFORMATION_PARAMS = frozenset({
    "a", "ac", "af", "ar", "b", "bo", "br", "c", "co", "cs", "d", "dl", "dn", "dpr", "du",
    "e", "eo", "f", "fl", "fn", "fps", "g", "h", "if", "ki", "l", "o", "p", "pg", "q", "r",
    "so", "sp", "t", "u", "vc", "vs", "w", "x", "y", "z",
})


class AssetUrlError(ValueError):
    """Raised when a URL does not have the media host delivery shape."""


class FrameDerivationError(AssetUrlError):
    """Raised when frame captures cannot be derived from a video URL."""


def _is_transformation_component(component: str) -> bool:
    match = _TRANSFORMATION_COMPONENT.match(component)
    return bool(match) and match.group(1) in TRANSFORMATION_PARAMS


def _is_transformation(segment: str) -> bool:
    """Folder names that merely look like ``xy_name`` are not transformations."""
    return all(_is_transformation_component(component) for component in segment.split(","))


@dataclass(frozen=True)
class AssetUrl:
    """A delivery URL split into root, transformation, asset path and extension."""

    root: str
    path: str
    extension: str
    transformation: Optional[str] = None

    @classmethod
    def parse(cls, url: str) -> "AssetUrl":
        if not url or UPLOAD_MARKER not in url:
            raise AssetUrlError(f"URL has no '{UPLOAD_MARKER}' marker: {url!r}")

        root, _, remainder = url.partition(UPLOAD_MARKER)
        segments = remainder.split("/")

        version_index = next(
            (index for index, segment in enumerate(segments[:-1]) if _VERSION_ONLY.match(segment)),
            None
        )
        if version_index is not None:
            # Everything ahead of the version segment is transformation
            transformations, segments = segments[:version_index], segments[version_index:]
        else:
            transformations = []
            while len(segments) > 1 and _is_transformation(segments[0]):
                transformations.append(segments.pop(0))

        path, dot, extension = "/".join(segments).rpartition(".")
        if not dot or not path or not extension or "/" in extension:
            raise AssetUrlError(f"URL has no file extension: {url!r}")

        return cls(
            root=root,
            path=path,
            extension=extension,
            transformation="/".join(transformations) or None,
        )

    def format(self, transformation: Optional[str] = None, extension: Optional[str] = None) -> str:
        """Rebuild the URL, replacing the transformation and/or extension when given."""
        segments = [self.root + UPLOAD_MARKER.rstrip("/")]
        transformation = transformation or self.transformation
        if transformation:
            segments.append(transformation)
        segments.append(f"{self.path}.{extension or self.extension}")
        return "/".join(segments)

    @property
    def public_id(self) -> str:
        """Asset identifier as used by the media host's management API."""
        return _VERSION_SEGMENT.sub("", self.path, count=1)


def public_id_from_url(url: str) -> str:
    return AssetUrl.parse(url).public_id


def derive_frame_urls(video_url: str) -> List[str]:
    """
    Build frame-capture image URLs for a stored ``.mp4`` video.

    Returns one ``so_<offset>`` URL per entry in FRAME_OFFSETS, all sharing
    the video's asset path and using the ``.jpg`` extension.

    Raises:
        FrameDerivationError: If the URL is not ``<root>/upload/<id>.mp4``.
    """
    try:
        asset = AssetUrl.parse(video_url)
    except AssetUrlError as e:
        raise FrameDerivationError(str(e)) from e

    if asset.extension.lower() != "mp4":
        raise FrameDerivationError(f"Expected an .mp4 asset, got .{asset.extension}: {video_url!r}")

    return [asset.format(transformation=f"so_{offset}", extension="jpg") for offset in FRAME_OFFSETS]
