"""
Video upload pipeline and video record management.

``publish_video`` runs the upload pipeline:

1. validate the form fields and files
2. store the video on the media host
3. derive frame-capture URLs from the stored video
4. infer title/description from the frames (best-effort)
5. resolve the thumbnail (uploaded file, or a composed frame capture)
6. persist the Video row

Media host upload failures are fatal to the request. Metadata inference
failures never are. Nothing is written to the database until both asset
URLs are known.
"""

import math
import uuid
import logging
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import quote

import httpx
from fastapi import UploadFile
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import (
    AuthorizationException,
    MediaUploadException,
    NotFoundException,
    ValidationException,
)
from app.models.user import User
from app.models.video import Video
from app.services.asset_service import delete_asset, upload_file, upload_remote
from app.services.asset_url import AssetUrl, AssetUrlError, FrameDerivationError, derive_frame_urls
from app.services.media_store import MediaStore
from app.services.metadata_inference import MetadataInferenceProvider
from app.services.metadata_service import MetadataOutcome, try_generate_video_metadata

logger = logging.getLogger(__name__)

THUMBNAIL_WIDTH = 1280
THUMBNAIL_HEIGHT = 720
THUMBNAIL_OVERLAY_WORDS = 3

SORT_FIELDS = {
    "createdAt": Video.created_at,
    "updatedAt": Video.updated_at,
    "title": Video.title,
    "duration": Video.duration,
    "views": Video.views,
}
MAX_PAGE_SIZE = 100


@dataclass
class VideoPage:
    videos: List[Video]
    page: int
    limit: int
    total_videos: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_videos / self.limit)


def parse_video_id(video_id: Optional[str]) -> str:
    """Normalise a video id, raising ValidationException unless it is a UUID."""
    try:
        return str(uuid.UUID((video_id or "").strip()))
    except ValueError:
        raise ValidationException("Invalid ID format", details={"video_id": video_id})


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise ValidationException(f"{field} is required", details={"field": field})
    return value.strip()


def _overlay_text(title: str) -> str:
    words = " ".join(title.split()[:THUMBNAIL_OVERLAY_WORDS])
    # Commas and slashes must be double-escaped inside a text layer
    return quote(words, safe="").replace("%2C", "%252C").replace("%2F", "%252F")


def thumbnail_transformation(title: str) -> str:
    """Auto-cropped 1280x720 frame with the first words of the title overlaid."""
    crop = f"c_fill,g_auto,w_{THUMBNAIL_WIDTH},h_{THUMBNAIL_HEIGHT}"
    text = _overlay_text(title)
    if not text:
        return crop
    return f"{crop}/l_text:Arial_60_bold:{text},co_white,g_south,y_40"


def compose_fallback_thumbnail(media_store: MediaStore, frame_urls: List[str], title: str) -> Optional[str]:
    """
    Build a thumbnail from the first frame capture.

    The frame is copied to the media host under a fresh id and a cropped,
    captioned variant URL is returned. Returns None on failure.
    """
    source_url = frame_urls[0]
    asset = upload_remote(media_store, source_url, public_id=f"thumbnail_{uuid.uuid4().hex}")
    if asset is None:
        return None

    try:
        return AssetUrl.parse(asset.url).format(transformation=thumbnail_transformation(title), extension="jpg")
    except AssetUrlError as e:
        logger.error(
            "Stored thumbnail URL has an unexpected shape, using it untransformed",
            extra={"asset_url": asset.url, "error": str(e)}
        )
        return asset.url


def _discard_video_asset(db: Session, media_store: MediaStore, video_url: str) -> None:
    delete_asset(db, media_store, video_url, resource_type="video")
    db.commit()


def publish_video(
    db: Session,
    media_store: MediaStore,
    provider: MetadataInferenceProvider,
    owner: User,
    title: Optional[str],
    description: Optional[str],
    video_file: Optional[UploadFile],
    thumbnail: Optional[UploadFile] = None,
    frame_client: Optional[httpx.Client] = None
) -> Video:
    """
    Upload a video and create its record.

    Raises:
        ValidationException: Missing/blank fields or files (400)
        MediaUploadException: Video or thumbnail could not be stored (400)
    """
    title = _require_text(title, "title")
    description = _require_text(description, "description")

    if video_file is None:
        raise ValidationException("Video is required", details={"field": "videoFile"})
    if thumbnail is None and not settings.thumbnail_fallback_enabled:
        raise ValidationException("Thumbnail is required", details={"field": "thumbnail"})

    video_asset = upload_file(media_store, video_file, resource_type="video")
    if video_asset is None:
        raise MediaUploadException("Error while uploading video")

    try:
        frame_urls = derive_frame_urls(video_asset.url)
        logger.info("Derived frame URLs", extra={"frame_urls": frame_urls})
    except FrameDerivationError as e:
        logger.error(
            "Could not derive frame URLs, skipping metadata generation",
            extra={"video_url": video_asset.url, "error": str(e)}
        )
        frame_urls = []

    outcome = (
        try_generate_video_metadata(frame_urls, provider, client=frame_client)
        if frame_urls
        else MetadataOutcome.use_default("no frames available")
    )
    title, description = outcome.resolve(title, description)

    if thumbnail is not None:
        thumbnail_asset = upload_file(media_store, thumbnail, resource_type="image")
        if thumbnail_asset is None:
            _discard_video_asset(db, media_store, video_asset.url)
            raise MediaUploadException("Error while uploading thumbnail")
        thumbnail_url = thumbnail_asset.url
    elif frame_urls:
        thumbnail_url = compose_fallback_thumbnail(media_store, frame_urls, title)
        if thumbnail_url is None:
            logger.warning(
                "Composed thumbnail failed, using the raw frame capture",
                extra={"frame_url": frame_urls[0]}
            )
            thumbnail_url = frame_urls[0]
    else:
        _discard_video_asset(db, media_store, video_asset.url)
        raise MediaUploadException("Error while generating thumbnail")

    video = Video(
        title=title,
        description=description,
        video_file=video_asset.url,
        thumbnail=thumbnail_url,
        duration=video_asset.duration or 0,
        owner_id=owner.id,
    )
    db.add(video)
    db.commit()
    db.refresh(video)

    logger.info(
        "Published video",
        extra={
            "video_id": video.id,
            "owner_id": owner.id,
            "ai_metadata": not outcome.is_default,
            "duration": video.duration
        }
    )
    return video


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def list_videos(
    db: Session,
    page: int = 1,
    limit: int = 10,
    query: Optional[str] = None,
    sort_by: str = "createdAt",
    sort_type: str = "desc",
    user_id: Optional[str] = None
) -> VideoPage:
    if page < 1:
        raise ValidationException("Page must be at least 1", details={"field": "page", "value": page})
    if limit < 1:
        raise ValidationException("Limit must be positive", details={"field": "limit", "value": limit})
    limit = min(limit, MAX_PAGE_SIZE)

    sort_column = SORT_FIELDS.get(sort_by)
    if sort_column is None:
        raise ValidationException(
            f"Cannot sort by '{sort_by}'",
            details={"field": "sortBy", "allowed": sorted(SORT_FIELDS)}
        )
    if sort_type not in ("asc", "desc"):
        raise ValidationException(
            "sortType must be 'asc' or 'desc'",
            details={"field": "sortType", "value": sort_type}
        )

    filters = []
    if query and query.strip():
        pattern = f"%{_escape_like(query.strip())}%"
        filters.append(or_(
            Video.title.ilike(pattern, escape="\\"),
            Video.description.ilike(pattern, escape="\\"),
        ))
    if user_id:
        try:
            owner_id = str(uuid.UUID(user_id.strip()))
        except ValueError:
            raise ValidationException("Invalid user ID format", details={"field": "userId", "value": user_id})
        filters.append(Video.owner_id == owner_id)

    base_query = db.query(Video).filter(*filters)
    total_videos = base_query.count()

    order = sort_column.asc() if sort_type == "asc" else sort_column.desc()
    videos = (
        base_query
        .order_by(order, Video.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return VideoPage(videos=videos, page=page, limit=limit, total_videos=total_videos)


def get_video(db: Session, video_id: Optional[str]) -> Video:
    if not (video_id or "").strip():
        raise ValidationException("Video is missing", details={"field": "video_id"})

    video = db.query(Video).filter(Video.id == video_id.strip()).first()
    if video is None:
        raise NotFoundException("Video not found", details={"video_id": video_id})
    return video


def update_video(
    db: Session,
    media_store: MediaStore,
    video_id: str,
    title: Optional[str],
    description: Optional[str],
    thumbnail: Optional[UploadFile] = None
) -> Video:
    """
    Replace title/description and optionally the thumbnail.

    The previous thumbnail is only removed from the media host after the
    new one has been stored.
    """
    video = get_video(db, video_id)

    if not (title or "").strip() or not (description or "").strip():
        raise ValidationException("All fields are required")

    if thumbnail is not None:
        new_asset = upload_file(media_store, thumbnail, resource_type="image")
        if new_asset is None:
            raise MediaUploadException("Error while updating thumbnail")

        old_thumbnail = video.thumbnail
        video.thumbnail = new_asset.url
        delete_asset(db, media_store, old_thumbnail, resource_type="image")

    video.title = title.strip()
    video.description = description.strip()
    db.commit()
    db.refresh(video)

    logger.info("Updated video", extra={"video_id": video.id, "thumbnail_replaced": thumbnail is not None})
    return video


def delete_video(db: Session, media_store: MediaStore, video_id: Optional[str]) -> None:
    """
    Delete a video and its two remote assets.

    Remote deletions are best-effort; the row is removed regardless and any
    asset that could not be deleted is recorded for reconciliation.
    """
    if not (video_id or "").strip():
        raise ValidationException("Video ID is required", details={"field": "video_id"})

    video = get_video(db, video_id)

    video_deleted = delete_asset(db, media_store, video.video_file, resource_type="video")
    thumbnail_deleted = delete_asset(db, media_store, video.thumbnail, resource_type="image")

    db.delete(video)
    db.commit()

    logger.info(
        "Deleted video",
        extra={
            "video_id": video_id,
            "video_asset_deleted": video_deleted,
            "thumbnail_asset_deleted": thumbnail_deleted
        }
    )


def toggle_publish_status(db: Session, video_id: Optional[str], caller: User) -> Video:
    video_id = parse_video_id(video_id)

    video = db.query(Video).filter(Video.id == video_id).first()
    if video is None:
        raise NotFoundException("Video not found", details={"video_id": video_id})

    if video.owner_id != caller.id:
        raise AuthorizationException(
            "You are not allowed to access this video",
            details={"video_id": video_id}
        )

    video.is_published = not video.is_published
    db.commit()
    db.refresh(video)

    logger.info("Toggled publish status", extra={"video_id": video_id, "is_published": video.is_published})
    return video
