"""
Video metadata extraction.

Fetches frame-capture images, sends them to the configured inference
provider with a fixed instruction, and parses the model's
``**Title:** ... **Description:** ...`` answer into a title/description pair.

``generate_video_metadata`` raises on failure and backs the public
generate-metadata endpoint. ``try_generate_video_metadata`` wraps it for the
upload pipeline and never raises.
"""

import re
import base64
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception

from app.config import settings
from app.exceptions import (
    AppException,
    ImageProcessingException,
    MetadataGenerationException,
    ValidationException,
)
from app.services.metadata_inference import MetadataInferenceProvider


logger = logging.getLogger(__name__)

FRAME_MIME_TYPE = "image/jpeg"
MAX_FRAME_URLS = 10

DEFAULT_TITLE = "Untitled Video"
DEFAULT_DESCRIPTION = "No description available."

METADATA_PROMPT = (
    "Based on these images, generate a **single YouTube title and description** that best "
    "represents the video content. Format the response as:\n\n"
    "**Title:** <Generated Title>\n\n"
    "**Description:** <Generated Description with hashtags>\n\n"
    "Do not include extra options or explanations, just the formatted title and description."
)

TITLE_PATTERN = re.compile(r'\*\*Title:\*\*\s*(.+)')
DESCRIPTION_PATTERN = re.compile(r'\*\*Description:\*\*\s*([\s\S]+)')


@dataclass(frozen=True)
class InferredMetadata:
    title: str
    description: str


@dataclass(frozen=True)
class MetadataOutcome:
    """Either inferred metadata or a marker telling the caller to keep its own values."""

    metadata: Optional[InferredMetadata] = None
    error: Optional[str] = None

    @classmethod
    def inferred(cls, metadata: InferredMetadata) -> "MetadataOutcome":
        return cls(metadata=metadata)

    @classmethod
    def use_default(cls, error: str) -> "MetadataOutcome":
        return cls(error=error)

    @property
    def is_default(self) -> bool:
        return self.metadata is None

    def resolve(self, title: str, description: str) -> Tuple[str, str]:
        """Pick inferred values, falling back per field to the supplied ones."""
        if self.metadata is None:
            return title, description
        return (self.metadata.title or title, self.metadata.description or description)


def _clean(captured: str) -> str:
    return captured.replace("**", "").strip()


def parse_metadata_text(text: str) -> InferredMetadata:
    """
    Parse the model's answer.

    Each field falls back to its default independently when its marker is
    missing or captures nothing but emphasis and whitespace.
    """
    title_match = TITLE_PATTERN.search(text or "")
    description_match = DESCRIPTION_PATTERN.search(text or "")

    title = _clean(title_match.group(1)) if title_match else ""
    description = _clean(description_match.group(1)) if description_match else ""

    if not title_match:
        logger.warning("Model response has no title marker, using default title")
    if not description_match:
        logger.warning("Model response has no description marker, using default description")

    return InferredMetadata(
        title=title or DEFAULT_TITLE,
        description=description or DEFAULT_DESCRIPTION,
    )


class FrameTooLargeError(Exception):
    """Raised when a frame body exceeds FRAME_MAX_BYTES."""


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


def validate_frame_urls(frame_urls: Sequence[str]) -> None:
    """
    Only https URLs on the media host's delivery domain may be fetched.

    Raises:
        ValidationException: On an empty list, too many URLs, or a foreign URL (400)
    """
    if not frame_urls:
        raise ValidationException("Frame URLs are required", details={"field": "frameUrls"})
    if len(frame_urls) > MAX_FRAME_URLS:
        raise ValidationException(
            f"At most {MAX_FRAME_URLS} frame URLs are accepted",
            details={"field": "frameUrls", "count": len(frame_urls)}
        )

    for url in frame_urls:
        try:
            parsed = httpx.URL(url)
        except httpx.InvalidURL:
            parsed = None
        if parsed is None or parsed.scheme != "https" or parsed.host != settings.cloudinary_delivery_host:
            raise ValidationException(
                "Frame URLs must point to the media host",
                details={"field": "frameUrls", "frame_url": url}
            )


@retry(
    stop=stop_after_attempt(2),
    wait=wait_exponential(multiplier=1, min=1, max=4),
    retry=retry_if_exception(_is_retryable),
    reraise=True
)
def _get_frame(client: httpx.Client, url: str) -> bytes:
    with client.stream("GET", url, timeout=settings.frame_fetch_timeout_seconds) as response:
        response.raise_for_status()
        chunks = []
        size = 0
        for chunk in response.iter_bytes():
            size += len(chunk)
            if size > settings.frame_max_bytes:
                raise FrameTooLargeError(f"Frame exceeds {settings.frame_max_bytes} bytes")
            chunks.append(chunk)
    return b"".join(chunks)


def fetch_frame(client: httpx.Client, url: str) -> Optional[bytes]:
    """Download one frame. Failures are logged and reported as None."""
    try:
        content = _get_frame(client, url)
    except httpx.HTTPStatusError as e:
        logger.warning(
            f"Frame fetch returned HTTP {e.response.status_code}",
            extra={"frame_url": url, "status_code": e.response.status_code}
        )
        return None
    except httpx.HTTPError as e:
        logger.warning(
            "Frame fetch failed",
            extra={"frame_url": url, "error": str(e), "error_type": type(e).__name__}
        )
        return None
    except FrameTooLargeError as e:
        logger.warning("Frame fetch aborted", extra={"frame_url": url, "error": str(e)})
        return None

    if not content:
        logger.warning("Frame fetch returned an empty body", extra={"frame_url": url})
        return None
    return content


def fetch_frames(frame_urls: Sequence[str], client: Optional[httpx.Client] = None) -> List[Optional[bytes]]:
    """Fetch frames concurrently on a bounded pool; the result keeps the input order."""
    owns_client = client is None
    if owns_client:
        client = httpx.Client(timeout=settings.frame_fetch_timeout_seconds)

    workers = max(1, min(len(frame_urls), settings.frame_fetch_max_workers))
    try:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(lambda url: fetch_frame(client, url), frame_urls))
    finally:
        if owns_client:
            client.close()


def encode_frames(images: Sequence[bytes]) -> List[Dict[str, Any]]:
    return [
        {
            "inline_data": {
                "mime_type": FRAME_MIME_TYPE,
                "data": base64.b64encode(image).decode("ascii"),
            }
        }
        for image in images
    ]


def generate_video_metadata(
    frame_urls: Sequence[str],
    provider: MetadataInferenceProvider,
    client: Optional[httpx.Client] = None
) -> InferredMetadata:
    """
    Infer a title and description from frame-capture URLs.

    Args:
        frame_urls: Non-empty, ordered frame image URLs
        provider: Inference provider to submit the frames to
        client: HTTP client used for frame fetches (a fresh one if omitted)

    Returns:
        InferredMetadata parsed from the model's answer

    Raises:
        ValidationException: If the frame URLs are missing, too many or off the media host (400)
        ImageProcessingException: If every frame fetch failed (400)
        MetadataGenerationException: If the provider call or parsing failed (500)
    """
    validate_frame_urls(frame_urls)

    logger.info("Fetching frames for metadata generation", extra={"frame_count": len(frame_urls)})
    images = [image for image in fetch_frames(frame_urls, client=client) if image is not None]

    if not images:
        raise ImageProcessingException(details={"frame_count": len(frame_urls)})

    logger.info(
        "Sending frames to inference provider",
        extra={"frame_count": len(frame_urls), "image_count": len(images)}
    )

    try:
        text = provider.generate_text(METADATA_PROMPT, encode_frames(images))
        metadata = parse_metadata_text(text)
    except MetadataGenerationException:
        raise
    except Exception as e:
        logger.error(
            f"Unexpected error generating video metadata: {e}",
            extra={"error_type": type(e).__name__},
            exc_info=True
        )
        raise MetadataGenerationException(details={"error": str(e)})

    logger.info(
        "Generated video metadata",
        extra={"title_length": len(metadata.title), "description_length": len(metadata.description)}
    )
    return metadata


def try_generate_video_metadata(
    frame_urls: Sequence[str],
    provider: MetadataInferenceProvider,
    client: Optional[httpx.Client] = None
) -> MetadataOutcome:
    """Best-effort variant of generate_video_metadata. Never raises."""
    try:
        return MetadataOutcome.inferred(generate_video_metadata(frame_urls, provider, client=client))
    except AppException as e:
        logger.warning(
            f"Metadata generation failed, keeping uploader's title and description: {e.message}",
            extra={"error_code": e.error_code, "details": e.details}
        )
        return MetadataOutcome.use_default(e.message)
    except Exception as e:
        logger.error(
            "Unexpected error in metadata generation, keeping uploader's title and description",
            extra={"error_type": type(e).__name__},
            exc_info=True
        )
        return MetadataOutcome.use_default(str(e))


def check_inference_health(provider: MetadataInferenceProvider) -> bool:
    """
    Check if the inference provider is configured and reachable.

    Returns:
        True if the provider is healthy, False otherwise.
    """
    try:
        return provider.check_health()
    except Exception as e:
        logger.error(
            "Health check failed for inference provider",
            extra={"provider": type(provider).__name__, "error": str(e)}
        )
        return False
