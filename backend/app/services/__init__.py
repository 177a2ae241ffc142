from app.services.asset_url import (
    AssetUrl,
    AssetUrlError,
    FrameDerivationError,
    derive_frame_urls,
)
from app.services.metadata_service import (
    InferredMetadata,
    MetadataOutcome,
    generate_video_metadata,
    parse_metadata_text,
    try_generate_video_metadata,
)
from app.services.video_service import (
    VideoPage,
    publish_video,
    list_videos,
    get_video,
    update_video,
    delete_video,
    toggle_publish_status,
)

__all__ = [
    "AssetUrl",
    "AssetUrlError",
    "FrameDerivationError",
    "derive_frame_urls",
    "InferredMetadata",
    "MetadataOutcome",
    "generate_video_metadata",
    "parse_metadata_text",
    "try_generate_video_metadata",
    "VideoPage",
    "publish_video",
    "list_videos",
    "get_video",
    "update_video",
    "delete_video",
    "toggle_publish_status",
]
