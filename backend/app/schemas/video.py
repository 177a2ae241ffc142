from datetime import datetime
from typing import List

from pydantic import AliasChoices, Field

from app.schemas.common import CamelModel
from app.services.metadata_service import MAX_FRAME_URLS


class VideoResponse(CamelModel):
    """Response schema for a video record."""

    id: str
    title: str
    description: str
    video_file: str
    thumbnail: str
    duration: float = 0
    views: int = 0
    is_published: bool = False
    owner_id: str = Field(
        validation_alias=AliasChoices("owner_id", "owner"),
        serialization_alias="owner"
    )
    created_at: datetime
    updated_at: datetime


class Pagination(CamelModel):
    page: int
    limit: int
    total_pages: int
    total_videos: int


class VideoListResponse(CamelModel):
    """Response schema for a page of videos."""

    videos: List[VideoResponse]
    pagination: Pagination


class GenerateMetadataRequest(CamelModel):
    """Request body for the generate-metadata endpoint."""

    frame_urls: List[str] = Field(
        min_length=1,
        max_length=MAX_FRAME_URLS,
        description="Frame-capture image URLs on the media host, in order"
    )

    model_config = CamelModel.model_config | {
        "json_schema_extra": {
            "example": {
                "frameUrls": [
                    "https://res.cloudinary.com/demo/video/upload/so_10/v1/sample.jpg",
                    "https://res.cloudinary.com/demo/video/upload/so_30/v1/sample.jpg",
                ]
            }
        }
    }


class GeneratedMetadataResponse(CamelModel):
    title: str
    description: str
