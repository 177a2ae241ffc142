from typing import Optional
import logging

import httpx
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_frame_client
from app.database import get_db
from app.models.user import User
from app.schemas import (
    ApiResponse,
    GenerateMetadataRequest,
    GeneratedMetadataResponse,
    Pagination,
    VideoListResponse,
    VideoResponse,
    api_response,
)
from app.services import (
    delete_video as delete_video_record,
    generate_video_metadata,
    get_video as get_video_record,
    list_videos as list_video_records,
    publish_video,
    toggle_publish_status,
    update_video as update_video_record,
)
from app.services.media_store import MediaStore, get_media_store
from app.services.metadata_inference import MetadataInferenceProvider, get_inference_provider

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/generate-metadata", response_model=ApiResponse[GeneratedMetadataResponse])
def generate_metadata(
    request: GenerateMetadataRequest,
    provider: MetadataInferenceProvider = Depends(get_inference_provider),
    frame_client: httpx.Client = Depends(get_frame_client)
):
    """
    Generate a title and description from frame-capture URLs.

    Unauthenticated. Returns 400 when no frame could be fetched and 500 when
    the inference provider call fails.
    """
    logger.info("Received metadata generation request", extra={"frame_count": len(request.frame_urls)})
    metadata = generate_video_metadata(request.frame_urls, provider, client=frame_client)
    return api_response(
        status.HTTP_200_OK,
        GeneratedMetadataResponse(title=metadata.title, description=metadata.description),
        "Video metadata generated successfully"
    )


@router.get("", response_model=ApiResponse[VideoListResponse])
def list_videos(
    page: int = 1,
    limit: int = 10,
    query: Optional[str] = None,
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_type: str = Query("desc", alias="sortType"),
    user_id: Optional[str] = Query(None, alias="userId"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    List videos with search, owner filter, sorting and pagination.

    ``totalPages`` is ``ceil(totalVideos / limit)``.
    """
    result = list_video_records(
        db,
        page=page,
        limit=limit,
        query=query,
        sort_by=sort_by,
        sort_type=sort_type,
        user_id=user_id
    )
    data = VideoListResponse(
        videos=[VideoResponse.model_validate(video) for video in result.videos],
        pagination=Pagination(
            page=result.page,
            limit=result.limit,
            total_pages=result.total_pages,
            total_videos=result.total_videos
        )
    )
    return api_response(status.HTTP_200_OK, data, "Videos Retrieved Successfully")


@router.post("", response_model=ApiResponse[VideoResponse], status_code=status.HTTP_201_CREATED)
def upload_video(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    video_file: Optional[UploadFile] = File(None, alias="videoFile"),
    thumbnail: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    media_store: MediaStore = Depends(get_media_store),
    provider: MetadataInferenceProvider = Depends(get_inference_provider),
    frame_client: httpx.Client = Depends(get_frame_client),
    current_user: User = Depends(get_current_user)
):
    """
    Upload a video, generating its title and description from frame captures.

    The uploader's title and description are kept when metadata generation
    fails. Without a thumbnail file, one is composed from the first frame.
    """
    video = publish_video(
        db,
        media_store,
        provider,
        owner=current_user,
        title=title,
        description=description,
        video_file=video_file,
        thumbnail=thumbnail,
        frame_client=frame_client
    )
    return api_response(
        status.HTTP_201_CREATED,
        VideoResponse.model_validate(video),
        "Video Uploaded Successfully with AI Metadata"
    )


@router.get("/{video_id}", response_model=ApiResponse[VideoResponse])
def get_video(
    video_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    video = get_video_record(db, video_id)
    return api_response(status.HTTP_200_OK, VideoResponse.model_validate(video), "Video Fetched Successfully")


@router.patch("/{video_id}", response_model=ApiResponse[VideoResponse])
def update_video(
    video_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    media_store: MediaStore = Depends(get_media_store),
    current_user: User = Depends(get_current_user)
):
    """Update title and description; a new thumbnail replaces the old one."""
    video = update_video_record(db, media_store, video_id, title, description, thumbnail)
    return api_response(status.HTTP_200_OK, VideoResponse.model_validate(video), "Video Updated Successfully")


@router.delete("/{video_id}", response_model=ApiResponse[dict])
def delete_video(
    video_id: str,
    db: Session = Depends(get_db),
    media_store: MediaStore = Depends(get_media_store),
    current_user: User = Depends(get_current_user)
):
    """
    Delete a video record and its remote assets.

    Remote deletions are best-effort; the record is always removed.
    """
    delete_video_record(db, media_store, video_id)
    return api_response(status.HTTP_200_OK, {}, "Video Deleted Successfully")


@router.patch("/toggle/publish/{video_id}", response_model=ApiResponse[VideoResponse])
def toggle_publish(
    video_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Flip the published flag. Only the owner may do this."""
    video = toggle_publish_status(db, video_id, current_user)
    state = "published" if video.is_published else "unpublished"
    return api_response(status.HTTP_200_OK, VideoResponse.model_validate(video), f"Video {state} successfully")
