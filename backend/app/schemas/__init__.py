from app.schemas.common import (
    ApiResponse,
    CamelModel,
    api_response,
)
from app.schemas.video import (
    VideoResponse,
    Pagination,
    VideoListResponse,
    GenerateMetadataRequest,
    GeneratedMetadataResponse,
)
from app.schemas.user import (
    UserResponse,
    LoginRequest,
    LoginResponse,
)

__all__ = [
    "ApiResponse",
    "CamelModel",
    "api_response",
    "VideoResponse",
    "Pagination",
    "VideoListResponse",
    "GenerateMetadataRequest",
    "GeneratedMetadataResponse",
    "UserResponse",
    "LoginRequest",
    "LoginResponse",
]
