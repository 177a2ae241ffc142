from fastapi import APIRouter
from app.api.videos import router as videos_router
from app.api.users import router as users_router

# Create main API router with /api/v1 prefix
api_router = APIRouter(prefix="/api/v1")

# Include users router
api_router.include_router(users_router, prefix="/users", tags=["users"])

# Include videos router
api_router.include_router(videos_router, prefix="/videos", tags=["videos"])
