"""
API endpoints for accounts and sessions.

Logins set an HTTP-only ``accessToken`` cookie; the same token is returned in
the body for clients that prefer a Bearer header.
"""

from typing import Optional
import logging

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status
from sqlalchemy.orm import Session

from app.api.deps import get_access_token, get_current_user
from app.config import settings
from app.database import get_db
from app.models.user import User
from app.schemas import ApiResponse, LoginRequest, LoginResponse, UserResponse, api_response
from app.services import auth_service
from app.services.media_store import MediaStore, get_media_store

router = APIRouter()
logger = logging.getLogger(__name__)


def _cookie_options() -> dict:
    if settings.is_production:
        return {"httponly": True, "secure": True, "samesite": "none"}
    return {"httponly": True, "secure": False, "samesite": "lax"}


@router.post("/register", response_model=ApiResponse[UserResponse], status_code=status.HTTP_201_CREATED)
def register(
    full_name: Optional[str] = Form(None, alias="fullName"),
    email: Optional[str] = Form(None),
    username: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    db: Session = Depends(get_db),
    media_store: MediaStore = Depends(get_media_store)
):
    user = auth_service.register_user(
        db,
        media_store,
        full_name=full_name,
        email=email,
        username=username,
        password=password,
        avatar=avatar,
        cover_image=cover_image
    )
    return api_response(status.HTTP_201_CREATED, UserResponse.model_validate(user), "User registered Successfully")


@router.post("/login", response_model=ApiResponse[LoginResponse])
def login(
    credentials: LoginRequest,
    response: Response,
    db: Session = Depends(get_db)
):
    user = auth_service.authenticate(db, credentials.email or credentials.username, credentials.password)
    session = auth_service.create_session(db, user)

    response.set_cookie(
        key=settings.session_cookie_name,
        value=session.token,
        max_age=settings.session_expire_seconds,
        **_cookie_options()
    )
    data = LoginResponse(user=UserResponse.model_validate(user), access_token=session.token)
    return api_response(status.HTTP_200_OK, data, "User logged In Successfully")


@router.post("/logout", response_model=ApiResponse[dict])
def logout(
    response: Response,
    token: Optional[str] = Depends(get_access_token),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    auth_service.revoke_session(db, token)
    response.delete_cookie(settings.session_cookie_name, **_cookie_options())
    logger.info("User logged out", extra={"user_id": current_user.id})
    return api_response(status.HTTP_200_OK, {}, "User logged Out")


@router.get("/current-user", response_model=ApiResponse[UserResponse])
def current_user(current_user: User = Depends(get_current_user)):
    return api_response(status.HTTP_200_OK, UserResponse.model_validate(current_user), "User fetched successfully")
