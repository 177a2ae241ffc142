"""Shared FastAPI dependencies."""

from typing import Iterator, Optional

import httpx
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.user import User
from app.services.auth_service import resolve_session


def get_access_token(request: Request) -> Optional[str]:
    """Read the session token from the cookie, falling back to a Bearer header."""
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        return token

    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def get_current_user(
    token: Optional[str] = Depends(get_access_token),
    db: Session = Depends(get_db)
) -> User:
    """Authenticated caller; raises AuthenticationException (401) otherwise."""
    return resolve_session(db, token)


def get_frame_client() -> Iterator[httpx.Client]:
    """HTTP client for frame-capture downloads, closed after the request."""
    with httpx.Client(timeout=settings.frame_fetch_timeout_seconds) as client:
        yield client
