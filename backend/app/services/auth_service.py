"""
Account and session management.

Passwords are stored as PBKDF2-SHA256 hashes with a per-user salt. Logins
issue opaque random tokens backed by ``user_sessions`` rows; a user holds at
most one session at a time.
"""

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import UploadFile
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import (
    AuthenticationException,
    ConflictException,
    MediaUploadException,
    ValidationException,
)
from app.models.user import User, UserSession
from app.services.media_store import MediaStore
from app.services.asset_service import upload_file

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 260_000


def hash_password(password: str, salt: Optional[bytes] = None, iterations: int = PBKDF2_ITERATIONS) -> str:
    salt = salt or secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return f"{iterations}${salt.hex()}${digest.hex()}"


def verify_password(password: str, stored_hash: str) -> bool:
    try:
        iterations, salt_hex, digest_hex = stored_hash.split("$")
        digest = hashlib.pbkdf2_hmac(
            "sha256", password.encode("utf-8"), bytes.fromhex(salt_hex), int(iterations)
        )
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False
    return hmac.compare_digest(digest.hex(), digest_hex)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def register_user(
    db: Session,
    media_store: MediaStore,
    full_name: Optional[str],
    email: Optional[str],
    username: Optional[str],
    password: Optional[str],
    avatar: Optional[UploadFile],
    cover_image: Optional[UploadFile] = None
) -> User:
    if any(not (field or "").strip() for field in (full_name, email, username, password)):
        raise ValidationException("All fields are required")

    email = email.strip().lower()
    username = username.strip().lower()

    existing = db.query(User).filter(or_(User.email == email, User.username == username)).first()
    if existing:
        raise ConflictException(
            "User with email or username already exists",
            details={"email": email, "username": username}
        )

    if avatar is None:
        raise ValidationException("Avatar file is required")

    avatar_asset = upload_file(media_store, avatar, resource_type="image")
    if avatar_asset is None:
        raise MediaUploadException("Error while uploading avatar")

    cover_url = None
    if cover_image is not None:
        cover_asset = upload_file(media_store, cover_image, resource_type="image")
        cover_url = cover_asset.url if cover_asset else None

    user = User(
        full_name=full_name.strip(),
        email=email,
        username=username,
        password_hash=hash_password(password),
        avatar=avatar_asset.url,
        cover_image=cover_url,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("Registered user", extra={"user_id": user.id, "username": user.username})
    return user


def authenticate(db: Session, identifier: Optional[str], password: Optional[str]) -> User:
    """Look a user up by email or username and check the password."""
    if not (identifier or "").strip() or not password:
        raise ValidationException("Username or email and password are required")

    identifier = identifier.strip().lower()
    user = db.query(User).filter(or_(User.email == identifier, User.username == identifier)).first()

    if user is None or not verify_password(password, user.password_hash):
        logger.info("Rejected login attempt", extra={"identifier": identifier})
        raise AuthenticationException("Invalid user credentials")
    return user


def create_session(db: Session, user: User) -> UserSession:
    db.query(UserSession).filter(UserSession.user_id == user.id).delete()

    session = UserSession(
        user_id=user.id,
        token=secrets.token_urlsafe(32),
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=settings.session_expire_seconds),
    )
    db.add(session)
    db.commit()
    db.refresh(session)

    logger.info("Created session", extra={"user_id": user.id})
    return session


def resolve_session(db: Session, token: Optional[str]) -> User:
    """Return the user behind a session token, or raise AuthenticationException."""
    if not token:
        raise AuthenticationException()

    session = db.query(UserSession).filter(UserSession.token == token).first()
    if session is None:
        raise AuthenticationException("Invalid access token")

    if _as_utc(session.expires_at) < datetime.now(timezone.utc):
        db.delete(session)
        db.commit()
        raise AuthenticationException("Session expired")

    return session.user


def revoke_session(db: Session, token: Optional[str]) -> None:
    if not token:
        return
    db.query(UserSession).filter(UserSession.token == token).delete()
    db.commit()
