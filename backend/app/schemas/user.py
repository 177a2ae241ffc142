from datetime import datetime
from typing import Optional

from app.schemas.common import CamelModel


class UserResponse(CamelModel):
    """Public view of a user; never includes the password hash."""

    id: str
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: Optional[str] = None
    created_at: datetime


class LoginRequest(CamelModel):
    """Either email or username identifies the account."""

    email: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None


class LoginResponse(CamelModel):
    user: UserResponse
    access_token: str
