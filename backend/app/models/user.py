import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.video import utc_now


class User(Base):
    """Registered account. Username and email are stored lower-cased."""
    __tablename__ = 'users'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(320), unique=True, nullable=False, index=True)
    full_name = Column(String(256), nullable=False)

    # Media host URLs
    avatar = Column(String(1024), nullable=False)
    cover_image = Column(String(1024), nullable=True)

    # "<iterations>$<salt hex>$<hash hex>"
    password_hash = Column(String(256), nullable=False)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    videos = relationship('Video', back_populates='owner', cascade='all, delete-orphan')
    sessions = relationship('UserSession', back_populates='user', cascade='all, delete-orphan')

    def __repr__(self):
        return f"<User(id='{self.id}', username='{self.username}')>"


class UserSession(Base):
    """Server-side login session addressed by an opaque token."""
    __tablename__ = 'user_sessions'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(
        String(36),
        ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    token = Column(String(128), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    user = relationship('User', back_populates='sessions')

    def __repr__(self):
        return f"<UserSession(user_id='{self.user_id}', expires_at='{self.expires_at}')>"
