import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from app.database import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Video(Base):
    """
    Video model representing an uploaded video.
    Both asset references point at the media host; a row is only written once
    both uploads have succeeded.
    """
    __tablename__ = 'videos'

    # Primary key
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Content metadata (AI-generated or supplied by the uploader)
    title = Column(String(512), nullable=False)
    description = Column(Text, nullable=False)

    # Media host URLs
    video_file = Column(String(1024), nullable=False)
    thumbnail = Column(String(1024), nullable=False)

    # Seconds, as reported by the media host
    duration = Column(Float, nullable=False, default=0)
    views = Column(Integer, nullable=False, default=0)
    is_published = Column(Boolean, nullable=False, default=False)

    owner_id = Column(
        String(36),
        ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    # Relationships
    owner = relationship('User', back_populates='videos')

    def __repr__(self):
        return f"<Video(id='{self.id}', title='{self.title}')>"
