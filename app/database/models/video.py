"""
Video model - published media with hosted video/thumbnail URLs.
"""
import uuid
from sqlalchemy import String, Integer, Text, Boolean, ForeignKey, CheckConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base import TimestampedBase


class Video(TimestampedBase):
    """
    Videos table - stores video metadata with media host references.
    """
    __tablename__ = "videos"
    __table_args__ = (
        CheckConstraint("duration > 0", name="ck_videos_duration_positive"),
    )

    # Columns
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    video_file: Mapped[str] = mapped_column(Text, nullable=False)
    thumbnail: Mapped[str] = mapped_column(Text, nullable=False)
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id"),
        nullable=False,
        index=True
    )

    # Relationships
    owner: Mapped["User"] = relationship("User", back_populates="videos")
