"""
User model - accounts, profile media and the single active refresh token.
"""
from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base import TimestampedBase


class User(TimestampedBase):
    """
    Users table - one row per account. Usernames are stored lower-cased.
    """
    __tablename__ = "users"

    # Columns
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    avatar: Mapped[str] = mapped_column(Text, nullable=False)
    cover_image: Mapped[str] = mapped_column(Text, nullable=False, default="")
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    videos: Mapped[list["Video"]] = relationship("Video", back_populates="owner")
