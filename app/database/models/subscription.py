"""
Subscription model - subscriber -> channel edges between users.
"""
import uuid
from sqlalchemy import ForeignKey, UniqueConstraint, CheckConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.database.base import TimestampedBase


class Subscription(TimestampedBase):
    """
    Subscriptions table - one row per (subscriber, channel) pair.
    """
    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint("subscriber_id", "channel_id", name="uq_subscriptions_subscriber_channel"),
        CheckConstraint("subscriber_id <> channel_id", name="ck_subscriptions_not_self"),
    )

    # Columns
    subscriber_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    channel_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
