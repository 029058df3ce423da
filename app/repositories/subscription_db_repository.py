"""
Subscription database repository - subscriber -> channel edges and the
paginated subscriber / subscribed-channel listings.
"""
import uuid
from typing import Optional
from sqlalchemy import select, delete, func, Row
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models.subscription import Subscription
from app.database.models.user import User


async def get(
    session: AsyncSession,
    subscriber_id: uuid.UUID,
    channel_id: uuid.UUID,
) -> Optional[Subscription]:
    """Get the edge for (subscriber, channel), if present."""
    stmt = select(Subscription).where(
        Subscription.subscriber_id == subscriber_id,
        Subscription.channel_id == channel_id,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def create(
    session: AsyncSession,
    subscriber_id: uuid.UUID,
    channel_id: uuid.UUID,
) -> Optional[Subscription]:
    """
    Insert the edge inside a savepoint.

    Returns:
        Created Subscription, or None if the (subscriber, channel) unique
        constraint rejected it because a concurrent request inserted it first
    """
    subscription = Subscription(subscriber_id=subscriber_id, channel_id=channel_id)
    try:
        async with session.begin_nested():
            session.add(subscription)
    except IntegrityError:
        return None
    await session.refresh(subscription)
    return subscription


async def delete_by_id(session: AsyncSession, id: uuid.UUID) -> bool:
    """
    Delete an edge by id.

    Returns:
        True if deleted, False if it was already gone
    """
    stmt = delete(Subscription).where(Subscription.id == id)
    result = await session.execute(stmt)
    return result.rowcount > 0


async def count_for_channel(session: AsyncSession, channel_id: uuid.UUID) -> int:
    """Number of subscribers of a channel."""
    stmt = select(func.count()).select_from(Subscription).where(Subscription.channel_id == channel_id)
    result = await session.execute(stmt)
    return result.scalar_one()


async def count_for_subscriber(session: AsyncSession, subscriber_id: uuid.UUID) -> int:
    """Number of channels a user subscribes to."""
    stmt = select(func.count()).select_from(Subscription).where(Subscription.subscriber_id == subscriber_id)
    result = await session.execute(stmt)
    return result.scalar_one()


async def list_subscribers(
    session: AsyncSession,
    channel_id: uuid.UUID,
    page: int,
    limit: int,
) -> list[User]:
    """
    List one page of users subscribed to a channel, oldest subscription first.
    """
    stmt = (
        select(User)
        .join(Subscription, Subscription.subscriber_id == User.id)
        .where(Subscription.channel_id == channel_id)
        .order_by(Subscription.created_at.asc(), Subscription.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_channels(
    session: AsyncSession,
    subscriber_id: uuid.UUID,
    page: int,
    limit: int,
) -> list[Row]:
    """
    List one page of channels a user subscribes to, oldest subscription first.

    Returns:
        List of rows (User, subscribers_count)
    """
    subscribers_count = (
        select(func.count(Subscription.id))
        .where(Subscription.channel_id == User.id)
        .correlate(User)
        .scalar_subquery()
        .label("subscribers_count")
    )
    edge = select(Subscription).where(Subscription.subscriber_id == subscriber_id).subquery()
    stmt = (
        select(User, subscribers_count)
        .join(edge, edge.c.channel_id == User.id)
        .order_by(edge.c.created_at.asc(), edge.c.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.all())
