"""
Subscription service - toggling subscriber -> channel edges and listing
either side of them.
"""
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ChannelNotFoundException, UserNotFoundException, ValidationException
from app.models.domain import Page, SubscriptionStatus, SubscriptionToggleResult
from app.repositories import subscription_db_repository, user_db_repository
from app.utils.ids import parse_id

logger = logging.getLogger(__name__)


class SubscriptionService:
    """Presence-toggle subscriptions between users."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def toggle(self, subscriber_id: uuid.UUID, channel_id: str) -> SubscriptionToggleResult:
        """
        Subscribe if no edge exists, unsubscribe if one does.

        Raises:
            ValidationException: malformed channel id or self-subscription
            ChannelNotFoundException: channel user does not exist
        """
        channel_uuid = parse_id(channel_id, "channel id")
        if channel_uuid == subscriber_id:
            raise ValidationException("Cannot subscribe to yourself")

        if not await user_db_repository.exists(self.session, channel_uuid):
            raise ChannelNotFoundException(channel_id)

        existing = await subscription_db_repository.get(self.session, subscriber_id, channel_uuid)
        if existing is not None:
            await subscription_db_repository.delete_by_id(self.session, existing.id)
            logger.info(f"User {subscriber_id} unsubscribed from {channel_uuid}")
            return SubscriptionToggleResult(status=SubscriptionStatus.UNSUBSCRIBED)

        subscription = await subscription_db_repository.create(self.session, subscriber_id, channel_uuid)
        if subscription is None:
            # A concurrent toggle inserted the same edge first
            logger.info(f"Subscription {subscriber_id} -> {channel_uuid} already present, no-op")
            subscription = await subscription_db_repository.get(self.session, subscriber_id, channel_uuid)
        else:
            logger.info(f"User {subscriber_id} subscribed to {channel_uuid}")
        return SubscriptionToggleResult(status=SubscriptionStatus.SUBSCRIBED, subscription=subscription)

    async def list_subscribers(self, channel_id: str, page: int, limit: int) -> Page:
        """
        Page of users subscribed to a channel.

        Raises:
            ValidationException: malformed channel id
            ChannelNotFoundException: channel user does not exist
        """
        channel_uuid = parse_id(channel_id, "channel id")
        if not await user_db_repository.exists(self.session, channel_uuid):
            raise ChannelNotFoundException(channel_id)

        total = await subscription_db_repository.count_for_channel(self.session, channel_uuid)
        users = await subscription_db_repository.list_subscribers(self.session, channel_uuid, page, limit)
        return Page(items=users, total=total, page=page, limit=limit)

    async def list_subscribed_channels(self, subscriber_id: str, page: int, limit: int) -> Page:
        """
        Page of channels a user subscribes to. Items are (User, subscribers_count) rows.

        Raises:
            ValidationException: malformed subscriber id
            UserNotFoundException: subscriber does not exist
        """
        subscriber_uuid = parse_id(subscriber_id, "subscriber id")
        if not await user_db_repository.exists(self.session, subscriber_uuid):
            raise UserNotFoundException(subscriber_id)

        total = await subscription_db_repository.count_for_subscriber(self.session, subscriber_uuid)
        rows = await subscription_db_repository.list_channels(self.session, subscriber_uuid, page, limit)
        return Page(items=rows, total=total, page=page, limit=limit)
