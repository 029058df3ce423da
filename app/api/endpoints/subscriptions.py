"""
Subscription endpoints.
"""
import time
from typing import Tuple

from fastapi import APIRouter, Depends

from app.api.deps import get_current_user, get_page_params, get_subscription_service
from app.core.logging import log_operation_complete, log_operation_error, log_operation_start
from app.database.models.user import User
from app.models.schemas import (
    ChannelListResponse,
    ChannelResponse,
    PaginationResponse,
    SubscriberListResponse,
    SubscriberResponse,
    SubscriptionResponse,
    SubscriptionToggleResponse,
)
from app.services.subscription_service import SubscriptionService

router = APIRouter(prefix="/subscriptions")

LOGGER_NAME = "app.api.endpoints.subscriptions"


@router.post("/{channel_id}/toggle", response_model=SubscriptionToggleResponse)
async def toggle_subscription(
    channel_id: str,
    current_user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """Subscribe to a channel, or unsubscribe if already subscribed."""
    start_time = time.time()
    operation = "toggle_subscription"

    log_operation_start(
        logger=LOGGER_NAME,
        function="toggle_subscription",
        operation=operation,
        message="Toggling subscription",
        context={"subscriber_id": str(current_user.id), "channel_id": channel_id},
    )

    try:
        result = await subscription_service.toggle(current_user.id, channel_id)
    except Exception as e:
        log_operation_error(
            logger=LOGGER_NAME,
            function="toggle_subscription",
            operation=operation,
            error=e,
            message="Subscription toggle failed",
            context={"channel_id": channel_id},
        )
        raise

    subscription = None
    if result.subscription is not None:
        subscription = SubscriptionResponse.model_validate(result.subscription)
    message = "Subscribed successfully" if result.subscribed else "Unsubscribed successfully"
    log_operation_complete(
        logger=LOGGER_NAME,
        function="toggle_subscription",
        operation=operation,
        message=message,
        context={"channel_id": channel_id, "status": result.status.value},
        duration=time.time() - start_time,
    )
    return SubscriptionToggleResponse(
        status=result.status.value,
        subscribed=result.subscribed,
        subscription=subscription,
        message=message,
    )


@router.get("/{channel_id}/subscribers", response_model=SubscriberListResponse)
async def list_channel_subscribers(
    channel_id: str,
    paging: Tuple[int, int] = Depends(get_page_params),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """Users subscribed to a channel, oldest subscription first."""
    result = await subscription_service.list_subscribers(channel_id, *paging)
    return SubscriberListResponse(
        subscribers=[SubscriberResponse.model_validate(user) for user in result.items],
        pagination=PaginationResponse.from_page(result),
    )


@router.get("/{subscriber_id}/channels", response_model=ChannelListResponse)
async def list_subscribed_channels(
    subscriber_id: str,
    paging: Tuple[int, int] = Depends(get_page_params),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """Channels a user subscribes to, each with its subscriber count."""
    result = await subscription_service.list_subscribed_channels(subscriber_id, *paging)
    channels = [
        ChannelResponse(
            id=channel.id,
            username=channel.username,
            full_name=channel.full_name,
            avatar=channel.avatar,
            subscribers_count=subscribers_count,
        )
        for channel, subscribers_count in result.items
    ]
    return ChannelListResponse(channels=channels, pagination=PaginationResponse.from_page(result))
