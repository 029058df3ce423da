"""
Pydantic models for API request/response validation.
JSON field names are camelCase; Python attribute names stay snake_case.
"""
import uuid
from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models.domain import Page, VideoWithOwner


class CamelModel(BaseModel):
    """Base model serializing to camelCase and accepting either spelling."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Shared

class PaginationResponse(CamelModel):
    """Pagination metadata for every paged listing."""
    current_page: int
    items_per_page: int
    total_items: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def from_page(cls, page: Page) -> "PaginationResponse":
        return cls(**page.pagination())


class MessageResponse(CamelModel):
    """Generic message response."""
    message: str


class ErrorResponse(BaseModel):
    """Response model for errors."""
    error: str
    status_code: int
    detail: Optional[list] = None


# Users / auth

class UserResponse(CamelModel):
    """Public user fields. Never includes the password hash or refresh token."""
    id: uuid.UUID
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: str = ""
    created_at: datetime
    updated_at: datetime


class LoginRequest(CamelModel):
    """Either username or email identifies the account."""
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class RefreshTokenRequest(CamelModel):
    refresh_token: Optional[str] = None


class LoginResponse(CamelModel):
    user: UserResponse
    access_token: str
    refresh_token: str


class TokenPairResponse(CamelModel):
    access_token: str
    refresh_token: str


# Subscriptions

class SubscriberResponse(CamelModel):
    """Subscriber profile fields."""
    id: uuid.UUID
    username: str
    full_name: str
    avatar: str


class ChannelResponse(SubscriberResponse):
    """Channel profile fields as seen by one of its subscribers."""
    subscribers_count: int = 0
    is_subscribed: bool = True


class SubscriptionResponse(CamelModel):
    id: uuid.UUID
    subscriber_id: uuid.UUID
    channel_id: uuid.UUID
    created_at: datetime


class SubscriptionToggleResponse(CamelModel):
    status: str
    subscribed: bool
    subscription: Optional[SubscriptionResponse] = None
    message: str


class SubscriberListResponse(CamelModel):
    subscribers: List[SubscriberResponse]
    pagination: PaginationResponse


class ChannelListResponse(CamelModel):
    channels: List[ChannelResponse]
    pagination: PaginationResponse


# Videos

class OwnerSummaryResponse(CamelModel):
    username: Optional[str] = None
    avatar: Optional[str] = None


class VideoResponse(CamelModel):
    """Response model for video data."""
    id: uuid.UUID
    title: str
    description: str
    duration: int = Field(gt=0)
    video_file: str
    thumbnail: str
    views: int
    is_published: bool
    owner_id: uuid.UUID
    owner: Optional[OwnerSummaryResponse] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, item: VideoWithOwner) -> "VideoResponse":
        video = item.video
        owner = None
        if item.owner is not None:
            owner = OwnerSummaryResponse(username=item.owner.username, avatar=item.owner.avatar)
        return cls(
            id=video.id,
            title=video.title,
            description=video.description,
            duration=video.duration,
            video_file=video.video_file,
            thumbnail=video.thumbnail,
            views=video.views,
            is_published=video.is_published,
            owner_id=video.owner_id,
            owner=owner,
            created_at=video.created_at,
            updated_at=video.updated_at,
        )


class VideoListResponse(CamelModel):
    videos: List[VideoResponse]
    pagination: PaginationResponse


class VideoDeleteResponse(CamelModel):
    message: str
    video_id: str
    deleted_assets: List[str] = []
    asset_errors: List[str] = []


class VideoPublishToggleResponse(CamelModel):
    message: str
    video: VideoResponse
