"""
Domain models for business logic.
These are internal representations separate from API schemas.
"""
import math
import uuid
from dataclasses import dataclass, field, fields
from typing import Optional, Dict, Any, Generic, List, TypeVar
from enum import Enum

T = TypeVar("T")


class SubscriptionStatus(Enum):
    """Outcome of a subscription toggle."""
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"


class SortDirection(Enum):
    """Feed sort direction."""
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SortDirection":
        """Anything other than 'asc' sorts newest/largest first."""
        if value and value.lower() == "asc":
            return cls.ASC
        return cls.DESC


@dataclass(frozen=True)
class TokenPair:
    """Access/refresh token pair issued on login and rotation."""
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class StoredAsset:
    """A file stored on the media host."""
    url: str
    remote_id: str


@dataclass(frozen=True)
class OwnerSummary:
    """Owner fields joined onto a video."""
    username: Optional[str]
    avatar: Optional[str]


@dataclass
class VideoFilter:
    """Feed filters. All fields optional."""
    query: Optional[str] = None
    user_id: Optional[uuid.UUID] = None
    sort_by: str = "createdAt"
    sort_direction: SortDirection = SortDirection.DESC


@dataclass
class VideoUpdate:
    """
    Partial update of a video record. A None field is left untouched.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    duration: Optional[int] = None
    video_file: Optional[str] = None
    thumbnail: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        """Only the fields that carry a value."""
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}

    def is_empty(self) -> bool:
        return not self.changes()


@dataclass
class Page(Generic[T]):
    """One page of results plus the total count matching the query."""
    items: List[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total / self.limit))

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def pagination(self) -> Dict[str, Any]:
        """Pagination metadata shared by every paged endpoint."""
        return {
            "current_page": self.page,
            "items_per_page": self.limit,
            "total_items": self.total,
            "total_pages": self.total_pages,
            "has_next": self.has_next,
            "has_prev": self.has_prev,
        }


@dataclass
class DeleteResult:
    """Result of a video deletion. Asset errors never fail the delete."""
    video_id: str
    deleted_assets: List[str] = field(default_factory=list)
    asset_errors: List[str] = field(default_factory=list)


@dataclass
class SubscriptionToggleResult:
    """Result of toggling a subscription."""
    status: SubscriptionStatus
    subscription: Optional[Any] = None

    @property
    def subscribed(self) -> bool:
        return self.status is SubscriptionStatus.SUBSCRIBED


@dataclass
class VideoWithOwner:
    """A video record plus its (possibly missing) owner summary."""
    video: Any
    owner: Optional[OwnerSummary] = None

    @classmethod
    def from_row(cls, row) -> "VideoWithOwner":
        """Build from a (Video, owner_username, owner_avatar) row."""
        video, username, avatar = row
        owner = OwnerSummary(username=username, avatar=avatar) if username is not None else None
        return cls(video=video, owner=owner)
