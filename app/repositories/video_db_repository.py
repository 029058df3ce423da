"""
Video database repository - CRUD operations for the videos table,
plus the owner-joined, filtered and paginated feed query.
"""
import uuid
from typing import Optional
from sqlalchemy import select, delete, update, func, or_, not_, Row
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models.user import User
from app.database.models.video import Video
from app.models.domain import VideoFilter, VideoUpdate, SortDirection

# Public sort keys -> columns
SORTABLE_FIELDS = {
    "createdAt": Video.created_at,
    "updatedAt": Video.updated_at,
    "title": Video.title,
    "views": Video.views,
    "duration": Video.duration,
}

# Returned rows carry these extra owner columns after the Video entity
_OWNER_COLUMNS = (User.username.label("owner_username"), User.avatar.label("owner_avatar"))


def _escape_like(value: str) -> str:
    """Escape LIKE wildcards so the query matches as a literal substring."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def create(
    session: AsyncSession,
    owner_id: uuid.UUID,
    title: str,
    description: str,
    duration: int,
    video_file: str,
    thumbnail: str,
    is_published: bool = True,
) -> Video:
    """
    Create a new video record.

    Args:
        session: Async database session
        owner_id: Id of the publishing user
        title: Video title
        description: Video description
        duration: Duration in seconds (> 0)
        video_file: Media host URL of the video
        thumbnail: Media host URL of the thumbnail
        is_published: Initial publish flag

    Returns:
        Created Video instance
    """
    video = Video(
        owner_id=owner_id,
        title=title,
        description=description,
        duration=duration,
        video_file=video_file,
        thumbnail=thumbnail,
        views=0,
        is_published=is_published,
    )
    session.add(video)
    await session.flush()  # Flush to get the ID
    await session.refresh(video)
    return video


async def get_by_id(session: AsyncSession, id: uuid.UUID) -> Optional[Video]:
    """
    Get a video by its id.

    Returns:
        Video instance or None if not found
    """
    stmt = select(Video).where(Video.id == id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_with_owner(session: AsyncSession, id: uuid.UUID) -> Optional[Row]:
    """
    Get a video together with its owner's username and avatar.

    Returns:
        Row (Video, owner_username, owner_avatar) or None if not found.
        Owner columns are None when the owner record is missing.
    """
    stmt = (
        select(Video, *_OWNER_COLUMNS)
        .outerjoin(User, User.id == Video.owner_id)
        .where(Video.id == id)
    )
    result = await session.execute(stmt)
    return result.first()


async def apply_update(session: AsyncSession, video: Video, changes: VideoUpdate) -> Video:
    """
    Merge a partial update onto a loaded video record.

    Fields left as None in changes are not touched.
    """
    for name, value in changes.changes().items():
        setattr(video, name, value)
    await session.flush()
    await session.refresh(video)
    return video


async def delete_by_id(session: AsyncSession, id: uuid.UUID) -> bool:
    """
    Delete a video by id.

    Returns:
        True if deleted, False if not found
    """
    stmt = delete(Video).where(Video.id == id)
    result = await session.execute(stmt)
    return result.rowcount > 0


async def increment_views(session: AsyncSession, id: uuid.UUID) -> Optional[Video]:
    """
    Atomically add one to the view counter.

    Returns:
        Updated Video instance or None if not found
    """
    stmt = (
        update(Video)
        .where(Video.id == id)
        .values(views=Video.views + 1)
        .returning(Video)
        .execution_options(synchronize_session=False, populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def toggle_publish(session: AsyncSession, id: uuid.UUID, owner_id: uuid.UUID) -> Optional[Video]:
    """
    Flip the publish flag of a video owned by owner_id.

    Returns:
        Updated Video instance or None if no such video is owned by owner_id
    """
    stmt = (
        update(Video)
        .where(Video.id == id, Video.owner_id == owner_id)
        .values(is_published=not_(Video.is_published))
        .returning(Video)
        .execution_options(synchronize_session=False, populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


def _filter_conditions(filters: VideoFilter) -> list:
    conditions = []
    if filters.query:
        pattern = f"%{_escape_like(filters.query)}%"
        conditions.append(or_(
            Video.title.ilike(pattern, escape="\\"),
            Video.description.ilike(pattern, escape="\\"),
        ))
    if filters.user_id is not None:
        conditions.append(Video.owner_id == filters.user_id)
    return conditions


async def count(session: AsyncSession, filters: VideoFilter) -> int:
    """Count videos matching the filters, ignoring pagination."""
    stmt = select(func.count()).select_from(Video).where(*_filter_conditions(filters))
    result = await session.execute(stmt)
    return result.scalar_one()


async def list_with_owner(
    session: AsyncSession,
    filters: VideoFilter,
    page: int,
    limit: int,
) -> list[Row]:
    """
    List one page of videos left-joined with their owner summary.

    A video whose owner record is missing is still returned, with None
    owner columns.

    Args:
        session: Async database session
        filters: Search/owner filters and sort order (sort key must be in SORTABLE_FIELDS)
        page: 1-based page number
        limit: Page size

    Returns:
        List of rows (Video, owner_username, owner_avatar)
    """
    sort_column = SORTABLE_FIELDS[filters.sort_by]
    if filters.sort_direction is SortDirection.ASC:
        order = (sort_column.asc(), Video.id.asc())
    else:
        order = (sort_column.desc(), Video.id.desc())

    stmt = (
        select(Video, *_OWNER_COLUMNS)
        .outerjoin(User, User.id == Video.owner_id)
        .where(*_filter_conditions(filters))
        .order_by(*order)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.all())
