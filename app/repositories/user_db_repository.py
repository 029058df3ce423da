"""
User database repository - CRUD operations for the users table,
including the single stored refresh token.
"""
import uuid
from typing import Optional
from sqlalchemy import select, update, or_, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models.user import User


async def create(
    session: AsyncSession,
    username: str,
    email: str,
    full_name: str,
    password_hash: str,
    avatar: str,
    cover_image: str = "",
) -> User:
    """
    Create a new user record.

    Raises:
        IntegrityError: If username or email already exists
    """
    user = User(
        username=username.lower(),
        email=email,
        full_name=full_name,
        password_hash=password_hash,
        avatar=avatar,
        cover_image=cover_image,
    )
    session.add(user)
    await session.flush()
    await session.refresh(user)
    return user


async def get_by_id(session: AsyncSession, id: uuid.UUID) -> Optional[User]:
    """Get a user by primary key."""
    stmt = select(User).where(User.id == id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def exists(session: AsyncSession, id: uuid.UUID) -> bool:
    """Check whether a user with this id exists."""
    stmt = select(func.count()).select_from(User).where(User.id == id)
    result = await session.execute(stmt)
    return result.scalar_one() > 0


async def find_by_username_or_email(
    session: AsyncSession,
    username: Optional[str] = None,
    email: Optional[str] = None,
) -> Optional[User]:
    """
    Find the first user matching the username (case-insensitive) or the email.

    Returns:
        User instance or None if neither field matches (or both are empty)
    """
    conditions = []
    if username:
        conditions.append(User.username == username.strip().lower())
    if email:
        conditions.append(User.email == email.strip())
    if not conditions:
        return None

    stmt = select(User).where(or_(*conditions)).limit(1)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def set_refresh_token(session: AsyncSession, id: uuid.UUID, refresh_token: Optional[str]) -> bool:
    """
    Unconditionally replace (or clear, with None) the stored refresh token.

    Returns:
        True if the user exists
    """
    stmt = (
        update(User)
        .where(User.id == id)
        .values(refresh_token=refresh_token)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount > 0


async def replace_refresh_token(
    session: AsyncSession,
    id: uuid.UUID,
    expected_token: str,
    new_token: str,
) -> bool:
    """
    Swap the stored refresh token only if it still equals expected_token.

    Of two concurrent rotations presenting the same token, only one sees
    rowcount 1; the other finds the token already replaced.

    Returns:
        True if the token was replaced
    """
    stmt = (
        update(User)
        .where(User.id == id, User.refresh_token == expected_token)
        .values(refresh_token=new_token)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount == 1
