"""
FastAPI dependencies for database session injection.
"""
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.session import get_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session.

    Usage in endpoints:
        @router.get("/videos/{video_id}")
        async def get_video(video_id: str, db: AsyncSession = Depends(get_db)):
            return await video_db_repository.get_with_owner(db, video_id)

    The session is committed on success or rolled back on error. Services
    that must order a commit before a side effect (remote asset cleanup)
    commit explicitly; the final commit here is then a no-op.
    """
    session_factory = get_session_factory()

    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
