"""
Database session management.
Provides async SQLAlchemy engine, session factory, and lifecycle functions.
"""
import logging
from typing import Optional
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker

from app.core.config import Settings

logger = logging.getLogger(__name__)

# Global engine instance (initialized at startup)
_engine: Optional[AsyncEngine] = None
_async_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


async def init_db(settings: Settings) -> None:
    """
    Initialize the database engine and session factory.
    Called once at application startup.
    """
    global _engine, _async_session_factory

    engine_kwargs = {"echo": settings.database_echo}
    if not settings.is_sqlite:
        engine_kwargs.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
            pool_pre_ping=True,
        )

    _engine = create_async_engine(settings.database_url, **engine_kwargs)
    _async_session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    logger.info("Database engine initialized")


async def close_db() -> None:
    """
    Close the database engine and cleanup resources.
    Called once at application shutdown.
    """
    global _engine, _async_session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None
        logger.info("Database engine disposed")


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Get the async session factory.
    Used by dependencies.py.
    """
    if _async_session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _async_session_factory


async def ping(session: AsyncSession) -> bool:
    """Return True if the database answers a trivial query."""
    try:
        await session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database ping failed: {e}")
        return False
