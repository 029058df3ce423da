"""
Database package.
Provides async SQLAlchemy engine, session management, and ORM models.
"""
from app.database.base import Base
from app.database.session import init_db, close_db
from app.database.dependencies import get_db

__all__ = [
    "Base",
    "init_db",
    "close_db",
    "get_db",
]
