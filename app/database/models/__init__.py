"""
Database models package.
All models must be imported here so Alembic can discover them via Base.metadata.
"""
from app.database.models.user import User
from app.database.models.video import Video
from app.database.models.subscription import Subscription

__all__ = [
    "User",
    "Video",
    "Subscription",
]
