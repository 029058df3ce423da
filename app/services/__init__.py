"""
Services layer for the VidShare application.
Contains business logic and orchestration for accounts, subscriptions and videos.
"""

from app.services.auth_service import AuthService
from app.services.user_service import UserService
from app.services.subscription_service import SubscriptionService
from app.services.video_service import VideoService
from app.services.media_host import MediaHost, GCSMediaHost, remote_id_from_url
from app.services.temp_file_manager import TempFileManager

__all__ = [
    "AuthService",
    "UserService",
    "SubscriptionService",
    "VideoService",

    # Media host
    "MediaHost",
    "GCSMediaHost",
    "remote_id_from_url",
    "TempFileManager",
]
