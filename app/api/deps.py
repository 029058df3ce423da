"""
Dependency injection for FastAPI endpoints.
Provides singleton instances and factory functions for services.
"""
from functools import lru_cache
from typing import Optional, Tuple

from fastapi import Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.exceptions import ValidationException
from app.core.security import PasswordHasher
from app.database.dependencies import get_db
from app.database.models.user import User
from app.services.auth_service import AuthService
from app.services.media_host import GCSMediaHost, MediaHost
from app.services.subscription_service import SubscriptionService
from app.services.temp_file_manager import TempFileManager
from app.services.user_service import UserService
from app.services.video_service import VideoService

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"

# Global singleton instances
_media_host: Optional[MediaHost] = None


@lru_cache()
def get_app_settings() -> Settings:
    """
    Get application settings (cached).

    Returns:
        Settings instance
    """
    return get_settings()


@lru_cache()
def _password_hasher(rounds: int) -> PasswordHasher:
    return PasswordHasher(rounds=rounds)


def get_password_hasher(settings: Settings = Depends(get_app_settings)) -> PasswordHasher:
    """Password hasher configured with the settings' cost factor."""
    return _password_hasher(settings.password_hash_rounds)


def get_media_host(settings: Settings = Depends(get_app_settings)) -> MediaHost:
    """
    Get media host singleton.

    Returns:
        GCSMediaHost instance
    """
    global _media_host
    if _media_host is None:
        _media_host = GCSMediaHost(settings)
    return _media_host


def get_temp_file_manager(settings: Settings = Depends(get_app_settings)) -> TempFileManager:
    return TempFileManager(settings)


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> AuthService:
    return AuthService(db, settings, hasher)


def get_user_service(
    db: AsyncSession = Depends(get_db),
    media_host: MediaHost = Depends(get_media_host),
    temp_files: TempFileManager = Depends(get_temp_file_manager),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> UserService:
    return UserService(db, media_host, temp_files, hasher)


def get_subscription_service(db: AsyncSession = Depends(get_db)) -> SubscriptionService:
    return SubscriptionService(db)


def get_video_service(
    db: AsyncSession = Depends(get_db),
    media_host: MediaHost = Depends(get_media_host),
    temp_files: TempFileManager = Depends(get_temp_file_manager),
) -> VideoService:
    return VideoService(db, media_host, temp_files)


def extract_access_token(request: Request) -> Optional[str]:
    """Access token from the accessToken cookie or an Authorization: Bearer header."""
    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if token:
        return token
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


async def get_current_user(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """
    Resolve the authenticated user.

    Raises:
        UnauthorizedException: no valid access token
    """
    return await auth_service.verify_access(extract_access_token(request))


def cleanup_resources():
    """Clean up resources on application shutdown."""
    global _media_host
    _media_host = None


def get_page_params(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    settings: Settings = Depends(get_app_settings),
) -> Tuple[int, int]:
    """
    Validated (page, limit) for paged listings.

    Raises:
        ValidationException: limit above the configured maximum
    """
    if limit is None:
        limit = settings.default_page_size
    if limit > settings.max_page_size:
        raise ValidationException(f"limit must be at most {settings.max_page_size}")
    return page, limit
