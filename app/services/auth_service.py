"""
Authentication service.

Issues and validates access/refresh token pairs and verifies credentials.
Each user has at most one active refresh token, stored on the user row;
issuing a new pair replaces it and logout clears it.
"""
import asyncio
import logging
import uuid
from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.exceptions import UnauthorizedException, UserNotFoundException, ValidationException
from app.core.security import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    PasswordHasher,
    create_token,
    decode_token,
    normalize_email,
)
from app.database.models.user import User
from app.models.domain import TokenPair
from app.repositories import user_db_repository

logger = logging.getLogger(__name__)


class AuthService:
    """Token issuing, rotation and credential checks."""

    def __init__(self, session: AsyncSession, settings: Settings, hasher: PasswordHasher):
        self.session = session
        self.settings = settings
        self.hasher = hasher

    def _access_token(self, user: User) -> str:
        return create_token(
            subject=str(user.id),
            token_type=ACCESS_TOKEN_TYPE,
            secret=self.settings.access_token_secret,
            algorithm=self.settings.jwt_algorithm,
            expires_delta=timedelta(minutes=self.settings.access_token_expire_minutes),
            claims={"username": user.username, "email": user.email},
        )

    def _refresh_token(self, user: User) -> str:
        return create_token(
            subject=str(user.id),
            token_type=REFRESH_TOKEN_TYPE,
            secret=self.settings.refresh_token_secret,
            algorithm=self.settings.jwt_algorithm,
            expires_delta=timedelta(days=self.settings.refresh_token_expire_days),
        )

    @staticmethod
    def _subject(payload: dict, token_type: str) -> uuid.UUID:
        try:
            return uuid.UUID(payload["sub"])
        except (KeyError, ValueError):
            raise UnauthorizedException(f"Invalid {token_type} token")

    async def issue_token_pair(self, user: User) -> TokenPair:
        """Sign a new pair and persist the refresh token, replacing any previous one."""
        pair = TokenPair(
            access_token=self._access_token(user),
            refresh_token=self._refresh_token(user),
        )
        await user_db_repository.set_refresh_token(self.session, user.id, pair.refresh_token)
        logger.info(f"Issued token pair for user {user.id}")
        return pair

    async def verify_access(self, token: Optional[str]) -> User:
        """
        Resolve the user behind an access token.

        Raises:
            UnauthorizedException: missing, expired or invalid token, or deleted user
        """
        if not token:
            raise UnauthorizedException("Unauthorized request")

        payload = decode_token(
            token,
            ACCESS_TOKEN_TYPE,
            self.settings.access_token_secret,
            self.settings.jwt_algorithm,
        )
        user = await user_db_repository.get_by_id(self.session, self._subject(payload, ACCESS_TOKEN_TYPE))
        if user is None:
            raise UnauthorizedException("Invalid access token")
        return user

    async def rotate_refresh(self, presented_token: Optional[str]) -> tuple[User, TokenPair]:
        """
        Exchange a refresh token for a new pair.

        The presented token must match the one stored on the user. The swap
        is a conditional update keyed on that token, so a replayed or
        concurrently rotated token is rejected even if its signature is valid.

        Raises:
            UnauthorizedException: missing, invalid, expired, stale or replayed token
        """
        if not presented_token:
            raise UnauthorizedException("Unauthorized request")

        payload = decode_token(
            presented_token,
            REFRESH_TOKEN_TYPE,
            self.settings.refresh_token_secret,
            self.settings.jwt_algorithm,
        )
        user = await user_db_repository.get_by_id(self.session, self._subject(payload, REFRESH_TOKEN_TYPE))
        if user is None:
            raise UnauthorizedException("Invalid refresh token")

        if user.refresh_token != presented_token:
            logger.warning(f"Stale refresh token presented for user {user.id}")
            raise UnauthorizedException("Refresh token is expired or used")

        pair = TokenPair(
            access_token=self._access_token(user),
            refresh_token=self._refresh_token(user),
        )
        replaced = await user_db_repository.replace_refresh_token(
            self.session, user.id, presented_token, pair.refresh_token
        )
        if not replaced:
            logger.warning(f"Concurrent refresh token rotation lost for user {user.id}")
            raise UnauthorizedException("Refresh token is expired or used")

        logger.info(f"Rotated refresh token for user {user.id}")
        return user, pair

    async def verify_credentials(
        self,
        password: Optional[str],
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        """
        Look a user up by username or email and check the password.

        Raises:
            ValidationException: neither username nor email (or no password) given
            UserNotFoundException: no matching user
            UnauthorizedException: wrong password
        """
        if not (username and username.strip()) and not (email and email.strip()):
            raise ValidationException("username or email is required")
        if not password:
            raise ValidationException("password is required")

        lookup_email = None
        if email and email.strip():
            try:
                lookup_email = normalize_email(email)
            except ValidationException:
                # Stored addresses are always valid, so this one matches nobody
                lookup_email = None

        user = await user_db_repository.find_by_username_or_email(
            self.session, username=username, email=lookup_email
        )
        if user is None:
            raise UserNotFoundException(username or email)

        loop = asyncio.get_running_loop()
        valid = await loop.run_in_executor(None, self.hasher.verify, password, user.password_hash)
        if not valid:
            logger.warning(f"Invalid password for user {user.id}")
            raise UnauthorizedException("Invalid user credentials")
        return user

    async def revoke(self, user_id: uuid.UUID) -> None:
        """Clear the stored refresh token (logout)."""
        await user_db_repository.set_refresh_token(self.session, user_id, None)
        logger.info(f"Revoked refresh token for user {user_id}")
