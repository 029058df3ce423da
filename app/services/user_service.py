"""
User account service - registration and profile lookup.
"""
import asyncio
import logging
import uuid
from typing import Optional

from fastapi import UploadFile
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    UploadFailedException,
    UserAlreadyExistsException,
    UserNotFoundException,
    ValidationException,
)
from app.core.security import PasswordHasher, normalize_email, validate_password_policy
from app.database.models.user import User
from app.repositories import user_db_repository
from app.services.media_host import MediaHost
from app.services.temp_file_manager import TempFileManager

logger = logging.getLogger(__name__)


class UserService:
    """Creates accounts and reads profiles."""

    def __init__(
        self,
        session: AsyncSession,
        media_host: MediaHost,
        temp_files: TempFileManager,
        hasher: PasswordHasher,
    ):
        self.session = session
        self.media_host = media_host
        self.temp_files = temp_files
        self.hasher = hasher

    async def register(
        self,
        username: Optional[str],
        email: Optional[str],
        full_name: Optional[str],
        password: Optional[str],
        avatar: Optional[UploadFile],
        cover_image: Optional[UploadFile] = None,
    ) -> User:
        """
        Create an account.

        Checks run in order: required fields, email syntax, password policy,
        username/email uniqueness, avatar presence. Only then are the images
        uploaded. A failed cover image upload is logged and stored as empty.

        Raises:
            ValidationException: missing field, bad email, weak password, missing avatar
            UserAlreadyExistsException: username or email taken
            UploadFailedException: avatar upload failed
        """
        fields = {"username": username, "email": email, "fullName": full_name, "password": password}
        missing = [name for name, value in fields.items() if not value or not value.strip()]
        if missing:
            raise ValidationException(f"All fields are required, missing: {', '.join(missing)}")

        username = username.strip().lower()
        email = normalize_email(email)

        validate_password_policy(password)

        existing = await user_db_repository.find_by_username_or_email(self.session, username=username, email=email)
        if existing is not None:
            raise UserAlreadyExistsException(username, email)

        if avatar is None:
            raise ValidationException("Avatar file is required")

        async with self.temp_files.staged(avatar, "avatars", "Avatar") as avatar_path:
            stored_avatar = await self.media_host.store(avatar_path, asset="Avatar")

        cover_url = ""
        if cover_image is not None:
            try:
                async with self.temp_files.staged(cover_image, "covers", "Cover image") as cover_path:
                    cover_url = (await self.media_host.store(cover_path, asset="Cover image")).url
            except (UploadFailedException, ValidationException) as e:
                logger.warning(f"Cover image skipped for {username}: {e.message}")

        loop = asyncio.get_running_loop()
        password_hash = await loop.run_in_executor(None, self.hasher.hash, password)

        try:
            user = await user_db_repository.create(
                self.session,
                username=username,
                email=email,
                full_name=full_name.strip(),
                password_hash=password_hash,
                avatar=stored_avatar.url,
                cover_image=cover_url,
            )
        except IntegrityError:
            # Lost a race with a concurrent registration
            await self.session.rollback()
            raise UserAlreadyExistsException(username, email)

        logger.info(f"Registered user {user.id} ({username})")
        return user

    async def get_profile(self, user_id: uuid.UUID) -> User:
        """
        Raises:
            UserNotFoundException: no such user
        """
        user = await user_db_repository.get_by_id(self.session, user_id)
        if user is None:
            raise UserNotFoundException(str(user_id))
        return user
