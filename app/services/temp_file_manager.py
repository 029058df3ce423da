"""
Temp File Manager -- staging of multipart uploads on local disk.

Every upload endpoint (avatar, cover image, video file, thumbnail) streams
the incoming part into a single, structured temp tree before it is handed
to the media host:

    temp/
    ├── avatars/{uuid}{ext}
    ├── covers/{uuid}{ext}
    ├── videos/{uuid}{ext}
    └── thumbnails/{uuid}{ext}

A staged file is removed as soon as the media host call returns, whether
the upload succeeded or not.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiofiles
from fastapi import UploadFile

from app.core.config import Settings
from app.core.exceptions import ValidationException

logger = logging.getLogger(__name__)

# Valid purpose directories within the temp tree
VALID_PURPOSES = {"avatars", "covers", "videos", "thumbnails"}

# Accepted content type family per purpose
_CONTENT_TYPE_PREFIX = {
    "avatars": "image/",
    "covers": "image/",
    "videos": "video/",
    "thumbnails": "image/",
}


class TempFileManager:
    """Stages uploads under settings.temp_base_dir."""

    def __init__(self, settings: Settings):
        self.base = Path(settings.temp_base_dir)
        self.chunk_size = settings.upload_chunk_size
        self.max_sizes = {
            "avatars": settings.max_image_size_bytes,
            "covers": settings.max_image_size_bytes,
            "videos": settings.max_video_size_bytes,
            "thumbnails": settings.max_image_size_bytes,
        }

    def get_temp_dir(self, purpose: str) -> Path:
        """
        Return (and create) the temp subdirectory for a purpose.

        Raises:
            ValueError: for an unknown purpose
        """
        if purpose not in VALID_PURPOSES:
            raise ValueError(f"Invalid temp purpose '{purpose}'. Must be one of: {VALID_PURPOSES}")
        target = self.base / purpose
        target.mkdir(parents=True, exist_ok=True)
        return target

    def _check_content_type(self, upload: UploadFile, purpose: str, label: str) -> None:
        content_type = upload.content_type or ""
        expected = _CONTENT_TYPE_PREFIX[purpose]
        # Clients that send no specific type are let through
        if content_type and content_type != "application/octet-stream" and not content_type.startswith(expected):
            raise ValidationException(f"{label} must be a {expected.rstrip('/')} file, got {content_type}")

    async def stage(self, upload: UploadFile, purpose: str, label: str) -> Path:
        """
        Stream an uploaded part to disk.

        Args:
            upload: Incoming multipart file
            purpose: One of VALID_PURPOSES
            label: Field name used in error messages

        Returns:
            Path of the staged file

        Raises:
            ValidationException: wrong content type, empty file or file too large
        """
        self._check_content_type(upload, purpose, label)

        suffix = Path(upload.filename or "").suffix.lower()
        destination = self.get_temp_dir(purpose) / f"{uuid.uuid4().hex}{suffix}"
        max_size = self.max_sizes[purpose]
        written = 0

        try:
            async with aiofiles.open(destination, "wb") as f:
                while True:
                    chunk = await upload.read(self.chunk_size)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > max_size:
                        raise ValidationException(f"{label} exceeds the {max_size} byte limit")
                    await f.write(chunk)
        except Exception:
            self.discard(destination)
            raise

        if written == 0:
            self.discard(destination)
            raise ValidationException(f"{label} is empty")

        logger.debug(f"Staged {label} ({written} bytes) at {destination}")
        return destination

    def discard(self, path: Optional[Path]) -> None:
        """Remove a staged file, ignoring files that are already gone."""
        if path is None:
            return
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove staged file {path}: {e}")

    @asynccontextmanager
    async def staged(self, upload: Optional[UploadFile], purpose: str, label: str) -> AsyncIterator[Optional[Path]]:
        """
        Stage an optional upload for the duration of a block.

        Yields None when no file was sent.
        """
        if upload is None:
            yield None
            return

        path = await self.stage(upload, purpose, label)
        try:
            yield path
        finally:
            self.discard(path)
