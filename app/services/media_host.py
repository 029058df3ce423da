"""
Media host adapter.

Stores staged files on Google Cloud Storage and removes them again by
their remote id. The remote id is derived from the public URL (last path
segment without extension), so records only ever store the URL.
"""
import asyncio
import logging
import mimetypes
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from google.cloud import storage
from google.oauth2 import service_account
import google.auth

from app.core.config import Settings
from app.core.exceptions import UploadFailedException
from app.models.domain import StoredAsset
from app.utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)


def remote_id_from_url(url: str) -> str:
    """
    Derive the remote id from a stored URL.

    https://host/bucket/media/3f2a...c1.mp4 -> 3f2a...c1
    """
    path = urlparse(url).path if "://" in url else url
    filename = path.rstrip("/").split("/")[-1]
    return filename.split(".")[0]


class MediaHost(ABC):
    """Store-by-path / remove-by-id contract used by the video and user services."""

    @abstractmethod
    async def store(self, local_path: Path, asset: str = "File") -> StoredAsset:
        """
        Upload a local file.

        Raises:
            UploadFailedException: if the file could not be stored
        """

    @abstractmethod
    async def remove(self, remote_id: str) -> bool:
        """Best-effort delete. Returns False on any failure, never raises."""

    async def remove_url(self, url: Optional[str]) -> bool:
        """Best-effort delete of the asset behind a stored URL."""
        if not url:
            return False
        return await self.remove(remote_id_from_url(url))


class GCSMediaHost(MediaHost):
    """Media host backed by a public Google Cloud Storage bucket."""

    def __init__(self, settings: Settings, client: Optional[storage.Client] = None):
        self.settings = settings
        self.prefix = settings.gcs_media_prefix
        self.upload_timeout = settings.media_upload_timeout_seconds
        self.delete_timeout = settings.media_delete_timeout_seconds
        self.max_retries = settings.media_upload_retry_count
        self.retry_base_delay = settings.media_upload_retry_base_delay

        self.client = client if client is not None else self._init_client()
        self.bucket = self.client.bucket(settings.gcs_bucket_name)

    def _init_client(self) -> storage.Client:
        """Service account file if configured, otherwise Application Default Credentials."""
        credentials_path = self.settings.gcs_credentials_path

        if credentials_path and credentials_path.exists():
            logger.info(f"Using GCS service account from: {credentials_path}")
            credentials = service_account.Credentials.from_service_account_file(
                str(credentials_path),
                scopes=['https://www.googleapis.com/auth/cloud-platform']
            )
            return storage.Client(credentials=credentials, project=credentials.project_id)

        if credentials_path:
            logger.warning(f"Service account file not found: {credentials_path}")
        logger.info("GCS client initialized with Application Default Credentials")
        try:
            return storage.Client()
        except Exception as e:
            if "project" not in str(e).lower():
                raise
            logger.warning("Could not auto-detect project, using bucket-specific access")
            credentials, _ = google.auth.default()
            return storage.Client(credentials=credentials, project=None)

    def object_name_for(self, local_path: Path) -> str:
        """Fresh object name keeping the original extension."""
        return f"{self.prefix}{uuid.uuid4().hex}{local_path.suffix.lower()}"

    async def store(self, local_path: Path, asset: str = "File") -> StoredAsset:
        local_path = Path(local_path)
        if not local_path.exists():
            raise UploadFailedException(asset, f"staged file not found: {local_path.name}")

        object_name = self.object_name_for(local_path)
        content_type = mimetypes.guess_type(local_path.name)[0] or "application/octet-stream"
        blob = self.bucket.blob(object_name)
        loop = asyncio.get_running_loop()

        async def _do_upload():
            upload = loop.run_in_executor(
                None,
                lambda: blob.upload_from_filename(str(local_path), content_type=content_type),
            )
            done, _ = await asyncio.wait({upload}, timeout=self.upload_timeout)
            if not done:
                # Not retried, the worker thread is still running
                logger.warning(f"Upload of {object_name} abandoned after {self.upload_timeout}s")
                raise UploadFailedException(asset, f"timed out after {self.upload_timeout}s")
            upload.result()

        try:
            await retry_with_backoff(
                _do_upload,
                max_retries=self.max_retries,
                base_delay=self.retry_base_delay,
                operation_name=f"Upload {object_name}",
            )
        except UploadFailedException:
            raise
        except Exception as e:
            logger.error(f"{asset} upload to GCS failed: {type(e).__name__}: {e}")
            raise UploadFailedException(asset, str(e) or type(e).__name__)

        url = self.settings.get_public_url(object_name)
        logger.info(f"Uploaded {asset.lower()} to {url}")
        return StoredAsset(url=url, remote_id=remote_id_from_url(url))

    async def remove(self, remote_id: str) -> bool:
        if not remote_id:
            return False

        prefix = f"{self.prefix}{remote_id}"
        loop = asyncio.get_running_loop()

        def _delete_matching() -> int:
            deleted = 0
            for blob in self.bucket.list_blobs(prefix=prefix):
                # Only the object whose stem is exactly remote_id
                if remote_id_from_url(blob.name) != remote_id:
                    continue
                blob.delete()
                deleted += 1
            return deleted

        try:
            deleted = await asyncio.wait_for(
                loop.run_in_executor(None, _delete_matching),
                timeout=self.delete_timeout,
            )
        except Exception as e:
            logger.error(f"Failed to delete GCS object {prefix}: {type(e).__name__}: {e}")
            return False

        if deleted == 0:
            logger.warning(f"GCS object not found (already deleted?): {prefix}")
            return False

        logger.info(f"Deleted {deleted} GCS object(s) for {remote_id}")
        return True
