import time
from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as google_exceptions

from app.core.exceptions import UploadFailedException, ValidationException
from app.services.media_host import GCSMediaHost, remote_id_from_url
from app.services.temp_file_manager import TempFileManager
from app.utils.retry import is_transient_error, retry_with_backoff


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://storage.googleapis.com/bucket/media/abc123.mp4", "abc123"),
        ("https://storage.googleapis.com/bucket/media/abc123.tar.gz", "abc123"),
        ("https://media.test/abc123", "abc123"),
        ("media/abc123.png", "abc123"),
    ],
)
def test_remote_id_from_url(url, expected):
    assert remote_id_from_url(url) == expected


@pytest.fixture
def gcs_settings(settings):
    settings.media_upload_retry_base_delay = 0
    settings.gcs_bucket_name = "test-bucket"
    return settings


@pytest.fixture
def gcs_client():
    client = MagicMock()
    client.bucket.return_value = MagicMock()
    return client


@pytest.fixture
def staged_file(tmp_path):
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"video bytes")
    return path


async def test_store_uploads_and_returns_public_url(gcs_settings, gcs_client, staged_file):
    host = GCSMediaHost(gcs_settings, client=gcs_client)

    stored = await host.store(staged_file, asset="Video file")

    gcs_client.bucket.assert_called_once_with("test-bucket")
    object_name = gcs_client.bucket.return_value.blob.call_args.args[0]
    assert object_name.startswith("media/")
    assert object_name.endswith(".mp4")
    assert stored.url == f"https://storage.googleapis.com/test-bucket/{object_name}"
    assert stored.remote_id == remote_id_from_url(stored.url)
    blob = gcs_client.bucket.return_value.blob.return_value
    blob.upload_from_filename.assert_called_once()
    assert blob.upload_from_filename.call_args.kwargs["content_type"] == "video/mp4"


async def test_store_retries_transient_errors(gcs_settings, gcs_client, staged_file):
    blob = gcs_client.bucket.return_value.blob.return_value
    blob.upload_from_filename.side_effect = [google_exceptions.ServiceUnavailable("busy"), None]
    host = GCSMediaHost(gcs_settings, client=gcs_client)

    await host.store(staged_file)

    assert blob.upload_from_filename.call_count == 2


async def test_store_fails_on_permanent_error(gcs_settings, gcs_client, staged_file):
    blob = gcs_client.bucket.return_value.blob.return_value
    blob.upload_from_filename.side_effect = google_exceptions.Forbidden("denied")
    host = GCSMediaHost(gcs_settings, client=gcs_client)

    with pytest.raises(UploadFailedException) as exc_info:
        await host.store(staged_file, asset="Thumbnail")

    assert blob.upload_from_filename.call_count == 1
    assert exc_info.value.status_code == 500
    assert exc_info.value.message.startswith("Thumbnail upload failed")


async def test_store_timeout_is_not_retried(gcs_settings, gcs_client, staged_file):
    gcs_settings.media_upload_timeout_seconds = 0.05
    blob = gcs_client.bucket.return_value.blob.return_value
    blob.upload_from_filename.side_effect = lambda *args, **kwargs: time.sleep(0.3)
    host = GCSMediaHost(gcs_settings, client=gcs_client)

    with pytest.raises(UploadFailedException) as exc_info:
        await host.store(staged_file, asset="Video file")

    assert blob.upload_from_filename.call_count == 1
    assert "timed out" in exc_info.value.message


async def test_store_missing_file(gcs_settings, gcs_client, tmp_path):
    host = GCSMediaHost(gcs_settings, client=gcs_client)
    with pytest.raises(UploadFailedException):
        await host.store(tmp_path / "gone.mp4")


def _blob(name):
    blob = MagicMock()
    blob.name = name
    return blob


async def test_remove_deletes_only_exact_match(gcs_settings, gcs_client):
    exact = _blob("media/abc.mp4")
    longer = _blob("media/abcdef.mp4")
    gcs_client.bucket.return_value.list_blobs.return_value = [exact, longer]
    host = GCSMediaHost(gcs_settings, client=gcs_client)

    assert await host.remove("abc") is True

    gcs_client.bucket.return_value.list_blobs.assert_called_once_with(prefix="media/abc")
    exact.delete.assert_called_once()
    longer.delete.assert_not_called()


async def test_remove_never_raises(gcs_settings, gcs_client):
    gcs_client.bucket.return_value.list_blobs.side_effect = google_exceptions.ServiceUnavailable("down")
    host = GCSMediaHost(gcs_settings, client=gcs_client)

    assert await host.remove("abc") is False
    assert await host.remove("") is False
    assert await host.remove_url(None) is False


async def test_remove_reports_missing_object(gcs_settings, gcs_client):
    gcs_client.bucket.return_value.list_blobs.return_value = []
    host = GCSMediaHost(gcs_settings, client=gcs_client)

    assert await host.remove_url("https://storage.googleapis.com/test-bucket/media/abc.mp4") is False


def test_transient_error_classification():
    assert is_transient_error(google_exceptions.TooManyRequests("slow down"))
    assert is_transient_error(TimeoutError())
    assert not is_transient_error(google_exceptions.NotFound("missing"))
    assert not is_transient_error(ValueError("bad"))


async def test_retry_with_backoff_gives_up_after_max_retries():
    calls = []

    async def flaky():
        calls.append(1)
        raise ConnectionError("reset")

    with pytest.raises(ConnectionError):
        await retry_with_backoff(flaky, max_retries=2, base_delay=0)
    assert len(calls) == 3


class _Upload:
    """Minimal stand-in for a multipart part."""

    def __init__(self, data: bytes, filename: str = "a.png", content_type: str = "image/png"):
        self._data = data
        self.filename = filename
        self.content_type = content_type

    async def read(self, size: int = -1) -> bytes:
        chunk, self._data = self._data[:size], self._data[size:]
        return chunk


async def test_temp_file_manager_stages_and_discards(settings):
    manager = TempFileManager(settings)

    async with manager.staged(_Upload(b"image"), "avatars", "Avatar") as path:
        assert path.read_bytes() == b"image"
        assert path.parent == settings.temp_base_dir / "avatars"
        assert path.suffix == ".png"

    assert not path.exists()


async def test_temp_file_manager_enforces_size_limit(settings):
    settings.max_image_size_bytes = 4
    settings.upload_chunk_size = 2
    manager = TempFileManager(settings)

    with pytest.raises(ValidationException):
        await manager.stage(_Upload(b"too large"), "covers", "Cover image")

    assert list((settings.temp_base_dir / "covers").iterdir()) == []


async def test_temp_file_manager_yields_none_without_upload(settings):
    async with TempFileManager(settings).staged(None, "thumbnails", "Thumbnail") as path:
        assert path is None


def test_temp_file_manager_rejects_unknown_purpose(settings):
    with pytest.raises(ValueError):
        TempFileManager(settings).get_temp_dir("secrets")
