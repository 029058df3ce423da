"""
Shared fixtures: a file-backed SQLite database, an in-memory media host
and an HTTP client wired to the FastAPI app through dependency overrides.
"""
import os
import tempfile
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Keep app.main's import-time logging setup out of the source tree
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="vidshare-test-logs-"))

from app.api.deps import get_app_settings, get_media_host  # noqa: E402
from app.core.config import Settings  # noqa: E402
from app.core.exceptions import UploadFailedException  # noqa: E402
from app.database.base import Base  # noqa: E402
from app.database.dependencies import get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.domain import StoredAsset  # noqa: E402
from app.services.media_host import MediaHost, remote_id_from_url  # noqa: E402

PASSWORD = "Secret1!"


class FakeMediaHost(MediaHost):
    """Records stored and removed assets instead of talking to a bucket."""

    def __init__(self):
        self.stored: List[str] = []
        self.removed: List[str] = []
        self.failing_assets: Set[str] = set()
        self.refuse_removal = False

    async def store(self, local_path: Path, asset: str = "File") -> StoredAsset:
        local_path = Path(local_path)
        if asset in self.failing_assets:
            raise UploadFailedException(asset, "simulated outage")
        if not local_path.exists():
            raise UploadFailedException(asset, "staged file missing")
        url = f"https://media.test/vidshare-media/media/{uuid.uuid4().hex}{local_path.suffix}"
        self.stored.append(url)
        return StoredAsset(url=url, remote_id=remote_id_from_url(url))

    async def remove(self, remote_id: str) -> bool:
        if self.refuse_removal:
            return False
        self.removed.append(remote_id)
        return True


@dataclass
class AuthedUser:
    id: str
    username: str
    access_token: str
    refresh_token: str
    profile: Dict = field(default_factory=dict)

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}


def image_part(name: str = "avatar.png"):
    return (name, b"\x89PNG\r\n\x1a\nfake image bytes", "image/png")


def video_part(name: str = "clip.mp4"):
    return (name, b"\x00\x00\x00\x18ftypmp42fake video bytes", "video/mp4")


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        access_token_secret="test-access-secret-0123456789abcdef",
        refresh_token_secret="test-refresh-secret-0123456789abcdef",
        password_hash_rounds=4,
        cookie_secure=False,
        temp_base_dir=tmp_path / "temp",
        log_dir=tmp_path / "logs",
    )


@pytest.fixture
async def engine(settings):
    engine = create_async_engine(settings.database_url)

    # pysqlite's implicit transactions break SAVEPOINT; issue BEGIN ourselves.
    # IMMEDIATE serializes writers the way row locks would on Postgres.
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def media_host() -> FakeMediaHost:
    return FakeMediaHost()


@pytest.fixture
async def client(settings, session_factory, media_host):
    async def _get_test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_app_settings] = lambda: settings
    app.dependency_overrides[get_media_host] = lambda: media_host

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def register(client: AsyncClient, username: str, email: Optional[str] = None,
                   password: str = PASSWORD, with_cover: bool = False, **overrides):
    data = {
        "username": username,
        "email": email or f"{username}@example.com",
        "fullName": f"{username.title()} Tester",
        "password": password,
    }
    data.update(overrides)
    files = {"avatar": image_part()}
    if with_cover:
        files["coverImage"] = image_part("cover.jpg")
    return await client.post("/users/register", data=data, files=files)


async def login(client: AsyncClient, username: str, password: str = PASSWORD):
    response = await client.post("/users/login", json={"username": username, "password": password})
    # Tests authenticate with explicit headers; drop the cookies the client just stored
    client.cookies.clear()
    return response


@pytest.fixture
def create_user(client):
    async def _create(username: str, password: str = PASSWORD) -> AuthedUser:
        registered = await register(client, username, password=password)
        assert registered.status_code == 201, registered.text
        logged_in = await login(client, username, password)
        assert logged_in.status_code == 200, logged_in.text
        body = logged_in.json()
        return AuthedUser(
            id=registered.json()["id"],
            username=username,
            access_token=body["accessToken"],
            refresh_token=body["refreshToken"],
            profile=registered.json(),
        )
    return _create


@pytest.fixture
def publish_video(client):
    async def _publish(user: AuthedUser, title: str = "My first video",
                       description: str = "A short description", duration: str = "120"):
        response = await client.post(
            "/videos",
            data={"title": title, "description": description, "duration": duration},
            files={"videoFile": video_part(), "thumbnail": image_part("thumb.jpg")},
            headers=user.headers,
        )
        assert response.status_code == 201, response.text
        return response.json()
    return _publish
