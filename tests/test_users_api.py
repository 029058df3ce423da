import threading
import uuid

import pytest

from conftest import PASSWORD, image_part, login, register
from app.api.deps import get_password_hasher
from app.core.exceptions import UserNotFoundException
from app.core.security import PasswordHasher
from app.main import app as fastapi_app
from app.services.temp_file_manager import TempFileManager
from app.services.user_service import UserService


async def test_register_returns_public_profile(client, media_host):
    response = await register(client, "Alice", with_cover=True)

    assert response.status_code == 201
    body = response.json()
    assert body["username"] == "alice"
    assert body["email"] == "Alice@example.com"
    assert body["fullName"] == "Alice Tester"
    assert body["avatar"] in media_host.stored
    assert body["coverImage"] in media_host.stored
    assert "password" not in body
    assert "passwordHash" not in body
    assert "refreshToken" not in body


async def test_register_without_cover_stores_empty_cover(client):
    response = await register(client, "bob")
    assert response.status_code == 201
    assert response.json()["coverImage"] == ""


async def test_register_failed_cover_upload_does_not_fail_registration(client, media_host):
    media_host.failing_assets.add("Cover image")
    response = await register(client, "carol", with_cover=True)

    assert response.status_code == 201
    assert response.json()["coverImage"] == ""


async def test_register_failed_avatar_upload_is_500(client, media_host):
    media_host.failing_assets.add("Avatar")
    response = await register(client, "dave")

    assert response.status_code == 500
    assert "Avatar upload failed" in response.json()["error"]


async def test_register_requires_avatar(client):
    response = await client.post(
        "/users/register",
        data={"username": "erin", "email": "erin@example.com", "fullName": "Erin", "password": PASSWORD},
    )
    assert response.status_code == 400
    assert "Avatar" in response.json()["error"]


@pytest.mark.parametrize("missing", ["username", "email", "fullName", "password"])
async def test_register_requires_every_field(client, missing):
    data = {"username": "frank", "email": "frank@example.com", "fullName": "Frank", "password": PASSWORD}
    data[missing] = "  "
    response = await client.post("/users/register", data=data, files={"avatar": image_part()})
    assert response.status_code == 400
    assert missing in response.json()["error"]


async def test_register_rejects_invalid_email(client):
    response = await register(client, "grace", email="not-an-email")
    assert response.status_code == 400
    assert "email" in response.json()["error"].lower()


async def test_register_rejects_weak_password(client, media_host):
    response = await register(client, "heidi", password="weakpass")
    assert response.status_code == 400
    assert "Password" in response.json()["error"]
    assert media_host.stored == []


@pytest.mark.parametrize("duplicate", ["username", "email"])
async def test_register_duplicate_is_conflict(client, media_host, duplicate):
    first = await register(client, "ivan", email="ivan@example.com")
    assert first.status_code == 201
    uploads_before = len(media_host.stored)

    if duplicate == "username":
        response = await register(client, "IVAN", email="other@example.com")
    else:
        response = await register(client, "someone", email="ivan@example.com")

    assert response.status_code == 409
    assert len(media_host.stored) == uploads_before


async def test_login_by_username_or_email(client):
    await register(client, "judy", email="judy@example.com")

    by_username = await login(client, "judy")
    by_email = await client.post("/users/login", json={"email": "judy@example.com", "password": PASSWORD})

    assert by_username.status_code == 200
    assert by_email.status_code == 200
    body = by_email.json()
    assert body["user"]["username"] == "judy"
    assert body["accessToken"]
    assert body["refreshToken"]


async def test_login_sets_http_only_cookies(client):
    await register(client, "kate")
    response = await client.post("/users/login", json={"username": "kate", "password": PASSWORD})

    cookies = response.headers.get_list("set-cookie")
    assert any(c.startswith("accessToken=") and "httponly" in c.lower() for c in cookies)
    assert any(c.startswith("refreshToken=") and "httponly" in c.lower() for c in cookies)


async def test_login_errors(client):
    await register(client, "leo")

    wrong_password = await login(client, "leo", "Wrong1!!")
    unknown_user = await login(client, "nobody")
    no_identifier = await client.post("/users/login", json={"password": PASSWORD})

    assert wrong_password.status_code == 401
    assert wrong_password.headers.get("WWW-Authenticate") == "Bearer"
    assert unknown_user.status_code == 404
    assert no_identifier.status_code == 400


async def test_me_requires_valid_token(client, create_user):
    user = await create_user("mallory")

    ok = await client.get("/users/me", headers=user.headers)
    missing = await client.get("/users/me")
    garbage = await client.get("/users/me", headers={"Authorization": "Bearer garbage"})

    assert ok.status_code == 200
    assert ok.json()["id"] == user.id
    assert missing.status_code == 401
    assert garbage.status_code == 401


async def test_me_accepts_cookie(client):
    await register(client, "nina")
    await client.post("/users/login", json={"username": "nina", "password": PASSWORD})

    response = await client.get("/users/me")

    assert response.status_code == 200
    assert response.json()["username"] == "nina"


async def test_refresh_token_rotates_exactly_once(client, create_user):
    user = await create_user("oscar")

    first = await client.post("/users/refresh-token", json={"refreshToken": user.refresh_token})
    assert first.status_code == 200
    rotated = first.json()
    assert rotated["refreshToken"] != user.refresh_token
    client.cookies.clear()

    replay = await client.post("/users/refresh-token", json={"refreshToken": user.refresh_token})
    assert replay.status_code == 401

    client.cookies.clear()
    second = await client.post("/users/refresh-token", json={"refreshToken": rotated["refreshToken"]})
    assert second.status_code == 200


async def test_refresh_token_from_cookie(client):
    await register(client, "peggy")
    await client.post("/users/login", json={"username": "peggy", "password": PASSWORD})

    response = await client.post("/users/refresh-token")

    assert response.status_code == 200
    assert response.json()["accessToken"]


async def test_refresh_rejects_access_token_and_missing_token(client, create_user):
    user = await create_user("quinn")

    wrong_kind = await client.post("/users/refresh-token", json={"refreshToken": user.access_token})
    missing = await client.post("/users/refresh-token")

    assert wrong_kind.status_code == 401
    assert missing.status_code == 401


async def test_logout_revokes_refresh_token(client, create_user):
    user = await create_user("rupert")

    response = await client.post("/users/logout", headers=user.headers)
    assert response.status_code == 200
    assert response.json()["message"] == "User logged out"

    refresh = await client.post("/users/refresh-token", json={"refreshToken": user.refresh_token})
    assert refresh.status_code == 401


async def test_logout_requires_auth(client):
    response = await client.post("/users/logout")
    assert response.status_code == 401


async def test_register_rejects_wrong_avatar_type(client):
    response = await client.post(
        "/users/register",
        data={"username": "sybil", "email": "sybil@example.com", "fullName": "Sybil", "password": PASSWORD},
        files={"avatar": ("avatar.txt", b"plain text", "text/plain")},
    )
    assert response.status_code == 400


async def test_register_rejects_empty_avatar(client):
    response = await client.post(
        "/users/register",
        data={"username": "trent", "email": "trent@example.com", "fullName": "Trent", "password": PASSWORD},
        files={"avatar": ("avatar.png", b"", "image/png")},
    )
    assert response.status_code == 400


async def test_login_with_mixed_case_registered_email(client):
    registered = await register(client, "carol", email="Carol@Example.COM")
    assert registered.status_code == 201
    assert registered.json()["email"] == "Carol@example.com"

    as_typed = await client.post("/users/login", json={"email": "Carol@Example.COM", "password": PASSWORD})
    as_stored = await client.post("/users/login", json={"email": "Carol@example.com", "password": PASSWORD})
    malformed = await client.post("/users/login", json={"email": "not-an-email", "password": PASSWORD})

    assert as_typed.status_code == 200
    assert as_typed.json()["user"]["username"] == "carol"
    assert as_stored.status_code == 200
    assert malformed.status_code == 404


class ThreadRecordingHasher(PasswordHasher):
    """Remembers which thread each hash and verify ran on."""

    def __init__(self):
        super().__init__(rounds=4)
        self.threads = []

    def hash(self, password: str) -> str:
        self.threads.append(threading.get_ident())
        return super().hash(password)

    def verify(self, password: str, hashed: str) -> bool:
        self.threads.append(threading.get_ident())
        return super().verify(password, hashed)


async def test_password_hashing_runs_off_the_event_loop_thread(client):
    hasher = ThreadRecordingHasher()
    fastapi_app.dependency_overrides[get_password_hasher] = lambda: hasher

    registered = await register(client, "olga")
    logged_in = await login(client, "olga")

    assert registered.status_code == 201
    assert logged_in.status_code == 200
    assert len(hasher.threads) == 2
    assert threading.get_ident() not in hasher.threads


async def test_get_profile_of_unknown_user(db_session, settings, media_host):
    service = UserService(db_session, media_host, TempFileManager(settings), PasswordHasher(rounds=4))

    with pytest.raises(UserNotFoundException):
        await service.get_profile(uuid.uuid4())
