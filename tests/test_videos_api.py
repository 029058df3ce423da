import asyncio
import logging
import uuid

import pytest

from conftest import image_part, video_part
from app.services.media_host import remote_id_from_url


async def test_publish_video(client, create_user, publish_video, media_host):
    alice = await create_user("alice")

    video = await publish_video(alice, title="  Trip  ", description="Mountains", duration="95.7")

    assert video["title"] == "Trip"
    assert video["duration"] == 95
    assert video["views"] == 0
    assert video["isPublished"] is True
    assert video["ownerId"] == alice.id
    assert video["owner"] == {"username": "alice", "avatar": alice.profile["avatar"]}
    assert video["videoFile"] in media_host.stored
    assert video["thumbnail"] in media_host.stored


@pytest.mark.parametrize(
    "data, files",
    [
        ({"title": "", "description": "d", "duration": "10"}, ("videoFile", "thumbnail")),
        ({"title": "t", "description": "d", "duration": "0"}, ("videoFile", "thumbnail")),
        ({"title": "t", "description": "d", "duration": "ten"}, ("videoFile", "thumbnail")),
        ({"title": "t", "description": "d"}, ("videoFile", "thumbnail")),
        ({"title": "t", "description": "d", "duration": "10"}, ("thumbnail",)),
        ({"title": "t", "description": "d", "duration": "10"}, ("videoFile",)),
    ],
)
async def test_publish_validation(client, create_user, media_host, data, files):
    alice = await create_user("alice")
    uploads_before = len(media_host.stored)
    parts = {"videoFile": video_part(), "thumbnail": image_part("thumb.png")}

    response = await client.post(
        "/videos",
        data=data,
        files={name: parts[name] for name in files},
        headers=alice.headers,
    )

    assert response.status_code == 400
    assert len(media_host.stored) == uploads_before


async def test_publish_requires_auth(client):
    response = await client.post(
        "/videos",
        data={"title": "t", "description": "d", "duration": "10"},
        files={"videoFile": video_part(), "thumbnail": image_part()},
    )
    assert response.status_code == 401


async def test_publish_upload_failure_is_500(client, create_user, media_host):
    alice = await create_user("alice")
    media_host.failing_assets.add("Thumbnail")

    response = await client.post(
        "/videos",
        data={"title": "t", "description": "d", "duration": "10"},
        files={"videoFile": video_part(), "thumbnail": image_part()},
        headers=alice.headers,
    )
    feed = await client.get("/videos")

    assert response.status_code == 500
    assert feed.json()["pagination"]["totalItems"] == 0


async def test_get_video(client, create_user, publish_video):
    alice = await create_user("alice")
    video = await publish_video(alice)

    found = await client.get(f"/videos/{video['id']}")
    missing = await client.get(f"/videos/{uuid.uuid4()}")
    malformed = await client.get("/videos/12345")

    assert found.status_code == 200
    assert found.json()["id"] == video["id"]
    assert missing.status_code == 404
    assert malformed.status_code == 400


async def test_feed_filters_by_query_and_user(client, create_user, publish_video):
    alice = await create_user("alice")
    bob = await create_user("bob")
    await publish_video(alice, title="My Cat", description="purr")
    await publish_video(alice, title="Dogs", description="bark")
    await publish_video(bob, title="Birds", description="the CAT watches")

    cats = await client.get("/videos", params={"query": "cat", "limit": 1})
    alices = await client.get("/videos", params={"userId": alice.id})
    bobs_cats = await client.get("/videos", params={"userId": bob.id, "query": "cat"})

    assert cats.json()["pagination"]["totalItems"] == 2
    assert len(cats.json()["videos"]) == 1
    assert cats.json()["pagination"]["hasNext"] is True
    assert {v["ownerId"] for v in alices.json()["videos"]} == {alice.id}
    assert alices.json()["pagination"]["totalItems"] == 2
    assert [v["title"] for v in bobs_cats.json()["videos"]] == ["Birds"]


async def test_feed_sorting(client, create_user, publish_video):
    alice = await create_user("alice")
    for title in ("Bravo", "Alpha", "Charlie"):
        await publish_video(alice, title=title)

    ascending = await client.get("/videos", params={"sortBy": "title", "sortType": "asc"})
    descending = await client.get("/videos", params={"sortBy": "title"})

    assert [v["title"] for v in ascending.json()["videos"]] == ["Alpha", "Bravo", "Charlie"]
    assert [v["title"] for v in descending.json()["videos"]] == ["Charlie", "Bravo", "Alpha"]


async def test_feed_rejects_bad_parameters(client):
    assert (await client.get("/videos", params={"sortBy": "password"})).status_code == 400
    assert (await client.get("/videos", params={"userId": "nope"})).status_code == 400
    assert (await client.get("/videos", params={"limit": 0})).status_code == 400


async def test_update_by_owner(client, create_user, publish_video, media_host):
    alice = await create_user("alice")
    video = await publish_video(alice)

    response = await client.patch(
        f"/videos/{video['id']}",
        data={"title": "Renamed", "duration": "42"},
        files={"thumbnail": image_part("new-thumb.png")},
        headers=alice.headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "Renamed"
    assert body["duration"] == 42
    assert body["description"] == video["description"]
    assert body["videoFile"] == video["videoFile"]
    assert body["thumbnail"] != video["thumbnail"]
    assert remote_id_from_url(video["thumbnail"]) in media_host.removed


async def test_update_by_non_owner_is_forbidden_and_changes_nothing(client, create_user, publish_video, media_host):
    alice = await create_user("alice")
    mallory = await create_user("mallory")
    video = await publish_video(alice)
    uploads_before = len(media_host.stored)

    response = await client.patch(
        f"/videos/{video['id']}",
        data={"title": "Hijacked"},
        files={"videoFile": video_part()},
        headers=mallory.headers,
    )
    after = await client.get(f"/videos/{video['id']}")

    assert response.status_code == 403
    assert after.json()["title"] == video["title"]
    assert after.json()["videoFile"] == video["videoFile"]
    assert len(media_host.stored) == uploads_before


async def test_update_with_nothing_to_change(client, create_user, publish_video):
    alice = await create_user("alice")
    video = await publish_video(alice)

    response = await client.patch(f"/videos/{video['id']}", data={}, headers=alice.headers)

    assert response.status_code == 400


async def test_delete_video(client, create_user, publish_video, media_host):
    alice = await create_user("alice")
    video = await publish_video(alice)

    response = await client.delete(f"/videos/{video['id']}", headers=alice.headers)

    assert response.status_code == 200
    body = response.json()
    assert body["videoId"] == video["id"]
    assert body["assetErrors"] == []
    assert remote_id_from_url(video["videoFile"]) in media_host.removed
    assert remote_id_from_url(video["thumbnail"]) in media_host.removed
    assert (await client.get(f"/videos/{video['id']}")).status_code == 404


async def test_delete_succeeds_when_asset_removal_fails(client, create_user, publish_video, media_host):
    alice = await create_user("alice")
    video = await publish_video(alice)
    media_host.refuse_removal = True

    response = await client.delete(f"/videos/{video['id']}", headers=alice.headers)

    assert response.status_code == 200
    assert len(response.json()["assetErrors"]) == 2
    assert (await client.get(f"/videos/{video['id']}")).status_code == 404


async def test_delete_by_non_owner(client, create_user, publish_video):
    alice = await create_user("alice")
    mallory = await create_user("mallory")
    video = await publish_video(alice)

    response = await client.delete(f"/videos/{video['id']}", headers=mallory.headers)

    assert response.status_code == 403
    assert (await client.get(f"/videos/{video['id']}")).status_code == 200


async def test_toggle_publish(client, create_user, publish_video):
    alice = await create_user("alice")
    mallory = await create_user("mallory")
    video = await publish_video(alice)

    first = await client.patch(f"/videos/{video['id']}/publish-toggle", headers=alice.headers)
    second = await client.patch(f"/videos/{video['id']}/publish-toggle", headers=alice.headers)
    stranger = await client.patch(f"/videos/{video['id']}/publish-toggle", headers=mallory.headers)

    assert first.json()["video"]["isPublished"] is False
    assert first.json()["message"] == "Video unpublished successfully"
    assert second.json()["video"]["isPublished"] is True
    assert second.json()["message"] == "Video published successfully"
    assert stranger.status_code == 404


async def test_views_count_every_request(client, create_user, publish_video):
    alice = await create_user("alice")
    video = await publish_video(alice)

    responses = await asyncio.gather(*(client.post(f"/videos/{video['id']}/views") for _ in range(5)))

    assert all(r.status_code == 200 for r in responses)
    assert (await client.get(f"/videos/{video['id']}")).json()["views"] == 5
    assert (await client.post(f"/videos/{uuid.uuid4()}/views")).status_code == 404


async def test_mutations_log_operation_events(client, create_user, publish_video, caplog):
    alice = await create_user("alice")
    mallory = await create_user("mallory")

    with caplog.at_level(logging.INFO, logger="app.api.endpoints.videos"):
        video = await publish_video(alice)
        await client.delete(f"/videos/{video['id']}", headers=mallory.headers)

    records = [r for r in caplog.records if r.name == "app.api.endpoints.videos"]
    assert [r.event for r in records] == [
        "operation_start",
        "operation_complete",
        "operation_start",
        "operation_error",
    ]
    assert records[1].context["video_id"] == video["id"]
