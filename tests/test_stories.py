from datetime import timedelta
from uuid import UUID

from sqlalchemy import select, update

from tests.conftest import image_file
from twilsta.db.session import utcnow
from twilsta.models.notification import Notification
from twilsta.models.story import Story


async def _story(api_client, user, text=None):
    data = {"text": text} if text is not None else None
    resp = await api_client.post("/api/v1/stories", data=data, files=image_file(), headers=user["headers"])
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def _expire(session_maker, story_id):
    async with session_maker() as session:
        await session.execute(
            update(Story).where(Story.id == UUID(story_id)).values(expires_at=utcnow() - timedelta(minutes=1))
        )
        await session.commit()


async def test_create_story(api_client, alice):
    story = await _story(api_client, alice, "hello <b>world</b>")
    assert story["text"] == "hello world"
    assert story["media_type"] == "IMAGE"
    assert story["views_count"] == 0
    assert story["media_url"].startswith("http://media.test/uploads/stories/story_")

    mine = await api_client.get("/api/v1/stories/me", headers=alice["headers"])
    assert [s["id"] for s in mine.json()["data"]] == [story["id"]]


async def test_story_text_length_is_validated(api_client, alice):
    resp = await api_client.post(
        "/api/v1/stories",
        data={"text": "x" * 201},
        files=image_file(),
        headers=alice["headers"],
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "VALIDATION_ERROR"


async def test_feed_shows_followed_unexpired_stories(api_client, session_maker, alice, bob, carol):
    fresh = await _story(api_client, bob, "fresh")
    old = await _story(api_client, bob, "old")
    await _story(api_client, carol, "not followed")
    await _expire(session_maker, old["id"])
    await api_client.post(f"/api/v1/users/{bob['id']}/follow", headers=alice["headers"])

    resp = await api_client.get("/api/v1/stories/feed", headers=alice["headers"])
    assert resp.status_code == 200
    assert [s["id"] for s in resp.json()["data"]] == [fresh["id"]]


async def test_view_story_once(api_client, session_maker, alice, bob):
    story = await _story(api_client, alice)

    first = await api_client.post(f"/api/v1/stories/{story['id']}/view", headers=bob["headers"])
    assert first.status_code == 200
    assert first.json()["message"] == "Story viewed successfully"

    second = await api_client.post(f"/api/v1/stories/{story['id']}/view", headers=bob["headers"])
    assert second.json()["message"] == "Story already viewed"

    own = await api_client.post(f"/api/v1/stories/{story['id']}/view", headers=alice["headers"])
    assert own.json()["message"] == "Story already viewed"

    listed = await api_client.get(f"/api/v1/stories/user/{alice['id']}", headers=bob["headers"])
    data = listed.json()["data"][0]
    assert data["views_count"] == 1
    assert data["is_viewed"] is True

    async with session_maker() as session:
        kinds = (await session.execute(select(Notification.type))).scalars().all()
    assert kinds == ["STORY_VIEW"]


async def test_viewers_are_owner_only(api_client, alice, bob, carol):
    story = await _story(api_client, alice)
    await api_client.post(f"/api/v1/stories/{story['id']}/view", headers=bob["headers"])
    await api_client.post(f"/api/v1/stories/{story['id']}/view", headers=carol["headers"])

    resp = await api_client.get(f"/api/v1/stories/{story['id']}/viewers", headers=alice["headers"])
    assert resp.status_code == 200
    viewers = resp.json()["data"]
    assert [v["username"] for v in viewers] == ["carol", "bob"]
    assert all(v["viewed_at"] for v in viewers)

    resp = await api_client.get(f"/api/v1/stories/{story['id']}/viewers", headers=bob["headers"])
    assert resp.status_code == 403


async def test_expired_story_cannot_be_viewed(api_client, session_maker, alice, bob):
    story = await _story(api_client, alice)
    await _expire(session_maker, story["id"])

    resp = await api_client.post(f"/api/v1/stories/{story['id']}/view", headers=bob["headers"])
    assert resp.status_code == 404
    assert resp.json()["error"] == "STORY_NOT_FOUND"

    mine = await api_client.get("/api/v1/stories/me", headers=alice["headers"])
    assert mine.json()["data"] == []


async def test_react_replaces_previous_reaction(api_client, alice, bob):
    story = await _story(api_client, alice)

    first = await api_client.post(f"/api/v1/stories/{story['id']}/react", json={"reaction": "LIKE"}, headers=bob["headers"])
    assert first.status_code == 200
    second = await api_client.post(f"/api/v1/stories/{story['id']}/react", json={"reaction": "WOW"}, headers=bob["headers"])
    assert second.status_code == 200
    assert second.json()["data"]["reaction"] == "WOW"
    assert second.json()["data"]["id"] == first.json()["data"]["id"]

    bad = await api_client.post(f"/api/v1/stories/{story['id']}/react", json={"reaction": "MEH"}, headers=bob["headers"])
    assert bad.status_code == 400


async def test_private_stories(api_client, alice, bob):
    await api_client.put("/api/v1/users/me", json={"is_private": True}, headers=alice["headers"])
    story = await _story(api_client, alice)

    resp = await api_client.get(f"/api/v1/stories/user/{alice['id']}", headers=bob["headers"])
    assert resp.status_code == 403
    resp = await api_client.post(f"/api/v1/stories/{story['id']}/view", headers=bob["headers"])
    assert resp.status_code == 403


async def test_delete_story(api_client, fake_storage, alice, bob):
    story = await _story(api_client, alice)

    resp = await api_client.delete(f"/api/v1/stories/{story['id']}", headers=bob["headers"])
    assert resp.status_code == 403

    resp = await api_client.delete(f"/api/v1/stories/{story['id']}", headers=alice["headers"])
    assert resp.status_code == 200
    assert story["media_url"] in fake_storage.deleted
