from sqlalchemy import select

from tests.conftest import PASSWORD, image_file
from twilsta.models.notification import Notification


async def test_get_profile_by_id_and_username(api_client, alice, bob):
    resp = await api_client.get(f"/api/v1/users/{alice['id']}", headers=bob["headers"])
    assert resp.status_code == 200
    profile = resp.json()["data"]
    assert profile["username"] == "alice"
    assert profile["is_own_profile"] is False
    assert profile["is_following"] is False
    assert "email" not in profile

    resp = await api_client.get("/api/v1/users/username/alice", headers=alice["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"]["is_own_profile"] is True


async def test_unknown_user_is_404(api_client):
    resp = await api_client.get("/api/v1/users/00000000-0000-0000-0000-000000000000")
    assert resp.status_code == 404
    assert resp.json()["error"] == "USER_NOT_FOUND"


async def test_update_profile_sanitizes_bio(api_client, alice):
    resp = await api_client.put(
        "/api/v1/users/me",
        json={"bio": "<script>alert(1)</script>Hello <b>there</b>", "website": "https://alice.dev"},
        headers=alice["headers"],
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["bio"] == "Hello there"
    assert data["website"].startswith("https://alice.dev")


async def test_update_profile_rejects_taken_username(api_client, alice, bob):
    resp = await api_client.put("/api/v1/users/me", json={"username": "bob"}, headers=alice["headers"])
    assert resp.status_code == 409
    assert resp.json()["error"] == "USERNAME_EXISTS"


async def test_follow_and_unfollow_keep_counters(api_client, session_maker, alice, bob):
    resp = await api_client.post(f"/api/v1/users/{bob['id']}/follow", headers=alice["headers"])
    assert resp.status_code == 200
    profile = resp.json()["data"]
    assert profile["followers_count"] == 1
    assert profile["is_following"] is True

    me = await api_client.get("/api/v1/users/me", headers=alice["headers"])
    assert me.json()["data"]["following_count"] == 1

    again = await api_client.post(f"/api/v1/users/{bob['id']}/follow", headers=alice["headers"])
    assert again.status_code == 400
    assert again.json()["error"] == "ALREADY_FOLLOWING"

    async with session_maker() as session:
        notes = (await session.execute(select(Notification).where(Notification.type == "FOLLOW"))).scalars().all()
    assert len(notes) == 1
    assert str(notes[0].actor_id) == alice["id"]

    resp = await api_client.delete(f"/api/v1/users/{bob['id']}/follow", headers=alice["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"]["followers_count"] == 0

    resp = await api_client.delete(f"/api/v1/users/{bob['id']}/follow", headers=alice["headers"])
    assert resp.status_code == 400
    assert resp.json()["error"] == "NOT_FOLLOWING"


async def test_cannot_follow_self(api_client, alice):
    resp = await api_client.post(f"/api/v1/users/{alice['id']}/follow", headers=alice["headers"])
    assert resp.status_code == 400
    assert resp.json()["error"] == "CANNOT_FOLLOW_SELF"


async def test_followers_and_following_lists(api_client, alice, bob, carol):
    await api_client.post(f"/api/v1/users/{carol['id']}/follow", headers=alice["headers"])
    await api_client.post(f"/api/v1/users/{carol['id']}/follow", headers=bob["headers"])

    resp = await api_client.get(f"/api/v1/users/{carol['id']}/followers")
    assert resp.status_code == 200
    page = resp.json()["data"]
    assert page["pagination"]["total"] == 2
    assert {u["username"] for u in page["items"]} == {"alice", "bob"}
    assert all(u["followed_at"] for u in page["items"])

    resp = await api_client.get(f"/api/v1/users/{alice['id']}/following")
    assert [u["username"] for u in resp.json()["data"]["items"]] == ["carol"]


async def test_private_account_hides_follow_lists(api_client, alice, bob):
    await api_client.put("/api/v1/users/me", json={"is_private": True}, headers=bob["headers"])

    resp = await api_client.get(f"/api/v1/users/{bob['id']}/followers", headers=alice["headers"])
    assert resp.status_code == 403
    assert resp.json()["error"] == "ACCESS_DENIED"

    own = await api_client.get(f"/api/v1/users/{bob['id']}/followers", headers=bob["headers"])
    assert own.status_code == 200

    await api_client.post(f"/api/v1/users/{bob['id']}/follow", headers=alice["headers"])
    resp = await api_client.get(f"/api/v1/users/{bob['id']}/followers", headers=alice["headers"])
    assert resp.status_code == 403

    await api_client.post(f"/api/v1/users/me/follow-requests/{alice['id']}/accept", headers=bob["headers"])
    resp = await api_client.get(f"/api/v1/users/{bob['id']}/followers", headers=alice["headers"])
    assert resp.status_code == 200
    assert [u["username"] for u in resp.json()["data"]["items"]] == ["alice"]


async def test_private_account_follow_needs_approval(api_client, create_post, alice, bob, carol):
    await api_client.put("/api/v1/users/me", json={"is_private": True}, headers=alice["headers"])
    post = await create_post(alice)

    resp = await api_client.post(f"/api/v1/users/{alice['id']}/follow", headers=bob["headers"])
    assert resp.status_code == 200
    assert resp.json()["message"] == "Follow request sent"
    profile = resp.json()["data"]
    assert (profile["is_following"], profile["is_requested"], profile["followers_count"]) == (False, True, 0)

    # A pending request grants nothing.
    assert (await api_client.get(f"/api/v1/posts/{post['id']}", headers=bob["headers"])).status_code == 403

    again = await api_client.post(f"/api/v1/users/{alice['id']}/follow", headers=bob["headers"])
    assert again.status_code == 400
    assert again.json()["error"] == "FOLLOW_ALREADY_REQUESTED"

    await api_client.post(f"/api/v1/users/{alice['id']}/follow", headers=carol["headers"])
    pending = await api_client.get("/api/v1/users/me/follow-requests", headers=alice["headers"])
    page = pending.json()["data"]
    assert page["pagination"]["total"] == 2
    assert {u["username"] for u in page["items"]} == {"bob", "carol"}
    assert all(u["requested_at"] for u in page["items"])

    rejected = await api_client.post(f"/api/v1/users/me/follow-requests/{carol['id']}/reject", headers=alice["headers"])
    assert rejected.status_code == 200
    rejected = await api_client.post(f"/api/v1/users/me/follow-requests/{carol['id']}/reject", headers=alice["headers"])
    assert rejected.status_code == 404
    assert rejected.json()["error"] == "FOLLOW_REQUEST_NOT_FOUND"

    accepted = await api_client.post(f"/api/v1/users/me/follow-requests/{bob['id']}/accept", headers=alice["headers"])
    assert accepted.status_code == 200
    assert accepted.json()["data"]["username"] == "bob"
    assert accepted.json()["data"]["is_follower"] is True

    assert (await api_client.get(f"/api/v1/posts/{post['id']}", headers=bob["headers"])).status_code == 200
    target = (await api_client.get(f"/api/v1/users/{alice['id']}", headers=carol["headers"])).json()["data"]
    assert target["followers_count"] == 1
    assert target["is_requested"] is False
    me = (await api_client.get("/api/v1/users/me", headers=bob["headers"])).json()["data"]
    assert me["following_count"] == 1

    notes = (await api_client.get("/api/v1/notifications", headers=bob["headers"])).json()["data"]["items"]
    assert [n["type"] for n in notes] == ["FOLLOW_ACCEPTED"]
    assert notes[0]["text"] == "Alice Liddell accepted your follow request"

    leftover = await api_client.get("/api/v1/users/me/follow-requests", headers=alice["headers"])
    assert leftover.json()["data"]["pagination"]["total"] == 0
    twice = await api_client.post(f"/api/v1/users/me/follow-requests/{bob['id']}/accept", headers=alice["headers"])
    assert twice.status_code == 404


async def test_cancel_follow_request(api_client, alice, bob):
    await api_client.put("/api/v1/users/me", json={"is_private": True}, headers=alice["headers"])
    await api_client.post(f"/api/v1/users/{alice['id']}/follow", headers=bob["headers"])

    resp = await api_client.delete(f"/api/v1/users/{alice['id']}/follow-request", headers=bob["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"]["is_requested"] is False

    resp = await api_client.delete(f"/api/v1/users/{alice['id']}/follow-request", headers=bob["headers"])
    assert resp.status_code == 404
    assert resp.json()["error"] == "FOLLOW_REQUEST_NOT_FOUND"

    pending = await api_client.get("/api/v1/users/me/follow-requests", headers=alice["headers"])
    assert pending.json()["data"]["pagination"]["total"] == 0


async def test_pending_request_to_account_made_public(api_client, alice, bob):
    await api_client.put("/api/v1/users/me", json={"is_private": True}, headers=alice["headers"])
    await api_client.post(f"/api/v1/users/{alice['id']}/follow", headers=bob["headers"])
    await api_client.put("/api/v1/users/me", json={"is_private": False}, headers=alice["headers"])

    resp = await api_client.post(f"/api/v1/users/{alice['id']}/follow", headers=bob["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"]["is_following"] is True
    assert resp.json()["data"]["followers_count"] == 1

    pending = await api_client.get("/api/v1/users/me/follow-requests", headers=alice["headers"])
    assert pending.json()["data"]["pagination"]["total"] == 0


async def test_avatar_upload_replace_and_delete(api_client, fake_storage, alice):
    first = await api_client.post("/api/v1/users/me/avatar", files=image_file(), headers=alice["headers"])
    assert first.status_code == 200
    first_url = first.json()["data"]["avatar_url"]
    assert first_url.startswith("http://media.test/uploads/avatars/avatar_")

    second = await api_client.post("/api/v1/users/me/avatar", files=image_file(), headers=alice["headers"])
    assert second.status_code == 200
    assert second.json()["data"]["avatar_url"] != first_url
    assert fake_storage.deleted == [first_url]

    resp = await api_client.delete("/api/v1/users/me/avatar", headers=alice["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"]["avatar_url"] is None

    resp = await api_client.delete("/api/v1/users/me/avatar", headers=alice["headers"])
    assert resp.status_code == 404
    assert resp.json()["error"] == "NO_AVATAR"


async def test_avatar_rejects_unsupported_type(api_client, alice):
    resp = await api_client.post(
        "/api/v1/users/me/avatar",
        files=image_file("anim.gif", "image/gif"),
        headers=alice["headers"],
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "FILE_VALIDATION_ERROR"

    resp = await api_client.post("/api/v1/users/me/avatar", headers=alice["headers"])
    assert resp.status_code == 400
    assert resp.json()["error"] == "NO_FILE"


async def test_change_password(api_client, alice):
    resp = await api_client.post(
        "/api/v1/users/me/change-password",
        json={"current_password": "Wrong1!pass", "new_password": "An0ther!pass"},
        headers=alice["headers"],
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "INVALID_PASSWORD"

    resp = await api_client.post(
        "/api/v1/users/me/change-password",
        json={"current_password": PASSWORD, "new_password": "An0ther!pass"},
        headers=alice["headers"],
    )
    assert resp.status_code == 200

    login = await api_client.post("/api/v1/auth/login", json={"email": alice["email"], "password": "An0ther!pass"})
    assert login.status_code == 200


async def test_delete_account_fixes_counters(api_client, create_post, alice, bob):
    await api_client.post(f"/api/v1/users/{bob['id']}/follow", headers=alice["headers"])
    post = await create_post(bob, caption="sunset")
    await api_client.post(f"/api/v1/posts/{post['id']}/like", headers=alice["headers"])
    await api_client.post(f"/api/v1/posts/{post['id']}/comments", json={"content": "wow"}, headers=alice["headers"])

    resp = await api_client.delete("/api/v1/users/me", headers=alice["headers"])
    assert resp.status_code == 200

    profile = await api_client.get(f"/api/v1/users/{bob['id']}", headers=bob["headers"])
    assert profile.json()["data"]["followers_count"] == 0
    refreshed = await api_client.get(f"/api/v1/posts/{post['id']}", headers=bob["headers"])
    assert refreshed.json()["data"]["likes_count"] == 0
    assert refreshed.json()["data"]["comments_count"] == 0

    gone = await api_client.get("/api/v1/users/me", headers=alice["headers"])
    assert gone.status_code == 401
    assert gone.json()["error"] == "REVOKED_TOKEN"
    assert (await api_client.get(f"/api/v1/users/{alice['id']}")).status_code == 404
