async def _notify_alice(api_client, create_post, alice, bob):
    """Bob follows alice and likes and comments on her post: three notifications."""
    post = await create_post(alice)
    await api_client.post(f"/api/v1/users/{alice['id']}/follow", headers=bob["headers"])
    await api_client.post(f"/api/v1/posts/{post['id']}/like", headers=bob["headers"])
    await api_client.post(f"/api/v1/posts/{post['id']}/comments", json={"content": "lovely"}, headers=bob["headers"])
    return post


async def test_list_notifications(api_client, create_post, alice, bob):
    await _notify_alice(api_client, create_post, alice, bob)

    resp = await api_client.get("/api/v1/notifications", headers=alice["headers"])
    assert resp.status_code == 200
    page = resp.json()["data"]
    assert page["pagination"]["total"] == 3
    assert page["pagination"]["limit"] == 20
    assert [n["type"] for n in page["items"]] == ["COMMENT", "LIKE", "FOLLOW"]
    assert all(n["actor"]["username"] == "bob" for n in page["items"])
    assert page["items"][0]["text"] == 'bob commented: "lovely"'

    bobs = await api_client.get("/api/v1/notifications", headers=bob["headers"])
    assert bobs.json()["data"]["pagination"]["total"] == 0


async def test_no_self_notifications(api_client, create_post, alice):
    post = await create_post(alice)
    await api_client.post(f"/api/v1/posts/{post['id']}/like", headers=alice["headers"])

    resp = await api_client.get("/api/v1/notifications/unread-count", headers=alice["headers"])
    assert resp.json()["data"] == {"count": 0}


async def test_mark_read(api_client, create_post, alice, bob):
    await _notify_alice(api_client, create_post, alice, bob)
    items = (await api_client.get("/api/v1/notifications", headers=alice["headers"])).json()["data"]["items"]

    resp = await api_client.get("/api/v1/notifications/unread-count", headers=alice["headers"])
    assert resp.json()["data"] == {"count": 3}

    # Ids belonging to someone else are ignored.
    resp = await api_client.post("/api/v1/notifications/read", json={"ids": [items[0]["id"]]}, headers=bob["headers"])
    assert resp.json()["data"] == {"updated": 0}

    resp = await api_client.post("/api/v1/notifications/read", json={"ids": [items[0]["id"]]}, headers=alice["headers"])
    assert resp.json()["data"] == {"updated": 1}

    resp = await api_client.post(f"/api/v1/notifications/{items[1]['id']}/read", headers=alice["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"]["is_read"] is True
    assert resp.json()["data"]["actor"]["username"] == "bob"

    resp = await api_client.post("/api/v1/notifications/read-all", headers=alice["headers"])
    assert resp.json()["data"] == {"updated": 1}

    resp = await api_client.get("/api/v1/notifications/unread-count", headers=alice["headers"])
    assert resp.json()["data"] == {"count": 0}


async def test_mark_unknown_notification(api_client, alice, bob, create_post):
    await _notify_alice(api_client, create_post, alice, bob)
    items = (await api_client.get("/api/v1/notifications", headers=alice["headers"])).json()["data"]["items"]

    resp = await api_client.post(f"/api/v1/notifications/{items[0]['id']}/read", headers=bob["headers"])
    assert resp.status_code == 404
    assert resp.json()["error"] == "NOTIFICATION_NOT_FOUND"


async def test_push_task_runs_eagerly():
    from twilsta.workers.notifications import send_push_notification

    result = send_push_notification.delay("user-1", "New like", "bob liked your post", {"post_id": "p1"})
    assert result.get() == {
        "user_id": "user-1",
        "title": "New like",
        "body": "bob liked your post",
        "data": {"post_id": "p1"},
    }
