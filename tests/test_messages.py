from sqlalchemy import select

from twilsta.models.notification import Notification


async def _direct(api_client, user, peer):
    resp = await api_client.post(
        "/api/v1/conversations", json={"participants": [peer["id"]]}, headers=user["headers"]
    )
    return resp.json()["data"]["id"]


async def _send(api_client, conversation_id, user, content="hi", **extra):
    resp = await api_client.post(
        f"/api/v1/conversations/{conversation_id}/messages",
        json={"content": content, **extra},
        headers=user["headers"],
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def _conversation(api_client, conversation_id, user):
    resp = await api_client.get(f"/api/v1/conversations/{conversation_id}", headers=user["headers"])
    return resp.json()["data"]


async def test_send_message_updates_preview_and_notifies(api_client, session_maker, alice, bob):
    conversation_id = await _direct(api_client, alice, bob)
    message = await _send(api_client, conversation_id, alice, "<i>hello</i> bob")
    assert message["content"] == "hello bob"
    assert message["message_type"] == "TEXT"
    assert message["sender"]["username"] == "alice"

    conversation = await _conversation(api_client, conversation_id, bob)
    assert conversation["last_message_id"] == message["id"]
    assert conversation["last_message_text"] == "hello bob"

    async with session_maker() as session:
        notes = (await session.execute(select(Notification).where(Notification.type == "MESSAGE"))).scalars().all()
    assert len(notes) == 1
    assert str(notes[0].user_id) == bob["id"]
    assert notes[0].text == "Alice Liddell: hello bob"


async def test_non_member_cannot_send(api_client, alice, bob, carol):
    conversation_id = await _direct(api_client, alice, bob)
    resp = await api_client.post(
        f"/api/v1/conversations/{conversation_id}/messages", json={"content": "hey"}, headers=carol["headers"]
    )
    assert resp.status_code == 403
    assert resp.json()["error"] == "ACCESS_DENIED"


async def test_unread_count_and_read_marker(api_client, alice, bob):
    conversation_id = await _direct(api_client, alice, bob)
    await _send(api_client, conversation_id, alice, "one")
    await _send(api_client, conversation_id, alice, "two")

    assert (await _conversation(api_client, conversation_id, bob))["unread_count"] == 2
    assert (await _conversation(api_client, conversation_id, alice))["unread_count"] == 0

    resp = await api_client.get(f"/api/v1/conversations/{conversation_id}/messages", headers=bob["headers"])
    assert resp.status_code == 200
    page = resp.json()["data"]
    assert [m["content"] for m in page["items"]] == ["two", "one"]
    assert page["pagination"]["limit"] == 50

    assert (await _conversation(api_client, conversation_id, bob))["unread_count"] == 0


async def test_mark_single_message_read(api_client, alice, bob):
    conversation_id = await _direct(api_client, alice, bob)
    message = await _send(api_client, conversation_id, alice)

    resp = await api_client.post(f"/api/v1/messages/{message['id']}/read", headers=bob["headers"])
    assert resp.status_code == 200
    assert (await _conversation(api_client, conversation_id, bob))["unread_count"] == 0


async def test_reply_must_be_in_same_conversation(api_client, alice, bob, carol):
    first = await _direct(api_client, alice, bob)
    second = await _direct(api_client, alice, carol)
    original = await _send(api_client, first, alice, "original")

    reply = await _send(api_client, first, bob, "reply", reply_to_id=original["id"])
    assert reply["reply_to_id"] == original["id"]

    resp = await api_client.post(
        f"/api/v1/conversations/{second}/messages",
        json={"content": "wrong thread", "reply_to_id": original["id"]},
        headers=alice["headers"],
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "INVALID_REPLY"


async def test_edit_message(api_client, alice, bob):
    conversation_id = await _direct(api_client, alice, bob)
    message = await _send(api_client, conversation_id, alice, "typo")

    resp = await api_client.put(f"/api/v1/messages/{message['id']}", json={"content": "fixed"}, headers=bob["headers"])
    assert resp.status_code == 403

    resp = await api_client.put(f"/api/v1/messages/{message['id']}", json={"content": "fixed"}, headers=alice["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"]["is_edited"] is True
    assert (await _conversation(api_client, conversation_id, alice))["last_message_text"] == "fixed"


async def test_delete_message_falls_back_to_previous_preview(api_client, alice, bob):
    conversation_id = await _direct(api_client, alice, bob)
    first = await _send(api_client, conversation_id, alice, "first")
    last = await _send(api_client, conversation_id, alice, "last")

    resp = await api_client.delete(f"/api/v1/messages/{last['id']}", headers=alice["headers"])
    assert resp.status_code == 200

    conversation = await _conversation(api_client, conversation_id, alice)
    assert conversation["last_message_id"] == first["id"]
    assert conversation["last_message_text"] == "first"

    listed = await api_client.get(f"/api/v1/conversations/{conversation_id}/messages", headers=alice["headers"])
    assert [m["id"] for m in listed.json()["data"]["items"]] == [first["id"]]

    again = await api_client.delete(f"/api/v1/messages/{last['id']}", headers=alice["headers"])
    assert again.status_code == 404
    assert again.json()["error"] == "MESSAGE_NOT_FOUND"


async def test_message_reactions(api_client, alice, bob, carol):
    conversation_id = await _direct(api_client, alice, bob)
    message = await _send(api_client, conversation_id, alice)

    resp = await api_client.post(f"/api/v1/messages/{message['id']}/react", json={"emoji": " 👍 "}, headers=bob["headers"])
    assert resp.status_code == 201
    reaction = resp.json()["data"]
    assert reaction["emoji"] == "👍"

    again = await api_client.post(f"/api/v1/messages/{message['id']}/react", json={"emoji": "👍"}, headers=bob["headers"])
    assert again.status_code == 400
    assert again.json()["error"] == "ALREADY_REACTED"

    outsider = await api_client.post(f"/api/v1/messages/{message['id']}/react", json={"emoji": "🔥"}, headers=carol["headers"])
    assert outsider.status_code == 403

    resp = await api_client.delete(f"/api/v1/messages/{message['id']}/react/{reaction['id']}", headers=alice["headers"])
    assert resp.status_code == 403

    resp = await api_client.delete(f"/api/v1/messages/{message['id']}/react/{reaction['id']}", headers=bob["headers"])
    assert resp.status_code == 200

    resp = await api_client.delete(f"/api/v1/messages/{message['id']}/react/{reaction['id']}", headers=bob["headers"])
    assert resp.status_code == 404
    assert resp.json()["error"] == "REACTION_NOT_FOUND"
