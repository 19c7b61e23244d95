async def _create(api_client, user, participants, **extra):
    return await api_client.post(
        "/api/v1/conversations",
        json={"participants": [p["id"] for p in participants], **extra},
        headers=user["headers"],
    )


async def _group(api_client, admin, members, name="crew"):
    resp = await _create(api_client, admin, members, type="group", name=name)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def _member_ids(conversation):
    return {m["user_id"] for m in conversation["members"]}


async def test_direct_conversation_is_reused(api_client, alice, bob):
    first = await _create(api_client, alice, [bob])
    assert first.status_code == 201
    conversation = first.json()["data"]
    assert conversation["type"] == "DIRECT"
    assert conversation["admin_id"] is None
    assert _member_ids(conversation) == {alice["id"], bob["id"]}

    second = await _create(api_client, bob, [alice])
    assert second.status_code == 200
    assert second.json()["message"] == "Conversation already exists"
    assert second.json()["data"]["id"] == conversation["id"]


async def test_direct_conversation_needs_one_peer(api_client, alice, bob, carol):
    resp = await _create(api_client, alice, [bob, carol])
    assert resp.status_code == 400
    assert resp.json()["error"] == "INVALID_PARTICIPANTS"

    resp = await _create(api_client, alice, [alice])
    assert resp.status_code == 400

    resp = await api_client.post(
        "/api/v1/conversations",
        json={"participants": ["00000000-0000-0000-0000-000000000000"]},
        headers=alice["headers"],
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "INVALID_PARTICIPANTS"


async def test_group_roles(api_client, alice, bob, carol):
    group = await _group(api_client, alice, [bob, carol])
    assert group["type"] == "GROUP"
    assert group["name"] == "crew"
    assert group["admin_id"] == alice["id"]
    roles = {m["user_id"]: m["role"] for m in group["members"]}
    assert roles == {alice["id"]: "ADMIN", bob["id"]: "MEMBER", carol["id"]: "MEMBER"}

    resp = await api_client.put(f"/api/v1/conversations/{group['id']}", json={"name": "renamed"}, headers=bob["headers"])
    assert resp.status_code == 403
    resp = await api_client.put(f"/api/v1/conversations/{group['id']}", json={"name": "renamed"}, headers=alice["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"]["name"] == "renamed"


async def test_non_member_cannot_see_conversation(api_client, alice, bob, carol):
    resp = await _create(api_client, alice, [bob])
    conversation_id = resp.json()["data"]["id"]

    resp = await api_client.get(f"/api/v1/conversations/{conversation_id}", headers=carol["headers"])
    assert resp.status_code == 404
    assert resp.json()["error"] == "CONVERSATION_NOT_FOUND"

    listed = await api_client.get("/api/v1/conversations", headers=carol["headers"])
    assert listed.json()["data"]["pagination"]["total"] == 0


async def test_add_and_remove_members(api_client, register, alice, bob, carol):
    dave = await register("dave")
    group = await _group(api_client, alice, [bob])

    resp = await api_client.post(
        f"/api/v1/conversations/{group['id']}/members",
        json={"user_ids": [carol["id"], dave["id"], bob["id"]]},
        headers=alice["headers"],
    )
    assert resp.status_code == 200
    assert resp.json()["message"] == "2 member(s) added successfully"
    assert _member_ids(resp.json()["data"]) == {alice["id"], bob["id"], carol["id"], dave["id"]}

    resp = await api_client.delete(f"/api/v1/conversations/{group['id']}/members/{dave['id']}", headers=bob["headers"])
    assert resp.status_code == 403

    resp = await api_client.delete(f"/api/v1/conversations/{group['id']}/members/{dave['id']}", headers=alice["headers"])
    assert resp.status_code == 200
    assert resp.json()["message"] == "Member removed successfully"

    resp = await api_client.delete(f"/api/v1/conversations/{group['id']}/members/{dave['id']}", headers=alice["headers"])
    assert resp.status_code == 404
    assert resp.json()["error"] == "MEMBER_NOT_FOUND"

    # Former members can be added back.
    resp = await api_client.post(
        f"/api/v1/conversations/{group['id']}/members",
        json={"user_ids": [dave["id"]]},
        headers=alice["headers"],
    )
    assert resp.json()["message"] == "1 member(s) added successfully"


async def test_members_only_in_groups(api_client, alice, bob, carol):
    direct = (await _create(api_client, alice, [bob])).json()["data"]
    resp = await api_client.post(
        f"/api/v1/conversations/{direct['id']}/members",
        json={"user_ids": [carol["id"]]},
        headers=alice["headers"],
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "INVALID_CONVERSATION_TYPE"


async def test_leaving_admin_hands_over(api_client, alice, bob, carol):
    group = await _group(api_client, alice, [bob, carol])

    resp = await api_client.delete(f"/api/v1/conversations/{group['id']}/members/{alice['id']}", headers=alice["headers"])
    assert resp.status_code == 200
    assert resp.json()["message"] == "Left conversation successfully"

    resp = await api_client.get(f"/api/v1/conversations/{group['id']}", headers=bob["headers"])
    conversation = resp.json()["data"]
    assert alice["id"] not in _member_ids(conversation)
    assert conversation["admin_id"] in {bob["id"], carol["id"]}
    roles = {m["user_id"]: m["role"] for m in conversation["members"]}
    assert roles[conversation["admin_id"]] == "ADMIN"

    gone = await api_client.get(f"/api/v1/conversations/{group['id']}", headers=alice["headers"])
    assert gone.status_code == 404


async def test_transfer_admin(api_client, alice, bob, carol):
    group = await _group(api_client, alice, [bob])

    resp = await api_client.put(
        f"/api/v1/conversations/{group['id']}/admin",
        json={"new_admin_id": carol["id"]},
        headers=alice["headers"],
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "INVALID_MEMBER"

    resp = await api_client.put(
        f"/api/v1/conversations/{group['id']}/admin",
        json={"new_admin_id": bob["id"]},
        headers=alice["headers"],
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["admin_id"] == bob["id"]
    roles = {m["user_id"]: m["role"] for m in data["members"]}
    assert roles == {alice["id"]: "MEMBER", bob["id"]: "ADMIN"}


async def test_delete_conversation(api_client, alice, bob):
    group = await _group(api_client, alice, [bob])
    await api_client.post(
        f"/api/v1/conversations/{group['id']}/messages", json={"content": "bye"}, headers=bob["headers"]
    )

    resp = await api_client.delete(f"/api/v1/conversations/{group['id']}", headers=bob["headers"])
    assert resp.status_code == 403

    resp = await api_client.delete(f"/api/v1/conversations/{group['id']}", headers=alice["headers"])
    assert resp.status_code == 200
    listed = await api_client.get("/api/v1/conversations", headers=bob["headers"])
    assert listed.json()["data"]["items"] == []
