async def test_trending_orders_by_usage(api_client, create_post, alice, bob):
    await create_post(alice, caption="#travel #food")
    await create_post(bob, caption="#travel")
    await create_post(bob, caption="#travel #art")

    resp = await api_client.get("/api/v1/hashtags")
    assert resp.status_code == 200
    items = resp.json()["data"]["items"]
    assert [(t["name"], t["posts_count"]) for t in items] == [("travel", 3), ("art", 1), ("food", 1)]


async def test_search(api_client, create_post, alice):
    await create_post(alice, caption="#travelgram #traveller #food")

    resp = await api_client.get("/api/v1/hashtags/search", params={"q": "#Travel"})
    assert resp.status_code == 200
    names = {t["name"] for t in resp.json()["data"]["items"]}
    assert names == {"travelgram", "traveller"}

    missing_q = await api_client.get("/api/v1/hashtags/search")
    assert missing_q.status_code == 400


async def test_get_hashtag(api_client, create_post, alice):
    await create_post(alice, caption="#Sunset")

    resp = await api_client.get("/api/v1/hashtags/SUNSET")
    assert resp.status_code == 200
    assert resp.json()["data"]["name"] == "sunset"

    missing = await api_client.get("/api/v1/hashtags/nothing")
    assert missing.status_code == 404
    assert missing.json()["error"] == "HASHTAG_NOT_FOUND"


async def test_hashtag_posts_respect_privacy_and_archive(api_client, create_post, alice, bob, carol):
    public = await create_post(alice, caption="#beach public")
    archived = await create_post(alice, caption="#beach archived")
    hidden = await create_post(bob, caption="#beach private")
    await api_client.post(f"/api/v1/posts/{archived['id']}/archive", headers=alice["headers"])
    await api_client.put("/api/v1/users/me", json={"is_private": True}, headers=bob["headers"])

    anonymous = await api_client.get("/api/v1/hashtags/beach/posts")
    assert [p["id"] for p in anonymous.json()["data"]["items"]] == [public["id"]]

    await api_client.post(f"/api/v1/users/{bob['id']}/follow", headers=carol["headers"])
    accepted = await api_client.post(f"/api/v1/users/me/follow-requests/{carol['id']}/accept", headers=bob["headers"])
    assert accepted.status_code == 200
    follower = await api_client.get("/api/v1/hashtags/beach/posts", headers=carol["headers"])
    page = follower.json()["data"]
    assert {p["id"] for p in page["items"]} == {public["id"], hidden["id"]}
    assert page["pagination"]["total"] == 2


async def test_suggestions_skip_own_tags(api_client, create_post, alice, bob):
    await create_post(alice, caption="#cats")
    await create_post(bob, caption="#dogs #cats")

    resp = await api_client.get("/api/v1/hashtags/suggestions", headers=alice["headers"])
    assert resp.status_code == 200
    assert [t["name"] for t in resp.json()["data"]] == ["dogs"]

    assert (await api_client.get("/api/v1/hashtags/suggestions")).status_code == 401
