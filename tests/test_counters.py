from uuid import UUID

from sqlalchemy import select, update

from twilsta.models.post import Post
from twilsta.models.user import User
from twilsta.services.counter_service import find_drift, reconcile_counters


async def test_reconcile_fixes_drifted_counters(api_client, session_maker, create_post, alice, bob):
    post = await create_post(alice, caption="#morning")
    await api_client.post(f"/api/v1/users/{alice['id']}/follow", headers=bob["headers"])
    await api_client.post(f"/api/v1/posts/{post['id']}/like", headers=bob["headers"])

    async with session_maker() as session:
        assert not any((await find_drift(session)).values())

        await session.execute(update(Post).where(Post.id == UUID(post["id"])).values(likes_count=7))
        await session.execute(update(User).where(User.id == UUID(alice["id"])).values(followers_count=0, posts_count=3))
        await session.commit()

    async with session_maker() as session:
        drift = await reconcile_counters(session)
        await session.commit()
    assert drift["posts.likes_count"] == 1
    assert drift["users.followers_count"] == 1
    assert drift["users.posts_count"] == 1
    assert drift["hashtags.posts_count"] == 0

    async with session_maker() as session:
        assert await session.scalar(select(Post.likes_count).where(Post.id == UUID(post["id"]))) == 1
        user = await session.get(User, UUID(alice["id"]))
        assert (user.followers_count, user.posts_count) == (1, 1)
        assert not any((await find_drift(session)).values())
