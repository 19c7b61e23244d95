import asyncio
import sys
import os

# Add project root to sys.path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select
from twilsta.db.session import async_session_maker
from twilsta.models.user import User


async def list_users():
    async with async_session_maker() as session:
        result = await session.execute(
            select(
                User.username,
                User.email,
                User.is_verified,
                User.posts_count,
                User.followers_count,
                User.following_count,
            ).order_by(User.created_at)
        )
        rows = result.all()
        if not rows:
            print("No users found in database.")
            return
        print(f"{len(rows)} user(s):")
        for username, email, verified, posts, followers, following in rows:
            flag = "verified" if verified else "unverified"
            print(f"- {username} <{email}> [{flag}] posts={posts} followers={followers} following={following}")

if __name__ == "__main__":
    asyncio.run(list_users())
