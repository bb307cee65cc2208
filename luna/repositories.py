"""
SQLAlchemy-backed collaborators for feed composition.

Both classes wrap a request-scoped AsyncSession and only ever read.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from luna.feed import PostFilter
from luna.models import Follow, Post, PostTag, User


class SqlPostStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_posts(self, flt: PostFilter) -> list[Post]:
        if not flt.author_ids:
            return []
        stmt = select(Post).where(Post.user_id.in_(flt.author_ids))
        if flt.tag:
            stmt = stmt.where(
                Post.post_id.in_(select(PostTag.post_id).where(PostTag.tag == flt.tag))
            )
        # Creation order; the feed reverses it with a stable sort
        stmt = stmt.order_by(Post.created_at, Post.seq)
        rows = await self.db.execute(stmt)
        return list(rows.scalars().unique().all())

    async def find_posts_by_author(self, author_id: str) -> list[Post]:
        return await self.find_posts(PostFilter(author_ids=frozenset({author_id})))


class SqlUserDirectory:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def exists(self, user_id: str) -> bool:
        row = await self.db.execute(select(User.user_id).where(User.user_id == user_id))
        return row.scalar_one_or_none() is not None

    async def get_followers(self, user_id: str) -> set[str]:
        rows = await self.db.execute(
            select(Follow.follower_id).where(Follow.followee_id == user_id)
        )
        return {r[0] for r in rows.all()}

    async def get_following(self, user_id: str) -> set[str]:
        rows = await self.db.execute(
            select(Follow.followee_id).where(Follow.follower_id == user_id)
        )
        return {r[0] for r in rows.all()}
