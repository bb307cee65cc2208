"""
Feed composition — which posts a viewer is allowed to see.

  Profile view (author filter)
  ────────────────────────────────────────────────────────────────────
    author unknown                 → FeedNotFound
    viewer is the author           → every post by the author
    viewer follows the author      → every post by the author
    anyone else (incl. anonymous)  → FeedPrivate

  Main feed (no author filter)
  ────────────────────────────────────────────────────────────────────
    anonymous                      → empty list
    signed in                      → own posts + posts of everyone followed

An optional tag filter then narrows the visible set, and results are
returned newest first. The whole operation is read-only: the post store and
user directory are passed in, so it can be exercised without a database.

There is no pagination — every matching post is returned in one response.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Protocol, Sequence, Union

from luna.tags import normalize_tag_filter


class FeedPost(Protocol):
    user_id: str
    created_at: datetime


@dataclass(frozen=True)
class PostFilter:
    author_ids: frozenset[str]
    tag: Optional[str] = None


class PostStore(Protocol):
    async def find_posts(self, flt: PostFilter) -> Sequence[FeedPost]: ...

    async def find_posts_by_author(self, author_id: str) -> Sequence[FeedPost]: ...


class UserDirectory(Protocol):
    async def exists(self, user_id: str) -> bool: ...

    async def get_followers(self, user_id: str) -> set[str]: ...

    async def get_following(self, user_id: str) -> set[str]: ...


@dataclass(frozen=True)
class FeedQuery:
    viewer_id: Optional[str] = None
    author_id: Optional[str] = None
    tag: Optional[str] = None


# ─────────────────────────── Results ─────────────────────────────────────

@dataclass(frozen=True)
class FeedPosts:
    posts: list[FeedPost] = field(default_factory=list)


@dataclass(frozen=True)
class FeedPrivate:
    author_id: str


@dataclass(frozen=True)
class FeedNotFound:
    author_id: str


FeedResult = Union[FeedPosts, FeedPrivate, FeedNotFound]


# ─────────────────────────── Visibility ──────────────────────────────────

async def can_view_author(
    viewer_id: Optional[str], author_id: str, users: UserDirectory
) -> bool:
    """True when `viewer_id` may see posts written by `author_id`."""
    if viewer_id is not None and viewer_id == author_id:
        return True
    if viewer_id is None:
        return False
    return viewer_id in await users.get_followers(author_id)


def newest_first(posts: Sequence[FeedPost]) -> list[FeedPost]:
    # sorted() is stable with reverse=True, so equal timestamps keep store order
    return sorted(posts, key=lambda p: p.created_at, reverse=True)


async def compose_feed(
    query: FeedQuery,
    posts: PostStore,
    users: UserDirectory,
) -> FeedResult:
    tag = normalize_tag_filter(query.tag)

    if query.author_id:
        if not await users.exists(query.author_id):
            return FeedNotFound(query.author_id)
        if not await can_view_author(query.viewer_id, query.author_id, users):
            return FeedPrivate(query.author_id)
        if tag is None:
            found = await posts.find_posts_by_author(query.author_id)
        else:
            found = await posts.find_posts(
                PostFilter(author_ids=frozenset({query.author_id}), tag=tag)
            )
        return FeedPosts(newest_first(found))

    if query.viewer_id is None:
        return FeedPosts([])

    # Self is always part of the main feed, even with an empty following set
    authors = {query.viewer_id} | await users.get_following(query.viewer_id)
    found = await posts.find_posts(PostFilter(author_ids=frozenset(authors), tag=tag))
    return FeedPosts(newest_first(found))
