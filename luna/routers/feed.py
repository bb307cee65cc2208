"""
Feed retrieval endpoint — GET /feed?author=<id>&tag=<tag>

  no author  → main feed: the viewer's own posts plus everyone they follow
               (anonymous viewers get an empty feed)
  author=<id> → profile feed: visible to the author and their followers,
               everyone else gets status "private"
  tag=<tag>  → narrows either feed to posts carrying the hashtag

An invalid or expired bearer token is treated as anonymous, not rejected.
"""
import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from opentelemetry import trace
from sqlalchemy.ext.asyncio import AsyncSession

from luna.database import get_db
from luna.feed import FeedNotFound, FeedPrivate, FeedQuery, compose_feed
from luna.repositories import SqlPostStore, SqlUserDirectory
from luna.routers.posts import build_post_response
from luna.schemas import FeedResponse
from luna.security import get_viewer_id
from luna.telemetry import FEED_LATENCY, FEED_REQUESTS_TOTAL

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.get("/", response_model=FeedResponse)
async def get_feed(
    author: Optional[str] = Query(None, description="Only posts by this user (profile view)"),
    tag: Optional[str] = Query(None, description="Only posts carrying this hashtag"),
    viewer_id: Optional[str] = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    start_time = time.time()

    with tracer.start_as_current_span("get_feed") as span:
        span.set_attribute("feed.authenticated", viewer_id is not None)
        if author:
            span.set_attribute("feed.author", author)

        result = await compose_feed(
            FeedQuery(viewer_id=viewer_id, author_id=author or None, tag=tag),
            posts=SqlPostStore(db),
            users=SqlUserDirectory(db),
        )

        latency = time.time() - start_time
        FEED_LATENCY.observe(latency)

        if isinstance(result, FeedNotFound):
            FEED_REQUESTS_TOTAL.labels(result="not_found").inc()
            raise HTTPException(status_code=404, detail="User not found")

        if isinstance(result, FeedPrivate):
            FEED_REQUESTS_TOTAL.labels(result="private").inc()
            span.set_attribute("feed.private", True)
            return FeedResponse(status="private", posts=[])

        FEED_REQUESTS_TOTAL.labels(result="posts").inc()
        span.set_attribute("feed.posts_returned", len(result.posts))
        logger.debug(
            "Feed for viewer=%s author=%s tag=%s → %d posts (%.1fms)",
            viewer_id, author, tag, len(result.posts), latency * 1000,
        )
        return FeedResponse(
            status="ok",
            posts=[build_post_response(p) for p in result.posts],
        )
