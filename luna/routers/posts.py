"""
Post endpoints:
  POST   /posts            — create a post (caption, tags, optional image)
  GET    /posts/{id}       — fetch a single post
  PUT    /posts/{id}       — edit caption / tags / image (author only)
  DELETE /posts/{id}       — delete a post (author only)
  POST   /posts/{id}/like  — toggle the caller's like
  GET    /posts/{id}/likes — list users who liked the post

Single-post reads follow the same rule as profile feeds: only the author
and the author's followers may see a post.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from opentelemetry import trace
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from luna.clients.minio_client import (
    InvalidImage,
    decode_image,
    delete_image,
    get_presigned_url,
    upload_image,
)
from luna.database import after_commit, get_db
from luna.feed import can_view_author
from luna.models import Comment, Like, Notification, Post, PostTag, User
from luna.repositories import SqlUserDirectory
from luna.schemas import (
    LikersResponse,
    LikeToggleResponse,
    MessageResponse,
    PostCreate,
    PostResponse,
    PostUpdate,
    UserSummary,
)
from luna.security import get_current_user_id, get_viewer_id
from luna.tags import normalize_tags, parse_tags
from luna.telemetry import LIKE_TOGGLES_TOTAL, POST_CREATED_TOTAL

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


# ─────────────────────────── Helpers ─────────────────────────────────────

def build_post_response(post: Post) -> PostResponse:
    return PostResponse(
        post_id=post.post_id,
        user_id=post.user_id,
        author=UserSummary.model_validate(post.author) if post.author else None,
        caption=post.caption,
        image_url=get_presigned_url(post.image_key),
        tags=post.tag_names,
        like_count=post.like_count,
        created_at=post.created_at,
        updated_at=post.updated_at,
    )


async def get_post_or_404(db: AsyncSession, post_id: str) -> Post:
    # populate_existing so eager-loaded author/tags are fresh after writes
    row = await db.execute(
        select(Post)
        .where(Post.post_id == post_id)
        .execution_options(populate_existing=True)
    )
    post = row.scalars().unique().one_or_none()
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


async def ensure_can_view(db: AsyncSession, viewer_id: Optional[str], post: Post) -> None:
    if await can_view_author(viewer_id, post.user_id, SqlUserDirectory(db)):
        return
    if viewer_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required to view this post",
        )
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Only followers of this author can view this post",
    )


def _tag_rows(tags: list[str]) -> list[PostTag]:
    return [PostTag(tag=t, position=i) for i, t in enumerate(tags)]


def _store_image(image_base64: Optional[str], image_type: Optional[str]) -> Optional[str]:
    """Validate + upload an optional image; returns the MinIO key or None."""
    if not image_base64:
        return None
    if not image_type:
        raise HTTPException(status_code=400, detail="image_type is required with an image")
    try:
        data = decode_image(image_base64, image_type)
    except InvalidImage as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    try:
        return upload_image(data, image_type)
    except Exception as exc:
        logger.error("Image upload failed: %s", exc)
        raise HTTPException(status_code=502, detail="Image upload failed")


# ─────────────────────────── Endpoints ───────────────────────────────────

@router.post("/", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    body: PostCreate,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a post for the signed-in user.

    Explicit `tags` are normalised and stored as given; without them the
    hashtags in the caption become the post's tags.
    """
    with tracer.start_as_current_span("create_post") as span:
        if not await db.get(User, current_user_id):
            raise HTTPException(status_code=404, detail="Author not found")

        tags = normalize_tags(body.tags) if body.tags is not None else parse_tags(body.caption)
        image_key = _store_image(body.image_base64, body.image_type)

        post = Post(
            user_id=current_user_id,
            caption=body.caption,
            image_key=image_key,
            tags=_tag_rows(tags),
        )
        db.add(post)
        await db.flush()     # materialise post_id

        span.set_attribute("post.id", post.post_id)
        span.set_attribute("post.user_id", post.user_id)

        POST_CREATED_TOTAL.inc()
        logger.info("Post created: %s by user %s", post.post_id, post.user_id)
        return build_post_response(await get_post_or_404(db, post.post_id))


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(
    post_id: str,
    viewer_id: Optional[str] = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    post = await get_post_or_404(db, post_id)
    await ensure_can_view(db, viewer_id, post)
    return build_post_response(post)


@router.put("/{post_id}", response_model=PostResponse)
async def update_post(
    post_id: str,
    body: PostUpdate,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("update_post"):
        post = await get_post_or_404(db, post_id)
        if post.user_id != current_user_id:
            raise HTTPException(status_code=403, detail="Forbidden")

        if body.caption is not None:
            post.caption = body.caption

        if body.tags is not None:
            post.tags = _tag_rows(normalize_tags(body.tags))
        elif body.caption is not None:
            post.tags = _tag_rows(parse_tags(body.caption))

        new_key = _store_image(body.image_base64, body.image_type)
        if new_key:
            old_key, post.image_key = post.image_key, new_key
            if old_key:
                after_commit(db, lambda: delete_image(old_key))

        await db.flush()
        logger.info("Post updated: %s", post_id)
        return build_post_response(await get_post_or_404(db, post_id))


@router.delete("/{post_id}", response_model=MessageResponse)
async def delete_post(
    post_id: str,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("delete_post"):
        post = await get_post_or_404(db, post_id)
        if post.user_id != current_user_id:
            raise HTTPException(
                status_code=403, detail="Forbidden: only author can delete this post"
            )

        await db.execute(delete(Like).where(Like.post_id == post_id))
        await db.execute(delete(Comment).where(Comment.post_id == post_id))
        await db.execute(delete(Notification).where(Notification.post_id == post_id))
        image_key = post.image_key
        await db.delete(post)   # post_tags go with it (delete-orphan)
        await db.flush()

        if image_key:
            after_commit(db, lambda: delete_image(image_key))

        logger.info("Post deleted: %s", post_id)
        return MessageResponse(message="Post deleted")


@router.post("/{post_id}/like", response_model=LikeToggleResponse)
async def toggle_like(
    post_id: str,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Toggle the caller's like.

    The like row's composite primary key and the SQL-side counter update keep
    concurrent toggles from different users from overwriting each other.
    """
    with tracer.start_as_current_span("toggle_like") as span:
        post = await get_post_or_404(db, post_id)
        await ensure_can_view(db, current_user_id, post)

        removed = await db.execute(
            delete(Like)
            .where(Like.user_id == current_user_id, Like.post_id == post_id)
            .execution_options(synchronize_session=False)
        )
        if removed.rowcount:
            liked, delta = False, -1
        else:
            try:
                async with db.begin_nested():
                    db.add(Like(user_id=current_user_id, post_id=post_id))
            except IntegrityError:
                # A concurrent toggle by the same user inserted the row first
                logger.info("Like by %s on %s already recorded", current_user_id, post_id)
                liked, delta = True, 0
            else:
                liked, delta = True, 1

        if delta:
            await db.execute(
                update(Post)
                .where(Post.post_id == post_id)
                # pin updated_at so the column's onupdate doesn't treat a like as an edit
                .values(like_count=Post.like_count + delta, updated_at=Post.updated_at)
                .execution_options(synchronize_session=False)
            )
        likes = (
            await db.execute(select(Post.like_count).where(Post.post_id == post_id))
        ).scalar_one()

        if delta > 0 and post.user_id != current_user_id:
            db.add(
                Notification(
                    type="like",
                    actor_id=current_user_id,
                    recipient_id=post.user_id,
                    post_id=post_id,
                )
            )

        span.set_attribute("like.state", "liked" if liked else "unliked")
        LIKE_TOGGLES_TOTAL.labels(state="liked" if liked else "unliked").inc()
        return LikeToggleResponse(likes=likes, liked=liked)


@router.get("/{post_id}/likes", response_model=LikersResponse)
async def list_likers(
    post_id: str,
    viewer_id: Optional[str] = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    post = await get_post_or_404(db, post_id)
    await ensure_can_view(db, viewer_id, post)

    rows = await db.execute(
        select(User)
        .join(Like, Like.user_id == User.user_id)
        .where(Like.post_id == post_id)
        .order_by(Like.created_at)
    )
    likers = [UserSummary.model_validate(u) for u in rows.scalars().all()]
    return LikersResponse(post_id=post_id, likers=likers)
