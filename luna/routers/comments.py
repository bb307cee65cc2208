"""
Comment endpoints (nested under a post):
  POST   /posts/{post_id}/comments              — add a comment
  GET    /posts/{post_id}/comments              — list comments, newest first
  DELETE /posts/{post_id}/comments/{comment_id} — comment author or post author
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from luna.database import get_db
from luna.models import Comment, Notification
from luna.routers.posts import ensure_can_view, get_post_or_404
from luna.schemas import CommentCreate, CommentResponse, MessageResponse
from luna.security import get_current_user_id, get_viewer_id

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    post_id: str,
    body: CommentCreate,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    post = await get_post_or_404(db, post_id)
    await ensure_can_view(db, current_user_id, post)

    comment = Comment(post_id=post_id, user_id=current_user_id, text=body.text)
    db.add(comment)
    await db.flush()

    if post.user_id != current_user_id:
        db.add(
            Notification(
                type="comment",
                actor_id=current_user_id,
                recipient_id=post.user_id,
                post_id=post_id,
                comment_id=comment.comment_id,
            )
        )

    await db.refresh(comment, attribute_names=["author"])
    logger.info("Comment %s added to post %s", comment.comment_id, post_id)
    return comment


@router.get("/", response_model=list[CommentResponse])
async def list_comments(
    post_id: str,
    viewer_id: Optional[str] = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    post = await get_post_or_404(db, post_id)
    await ensure_can_view(db, viewer_id, post)

    rows = await db.execute(
        select(Comment)
        .where(Comment.post_id == post_id)
        .order_by(Comment.created_at.desc())
    )
    return rows.scalars().unique().all()


@router.delete("/{comment_id}", response_model=MessageResponse)
async def delete_comment(
    post_id: str,
    comment_id: str,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    comment = await db.get(Comment, comment_id)
    if not comment or comment.post_id != post_id:
        raise HTTPException(status_code=404, detail="Comment not found")

    if comment.user_id != current_user_id:
        post = await get_post_or_404(db, post_id)
        if post.user_id != current_user_id:
            raise HTTPException(status_code=403, detail="Forbidden")

    await db.execute(delete(Notification).where(Notification.comment_id == comment_id))
    await db.delete(comment)
    logger.info("Comment %s deleted by %s", comment_id, current_user_id)
    return MessageResponse(message="Comment deleted")
