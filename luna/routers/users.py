"""
Profile & social graph endpoints:
  GET    /users/{id}            — fetch a profile
  PUT    /users/{id}            — edit your own profile
  POST   /users/{id}/follow     — follow a user
  DELETE /users/{id}/follow     — unfollow
  GET    /users/{id}/followers  — list followers
  GET    /users/{id}/following  — list followees
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from opentelemetry import trace
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from luna.database import get_db
from luna.models import Follow, User
from luna.repositories import SqlUserDirectory
from luna.schemas import FollowListResponse, UserResponse, UserUpdate
from luna.security import get_current_user_id

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


async def _get_user_or_404(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, db: AsyncSession = Depends(get_db)):
    return await _get_user_or_404(db, user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    body: UserUpdate,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    if current_user_id != user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    user = await _get_user_or_404(db, user_id)

    for field, value in body.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(user, field, value.strip() if field == "name" else value)

    logger.info("Updated profile for user %s", user_id)
    return user


@router.post("/{user_id}/follow", status_code=status.HTTP_204_NO_CONTENT)
async def follow_user(
    user_id: str,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Create a follower → followee edge in the social graph (idempotent)."""
    with tracer.start_as_current_span("follow_user"):
        if current_user_id == user_id:
            raise HTTPException(status_code=400, detail="Cannot follow yourself")

        await _get_user_or_404(db, user_id)

        existing = await db.get(Follow, (current_user_id, user_id))
        if existing:
            return  # already following — idempotent

        db.add(Follow(follower_id=current_user_id, followee_id=user_id))
        logger.info("%s followed %s", current_user_id, user_id)


@router.delete("/{user_id}/follow", status_code=status.HTTP_204_NO_CONTENT)
async def unfollow_user(
    user_id: str,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("unfollow_user"):
        await db.execute(
            delete(Follow).where(
                Follow.follower_id == current_user_id,
                Follow.followee_id == user_id,
            )
        )


@router.get("/{user_id}/followers", response_model=FollowListResponse)
async def list_followers(user_id: str, db: AsyncSession = Depends(get_db)):
    await _get_user_or_404(db, user_id)
    followers = await SqlUserDirectory(db).get_followers(user_id)
    return FollowListResponse(user_id=user_id, users=sorted(followers))


@router.get("/{user_id}/following", response_model=FollowListResponse)
async def list_following(user_id: str, db: AsyncSession = Depends(get_db)):
    await _get_user_or_404(db, user_id)
    following = await SqlUserDirectory(db).get_following(user_id)
    return FollowListResponse(user_id=user_id, users=sorted(following))
