"""
Notification endpoints (all scoped to the signed-in recipient):
  GET    /notifications              — newest first, capped
  GET    /notifications/unread-count
  PUT    /notifications/{id}/read
  DELETE /notifications/{id}
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from luna.config import settings
from luna.database import get_db
from luna.models import Notification
from luna.schemas import MessageResponse, NotificationResponse, UnreadCountResponse
from luna.security import get_current_user_id

logger = logging.getLogger(__name__)
router = APIRouter()


async def _get_own_notification(
    db: AsyncSession, notification_id: str, user_id: str
) -> Notification:
    notification = await db.get(Notification, notification_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Not found")
    if notification.recipient_id != user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return notification


@router.get("/", response_model=list[NotificationResponse])
async def list_notifications(
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    rows = await db.execute(
        select(Notification)
        .where(Notification.recipient_id == current_user_id)
        .order_by(Notification.created_at.desc())
        .limit(settings.notification_list_limit)
    )
    return rows.scalars().unique().all()


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    count = await db.scalar(
        select(func.count())
        .select_from(Notification)
        .where(Notification.recipient_id == current_user_id, Notification.read.is_(False))
    )
    return UnreadCountResponse(count=count or 0)


@router.put("/{notification_id}/read", response_model=MessageResponse)
async def mark_read(
    notification_id: str,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    notification = await _get_own_notification(db, notification_id, current_user_id)
    notification.read = True
    return MessageResponse(message="Marked read")


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(
    notification_id: str,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    notification = await _get_own_notification(db, notification_id, current_user_id)
    await db.delete(notification)
    logger.debug("Notification %s deleted", notification_id)
    return MessageResponse(message="Deleted")
