from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.models import User
from app.common.schemas import MessageResponse
from app.db.session import get_db
from app.notifications.schemas import NotificationResponse, UnreadCountResponse
from app.notifications.services import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    limit: int = Query(50, ge=1, le=100),
    before: Optional[datetime] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService(db).get_notifications(current_user.id, limit=limit, before=before)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return UnreadCountResponse(count=await NotificationService(db).unread_count(current_user.id))


@router.get("/poll", response_model=List[NotificationResponse])
async def poll_notifications(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await NotificationService(db).latest(current_user.id)


@router.patch("/read-all", response_model=MessageResponse)
async def mark_all_as_read(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    updated = await NotificationService(db).mark_all_as_read(current_user.id)
    return MessageResponse(message=f"{updated} notifications marked as read")


@router.patch("/{notification_id}/read", response_model=MessageResponse)
async def mark_as_read(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await NotificationService(db).mark_as_read(notification_id, current_user.id)
    return MessageResponse(message="Notification marked as read")
