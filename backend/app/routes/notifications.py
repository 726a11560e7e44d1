"""Notifications recorded for managers, such as completed training."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.acl import PERM_VIEW_NOTIFICATIONS
from app.auth import require_permissions
from app.crud import get_notification, list_notifications, mark_notification_read
from app.database import get_session
from app.models import User
from app.schemas import NotificationRead

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/", response_model=List[NotificationRead])
async def read_notifications(
    unread_only: bool = False,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_VIEW_NOTIFICATIONS)),
):
    return await list_notifications(db, current_user.id, unread_only=unread_only)


@router.post("/{notification_id}/read", response_model=NotificationRead)
async def read_notification(
    notification_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_VIEW_NOTIFICATIONS)),
):
    notification = await get_notification(db, notification_id, current_user.id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return await mark_notification_read(db, notification)
