import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import get_current_user
from app.models.notification import Notification
from app.models.user import User
from app.schemas.notification import (
    MarkAllReadResponse,
    MarkReadResponse,
    NotificationItem,
    NotificationListResponse,
    NotificationMeta,
)
from app.services.realtime import manager

logger = structlog.get_logger()

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _unread(user: User):
    return Notification.user_id == user.id, Notification.is_read.is_(False)


async def _push_read(user: User, ids: list[str] | None):
    # ids=None: every notification
    await manager.send_to_user(str(user.id), {"event": "notifications_read", "data": {"ids": ids}})


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List notifications",
    description="Paginated notifications, newest first. `unread_only` hides read ones. `meta.unread_count` counts all unread.",
)
async def list_notifications(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    unread_only: bool = False,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    query = select(Notification).where(*_unread(user)) if unread_only else select(Notification).where(
        Notification.user_id == user.id
    )

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    unread = (await db.execute(select(func.count()).select_from(Notification).where(*_unread(user)))).scalar() or 0

    result = await db.execute(
        query.order_by(Notification.created_at.desc()).offset((page - 1) * per_page).limit(per_page)
    )
    return NotificationListResponse(
        data=[NotificationItem.model_validate(n) for n in result.scalars().all()],
        meta=NotificationMeta(page=page, total=total, unread_count=unread),
    )


@router.post("/read-all", response_model=MarkAllReadResponse, summary="Mark all read", description="Marks every unread notification as read.")
async def mark_all_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(update(Notification).where(*_unread(user)).values(is_read=True))
    await db.commit()
    logger.info("notifications_read", user_id=str(user.id), count=result.rowcount)

    await _push_read(user, None)
    return MarkAllReadResponse(updated_count=result.rowcount)


@router.post("/{notification_id}/read", response_model=MarkReadResponse, summary="Mark read", description="Marks one of the user's notifications as read.")
async def mark_read(
    notification_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Notification).where(Notification.id == notification_id, Notification.user_id == user.id)
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")

    if not notification.is_read:
        notification.is_read = True
        await db.commit()
        await _push_read(user, [str(notification.id)])
    return MarkReadResponse(id=str(notification.id))
