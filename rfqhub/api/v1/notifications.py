"""In-app notification inbox."""

from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rfqhub.api.deps import get_current_user, get_db
from rfqhub.common.exceptions import NotFoundError
from rfqhub.common.pagination import PaginatedResponse, PaginationParams, paginate
from rfqhub.db.models.notification import Notification
from rfqhub.db.models.user import User

router = APIRouter(prefix="/notifications", tags=["Notifications"])


# ---------- Schemas ----------

class NotificationResponse(BaseModel):
    id: uuid.UUID
    type: str
    title: str
    body: str
    is_read: bool
    data: dict | None
    created_at: datetime
    model_config = {"from_attributes": True}


class NotificationListResponse(PaginatedResponse[NotificationResponse]):
    unread_count: int


# ---------- Endpoints ----------

@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    params: PaginationParams = Depends(),
    unread_only: bool = False,
    type: str | None = None,
):
    query = select(Notification).where(Notification.user_id == current_user.id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    if type:
        query = query.where(Notification.type == type)

    items, total = await paginate(db, query, params, Notification, Notification.created_at.desc())

    unread_count = (await db.execute(
        select(func.count()).select_from(Notification).where(
            Notification.user_id == current_user.id,
            Notification.is_read.is_(False),
        )
    )).scalar() or 0

    return NotificationListResponse.build(
        [NotificationResponse.model_validate(n) for n in items], total, params,
        unread_count=unread_count,
    )


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == current_user.id,
        )
    )
    notif = result.scalar_one_or_none()
    if not notif:
        raise NotFoundError("Notification", str(notification_id))

    notif.is_read = True
    await db.flush()
    await db.refresh(notif)
    return NotificationResponse.model_validate(notif)
