"""In-app notification and message-thread inserts."""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from rfqhub.common.logging import get_logger
from rfqhub.db.models.message import Message
from rfqhub.db.models.notification import Notification

logger = get_logger("notifications.service")


async def create_notification(
    db: AsyncSession,
    user_id: uuid.UUID,
    notification_type: str,
    title: str,
    body: str,
    data: dict[str, Any] | None = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=notification_type,
        title=title,
        body=body,
        data=data or {},
    )
    db.add(notification)
    await db.flush()
    await db.refresh(notification)

    logger.info("Created notification: type=%s user=%s title='%s'", notification_type, user_id, title)
    return notification


async def open_message_thread(
    db: AsyncSession,
    sender_id: uuid.UUID,
    recipient_id: uuid.UUID,
    content: str,
    rfq_id: uuid.UUID | None = None,
) -> Message:
    message = Message(sender_id=sender_id, recipient_id=recipient_id, rfq_id=rfq_id, content=content)
    db.add(message)
    await db.flush()
    await db.refresh(message)

    logger.info("Message %s -> %s (rfq=%s)", sender_id, recipient_id, rfq_id)
    return message
