"""Direct buyer/supplier messages, grouped into one thread per partner."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rfqhub.common.exceptions import NotFoundError, ValidationError
from rfqhub.core.notifications.service import open_message_thread
from rfqhub.db.models.message import Message
from rfqhub.db.models.user import User

MAX_MESSAGES = 100


@dataclass
class Thread:
    partner: User
    messages: list[Message] = field(default_factory=list)
    unread: int = 0

    @property
    def last_message(self) -> Message:
        return self.messages[-1]


async def list_messages(
    db: AsyncSession,
    user_id: uuid.UUID,
    with_user_id: uuid.UUID | None = None,
    rfq_id: uuid.UUID | None = None,
) -> tuple[list[Message], list[Thread]]:
    """Oldest-first messages the user sent or received, and their threads.

    Unread counts reflect the state before this call; every message addressed
    to the user is then marked read.
    """
    if with_user_id:
        query = select(Message).where(or_(
            and_(Message.sender_id == user_id, Message.recipient_id == with_user_id),
            and_(Message.sender_id == with_user_id, Message.recipient_id == user_id),
        ))
    else:
        query = select(Message).where(or_(Message.sender_id == user_id, Message.recipient_id == user_id))
    if rfq_id:
        query = query.where(Message.rfq_id == rfq_id)

    result = await db.execute(query.order_by(Message.created_at.asc(), Message.id).limit(MAX_MESSAGES))
    messages = list(result.scalars().all())

    partner_ids = {m.recipient_id if m.sender_id == user_id else m.sender_id for m in messages}
    partners: dict[uuid.UUID, User] = {}
    if partner_ids:
        rows = await db.execute(select(User).where(User.id.in_(list(partner_ids))))
        partners = {u.id: u for u in rows.scalars().all()}

    threads: dict[uuid.UUID, Thread] = {}
    for msg in messages:
        partner_id = msg.recipient_id if msg.sender_id == user_id else msg.sender_id
        thread = threads.setdefault(partner_id, Thread(partner=partners[partner_id]))
        thread.messages.append(msg)
        if not msg.is_read and msg.recipient_id == user_id:
            thread.unread += 1

    await db.execute(
        update(Message)
        .where(Message.recipient_id == user_id, Message.is_read.is_(False))
        .values(is_read=True)
    )
    await db.flush()
    return messages, list(threads.values())


async def send_message(
    db: AsyncSession,
    sender: User,
    recipient_id: uuid.UUID,
    content: str,
    rfq_id: uuid.UUID | None = None,
) -> Message:
    text = content.strip()
    if not text:
        raise ValidationError("Message content is required")
    if recipient_id == sender.id:
        raise ValidationError("Cannot message yourself")
    if await db.get(User, recipient_id) is None:
        raise NotFoundError("Recipient", str(recipient_id))

    return await open_message_thread(db, sender.id, recipient_id, text, rfq_id=rfq_id)
