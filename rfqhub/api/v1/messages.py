"""Buyer/supplier message threads, including the one opened on acceptance."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from rfqhub.api.deps import get_current_user, get_db
from rfqhub.api.v1.schemas import MessageCreate, MessageListResponse, MessageResponse, MessageThread
from rfqhub.core.notifications.messages import list_messages, send_message
from rfqhub.db.models.user import User

router = APIRouter(prefix="/messages", tags=["Messages"])


@router.get("", response_model=MessageListResponse)
async def get_messages(
    with_user: uuid.UUID | None = None,
    rfq_id: uuid.UUID | None = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    messages, threads = await list_messages(db, current_user.id, with_user, rfq_id)
    return MessageListResponse(
        messages=[MessageResponse.model_validate(m) for m in messages],
        threads=[
            MessageThread(
                partner_id=t.partner.id,
                partner_name=t.partner.name,
                partner_company=t.partner.company,
                unread=t.unread,
                last_message=MessageResponse.model_validate(t.last_message),
            )
            for t in threads
        ],
    )


@router.post("", response_model=MessageResponse, status_code=201)
async def post_message(
    body: MessageCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    message = await send_message(db, current_user, body.recipient_id, body.content, body.rfq_id)
    return MessageResponse.model_validate(message)
