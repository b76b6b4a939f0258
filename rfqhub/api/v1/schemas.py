import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from rfqhub.common.pagination import PaginatedResponse


class RFQResponse(BaseModel):
    id: uuid.UUID
    buyer_id: uuid.UUID
    title: str
    description: str | None
    category: str
    location: str | None
    quantity: str | None
    unit: str | None
    min_budget: Decimal | None
    max_budget: Decimal | None
    timeline: str | None
    urgency: str
    status: str
    expires_at: datetime | None
    accepted_at: datetime | None
    completed_at: datetime | None
    closed_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class QuoteResponse(BaseModel):
    id: uuid.UUID
    rfq_id: uuid.UUID
    supplier_id: uuid.UUID
    price: Decimal
    quantity: str | None
    timeline: str
    description: str | None
    terms: str | None
    status: str
    negotiation_history: list[dict] | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AcceptResponse(BaseModel):
    quote: QuoteResponse
    rfq: RFQResponse
    rejected_quote_ids: list[uuid.UUID]


class MatchResponse(BaseModel):
    supplier_id: uuid.UUID
    name: str | None
    company: str | None
    location: str | None
    trust_score: int
    is_verified: bool
    score: int
    reasons: list[str]


# ---------- Listings ----------


class RFQFeedItem(RFQResponse):
    quote_count: int = 0


class RFQPage(PaginatedResponse[RFQFeedItem]):
    pass


class RFQSummary(BaseModel):
    id: uuid.UUID
    title: str
    category: str
    status: str
    buyer_id: uuid.UUID

    model_config = {"from_attributes": True}


class SupplierQuoteItem(QuoteResponse):
    rfq: RFQSummary


class SupplierQuotePage(PaginatedResponse[SupplierQuoteItem]):
    pass


# ---------- Messages ----------


class MessageCreate(BaseModel):
    recipient_id: uuid.UUID
    content: str = Field(..., min_length=1, max_length=5000)
    rfq_id: uuid.UUID | None = None


class MessageResponse(BaseModel):
    id: uuid.UUID
    sender_id: uuid.UUID
    recipient_id: uuid.UUID
    rfq_id: uuid.UUID | None
    content: str
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class MessageThread(BaseModel):
    partner_id: uuid.UUID
    partner_name: str | None
    partner_company: str | None
    unread: int
    last_message: MessageResponse


class MessageListResponse(BaseModel):
    threads: list[MessageThread]
    messages: list[MessageResponse]
