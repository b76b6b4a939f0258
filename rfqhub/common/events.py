"""Domain events raised after a lifecycle transition has been committed.

Each event is a frozen pydantic model tagged by ``kind`` so it survives a JSON
round trip through the Celery broker and can be dispatched on its type.
Snapshots are taken at raise time; handlers never re-read the originating rows.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Snapshot(BaseModel):
    model_config = {"from_attributes": True, "frozen": True}


class PartyRef(_Snapshot):
    id: uuid.UUID
    name: str | None = None
    company: str | None = None
    email: str | None = None

    @property
    def label(self) -> str:
        return self.company or self.name or "A user"


class RFQRef(_Snapshot):
    id: uuid.UUID
    title: str
    category: str
    location: str | None = None
    buyer_id: uuid.UUID


class QuoteRef(_Snapshot):
    id: uuid.UUID
    supplier_id: uuid.UUID
    price: Decimal
    timeline: str
    terms: str | None = None


class _Event(BaseModel):
    model_config = {"frozen": True}

    event_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    occurred_at: datetime = Field(default_factory=_utcnow)


class RFQCreated(_Event):
    kind: Literal["rfq_created"] = "rfq_created"
    rfq: RFQRef
    buyer: PartyRef


class QuoteSubmitted(_Event):
    kind: Literal["quote_submitted"] = "quote_submitted"
    quote: QuoteRef
    rfq: RFQRef
    supplier: PartyRef
    buyer: PartyRef


class QuoteAccepted(_Event):
    kind: Literal["quote_accepted"] = "quote_accepted"
    quote: QuoteRef
    rfq: RFQRef
    supplier: PartyRef
    buyer: PartyRef
    accepted_at: datetime
    # Competing quotes rejected by the same transition
    rejected_quotes: list[QuoteRef] = Field(default_factory=list)


class QuoteRejected(_Event):
    kind: Literal["quote_rejected"] = "quote_rejected"
    quote: QuoteRef
    rfq: RFQRef
    supplier: PartyRef


class CounterOffer(_Event):
    kind: Literal["counter_offer"] = "counter_offer"
    quote: QuoteRef
    rfq: RFQRef
    buyer: PartyRef
    previous_price: Decimal | None = None
    message: str | None = None


class DealCompleted(_Event):
    kind: Literal["deal_completed"] = "deal_completed"
    rfq: RFQRef
    supplier: PartyRef
    buyer: PartyRef
    completed_at: datetime


DomainEvent = Annotated[
    Union[RFQCreated, QuoteSubmitted, QuoteAccepted, QuoteRejected, CounterOffer, DealCompleted],
    Field(discriminator="kind"),
]

_event_adapter: TypeAdapter = TypeAdapter(DomainEvent)


def parse_event(payload: dict[str, Any]) -> RFQCreated | QuoteSubmitted | QuoteAccepted | QuoteRejected | CounterOffer | DealCompleted:
    """Rebuild a typed event from its ``model_dump(mode="json")`` form."""
    return _event_adapter.validate_python(payload)
