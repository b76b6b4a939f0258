"""RFQ / Quote lifecycle transitions.

Every status write is a conditional UPDATE keyed on the source state the
transition requires. Zero affected rows means another request got there
first and surfaces as ``ConflictError``. Accepting a quote first claims the
RFQ row (ACTIVE|QUOTED -> ACCEPTED); a concurrent accept on a sibling quote
blocks on that row and then matches nothing, so only one winner can exist.

Methods flush but never commit: the caller owns the transaction and must
roll back when a transition raises.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rfqhub.common.enums import QuoteStatus, RFQStatus, UserRole
from rfqhub.common.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from rfqhub.common.logging import get_logger
from rfqhub.config import settings
from rfqhub.core.lifecycle.schemas import CounterOfferRequest, QuoteCreate, RFQCreate
from rfqhub.core.lifecycle.state_machine import (
    OPEN_RFQ_STATUSES,
    expiry_from_timeline,
    require_quote_transition,
    require_rfq_transition,
    rfq_sources,
)
from rfqhub.db.base import utcnow
from rfqhub.db.models.rfq import RFQ, Quote
from rfqhub.db.models.user import User

logger = get_logger("lifecycle.service")


@dataclass
class AcceptOutcome:
    quote: Quote
    rfq: RFQ
    rejected: list[Quote] = field(default_factory=list)


@dataclass
class CounterOutcome:
    quote: Quote
    rfq: RFQ
    previous_price: Decimal


@dataclass
class CompletionOutcome:
    rfq: RFQ
    quote: Quote


class LifecycleService:
    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_rfq(self, db: AsyncSession, rfq_id: uuid.UUID) -> RFQ:
        rfq = await db.get(RFQ, rfq_id)
        if not rfq:
            raise NotFoundError("RFQ", str(rfq_id))
        return rfq

    async def get_quote(self, db: AsyncSession, quote_id: uuid.UUID) -> Quote:
        quote = await db.get(Quote, quote_id)
        if not quote:
            raise NotFoundError("Quote", str(quote_id))
        return quote

    async def list_quotes(self, db: AsyncSession, rfq_id: uuid.UUID) -> list[Quote]:
        result = await db.execute(
            select(Quote).where(Quote.rfq_id == rfq_id).order_by(Quote.price, Quote.created_at)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Conditional writes
    # ------------------------------------------------------------------

    async def _move_rfq(self, db: AsyncSession, rfq: RFQ, target: RFQStatus, **values) -> None:
        result = await db.execute(
            update(RFQ)
            .where(RFQ.id == rfq.id, RFQ.status.in_(rfq_sources(target)))
            .values(status=target.value, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        await db.refresh(rfq)
        if result.rowcount == 0:
            raise ConflictError(f"RFQ is '{rfq.status}' and cannot move to '{target.value}'")

    async def _move_quote(self, db: AsyncSession, quote: Quote, target: QuoteStatus, **values) -> None:
        result = await db.execute(
            update(Quote)
            .where(Quote.id == quote.id, Quote.status == QuoteStatus.PENDING.value)
            .values(status=target.value, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        await db.refresh(quote)
        if result.rowcount == 0:
            raise ConflictError(f"Quote is '{quote.status}' and cannot move to '{target.value}'")

    async def _expire_pending_quotes(self, db: AsyncSession, rfq_id: uuid.UUID) -> int:
        result = await db.execute(
            update(Quote)
            .where(Quote.rfq_id == rfq_id, Quote.status == QuoteStatus.PENDING.value)
            .values(status=QuoteStatus.EXPIRED.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def create_rfq(self, db: AsyncSession, buyer: User, data: RFQCreate) -> RFQ:
        if buyer.role != UserRole.BUYER.value:
            raise AuthorizationError("Only buyers can post RFQs")
        if data.min_budget and data.max_budget and data.min_budget > data.max_budget:
            raise ValidationError("min_budget cannot exceed max_budget")

        now = utcnow()
        rfq = RFQ(
            buyer_id=buyer.id,
            title=data.title.strip(),
            description=data.description,
            category=data.category.strip(),
            location=data.location,
            quantity=data.quantity,
            unit=data.unit,
            min_budget=data.min_budget,
            max_budget=data.max_budget,
            timeline=data.timeline,
            urgency=data.urgency.value,
            status=RFQStatus.ACTIVE.value,
            expires_at=expiry_from_timeline(data.timeline, now, settings.RFQ_DEFAULT_TTL_DAYS),
        )
        db.add(rfq)
        await db.flush()
        await db.refresh(rfq)
        logger.info("RFQ %s created by buyer %s (category=%s)", rfq.id, buyer.id, rfq.category)
        return rfq

    async def submit_quote(
        self, db: AsyncSession, supplier: User, rfq_id: uuid.UUID, data: QuoteCreate
    ) -> tuple[Quote, RFQ]:
        if supplier.role != UserRole.SUPPLIER.value:
            raise AuthorizationError("Only suppliers can submit quotes")
        if data.price is None or data.price <= 0:
            raise ValidationError("Quote price must be positive")
        if not (data.timeline or "").strip():
            raise ValidationError("Quote timeline is required")

        rfq = await self.get_rfq(db, rfq_id)
        if rfq.buyer_id == supplier.id:
            raise AuthorizationError("You cannot quote on your own RFQ")
        if RFQStatus(rfq.status) not in OPEN_RFQ_STATUSES:
            raise ConflictError(f"RFQ is '{rfq.status}' and no longer accepts quotes")

        existing = await db.execute(
            select(Quote.id).where(Quote.rfq_id == rfq.id, Quote.supplier_id == supplier.id)
        )
        if existing.scalar_one_or_none():
            raise ConflictError("You have already quoted on this RFQ")

        # ACTIVE -> QUOTED, QUOTED -> QUOTED; also claims the RFQ row against a concurrent accept
        await self._move_rfq(db, rfq, RFQStatus.QUOTED)

        quote = Quote(
            rfq_id=rfq.id,
            supplier_id=supplier.id,
            price=data.price,
            quantity=data.quantity,
            timeline=data.timeline.strip(),
            description=data.description,
            terms=data.terms,
            status=QuoteStatus.PENDING.value,
            negotiation_history=[],
        )
        db.add(quote)
        try:
            await db.flush()
        except IntegrityError:
            raise ConflictError("You have already quoted on this RFQ")
        await db.refresh(quote)
        logger.info("Quote %s submitted on RFQ %s by supplier %s", quote.id, rfq.id, supplier.id)
        return quote, rfq

    async def accept_quote(self, db: AsyncSession, buyer: User, quote_id: uuid.UUID) -> AcceptOutcome:
        quote = await self.get_quote(db, quote_id)
        rfq = await self.get_rfq(db, quote.rfq_id)
        if rfq.buyer_id != buyer.id:
            raise AuthorizationError("Only the RFQ's buyer can accept quotes")
        require_quote_transition(quote.status, QuoteStatus.ACCEPTED)
        require_rfq_transition(rfq.status, RFQStatus.ACCEPTED)

        accepted_at = utcnow()
        await self._move_rfq(db, rfq, RFQStatus.ACCEPTED, accepted_at=accepted_at)
        await self._move_quote(db, quote, QuoteStatus.ACCEPTED)

        losers = await db.execute(
            select(Quote).where(
                Quote.rfq_id == rfq.id,
                Quote.id != quote.id,
                Quote.status == QuoteStatus.PENDING.value,
            )
        )
        rejected = list(losers.scalars().all())
        if rejected:
            await db.execute(
                update(Quote)
                .where(Quote.id.in_([q.id for q in rejected]), Quote.status == QuoteStatus.PENDING.value)
                .values(status=QuoteStatus.REJECTED.value, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            for q in rejected:
                await db.refresh(q)

        await db.flush()
        logger.info(
            "Quote %s accepted on RFQ %s; %d competing quotes rejected",
            quote.id, rfq.id, len(rejected),
        )
        return AcceptOutcome(quote=quote, rfq=rfq, rejected=rejected)

    async def reject_quote(self, db: AsyncSession, buyer: User, quote_id: uuid.UUID) -> tuple[Quote, RFQ]:
        quote = await self.get_quote(db, quote_id)
        rfq = await self.get_rfq(db, quote.rfq_id)
        if rfq.buyer_id != buyer.id:
            raise AuthorizationError("Only the RFQ's buyer can reject quotes")
        require_quote_transition(quote.status, QuoteStatus.REJECTED)

        await self._move_quote(db, quote, QuoteStatus.REJECTED)
        logger.info("Quote %s rejected on RFQ %s", quote.id, rfq.id)
        return quote, rfq

    async def counter_offer(
        self, db: AsyncSession, supplier: User, quote_id: uuid.UUID, data: CounterOfferRequest
    ) -> CounterOutcome:
        quote = await self.get_quote(db, quote_id)
        if supplier.role != UserRole.SUPPLIER.value or quote.supplier_id != supplier.id:
            raise AuthorizationError("Only the quoting supplier can revise this quote")
        if data.price is None or data.price <= 0:
            raise ValidationError("Counter-offer price must be positive")
        if quote.status != QuoteStatus.PENDING.value:
            raise ConflictError(f"Quote is '{quote.status}' and can no longer be revised")
        rfq = await self.get_rfq(db, quote.rfq_id)

        previous_price = quote.price
        history = list(quote.negotiation_history or [])
        history.append({
            "action": "counter",
            "previous_price": str(previous_price),
            "price": str(data.price),
            "timeline": data.timeline or quote.timeline,
            "terms": data.terms,
            "message": data.message,
            "at": utcnow().isoformat(),
        })

        result = await db.execute(
            update(Quote)
            .where(Quote.id == quote.id, Quote.status == QuoteStatus.PENDING.value)
            .values(
                price=data.price,
                timeline=data.timeline or quote.timeline,
                terms=data.terms if data.terms is not None else quote.terms,
                negotiation_history=history,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await db.refresh(quote)
        if result.rowcount == 0:
            raise ConflictError(f"Quote is '{quote.status}' and can no longer be revised")

        logger.info("Counter-offer on quote %s: %s -> %s", quote.id, previous_price, quote.price)
        return CounterOutcome(quote=quote, rfq=rfq, previous_price=previous_price)

    async def complete_deal(self, db: AsyncSession, buyer: User, rfq_id: uuid.UUID) -> CompletionOutcome:
        rfq = await self.get_rfq(db, rfq_id)
        if rfq.buyer_id != buyer.id:
            raise AuthorizationError("Only the buyer can confirm deal completion")
        require_rfq_transition(rfq.status, RFQStatus.COMPLETED)

        result = await db.execute(
            select(Quote).where(Quote.rfq_id == rfq.id, Quote.status == QuoteStatus.ACCEPTED.value)
        )
        quote = result.scalars().first()
        if not quote:
            raise ConflictError("No accepted quote found for this RFQ")

        await self._move_rfq(db, rfq, RFQStatus.COMPLETED, completed_at=utcnow())
        logger.info("Deal completed on RFQ %s with supplier %s", rfq.id, quote.supplier_id)
        return CompletionOutcome(rfq=rfq, quote=quote)

    async def cancel_rfq(self, db: AsyncSession, buyer: User, rfq_id: uuid.UUID) -> RFQ:
        rfq = await self.get_rfq(db, rfq_id)
        if rfq.buyer_id != buyer.id:
            raise AuthorizationError("Only the buyer can cancel this RFQ")
        require_rfq_transition(rfq.status, RFQStatus.CANCELLED)

        await self._move_rfq(db, rfq, RFQStatus.CANCELLED, closed_at=utcnow())
        expired = await self._expire_pending_quotes(db, rfq.id)
        logger.info("RFQ %s cancelled; %d pending quotes expired", rfq.id, expired)
        return rfq

    async def close_external(self, db: AsyncSession, admin: User, rfq_id: uuid.UUID) -> RFQ:
        if admin.role != UserRole.ADMIN.value:
            raise AuthorizationError("Only admins can close deals externally")
        rfq = await self.get_rfq(db, rfq_id)
        require_rfq_transition(rfq.status, RFQStatus.CLOSED_EXTERNAL)

        await self._move_rfq(db, rfq, RFQStatus.CLOSED_EXTERNAL, closed_at=utcnow())
        logger.info("RFQ %s closed externally by admin %s", rfq.id, admin.id)
        return rfq

    async def expire_stale(self, db: AsyncSession, now: datetime | None = None) -> list[str]:
        now = now or utcnow()
        result = await db.execute(
            select(RFQ).where(
                RFQ.status.in_([s.value for s in OPEN_RFQ_STATUSES]),
                RFQ.expires_at.is_not(None),
                RFQ.expires_at < now,
            )
        )
        expired = []
        for rfq in result.scalars().all():
            try:
                await self._move_rfq(db, rfq, RFQStatus.EXPIRED, closed_at=now)
            except ConflictError:
                # Accepted or cancelled since it was selected
                continue
            await self._expire_pending_quotes(db, rfq.id)
            expired.append(str(rfq.id))

        if expired:
            await db.flush()
            logger.info("Expired %d stale RFQs", len(expired))
        return expired
