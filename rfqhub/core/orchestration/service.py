"""Entry points request handlers call once their transition is committed.

Every ``on_*`` method snapshots its arguments into a domain event, enqueues
it and returns. Nothing here raises into the caller: the HTTP response of
the originating request never depends on matching, email or webhooks.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rfqhub.common.enums import ActionKind
from rfqhub.common.events import (
    CounterOffer,
    DealCompleted,
    PartyRef,
    QuoteAccepted,
    QuoteRef,
    QuoteRejected,
    QuoteSubmitted,
    RFQCreated,
    RFQRef,
)
from rfqhub.common.logging import get_logger
from rfqhub.config import settings
from rfqhub.core.orchestration.processor import build_event_processor
from rfqhub.core.orchestration.queue import CeleryEventQueue, EventQueue, InProcessEventQueue
from rfqhub.core.ratelimit.schemas import DailyLimit
from rfqhub.core.ratelimit.service import check_daily_limit, enforce_daily_limit
from rfqhub.db.base import utcnow

logger = get_logger("orchestration.service")

_DEFAULT_LIMITS = {
    ActionKind.RFQ: lambda: settings.RFQ_DAILY_LIMIT,
    ActionKind.QUOTE: lambda: settings.QUOTE_DAILY_LIMIT,
}


class OrchestrationFacade:
    def __init__(
        self,
        queue: EventQueue,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self.queue = queue
        self._session_factory = session_factory

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            from rfqhub.db.session import async_session_factory

            self._session_factory = async_session_factory
        return self._session_factory

    def _emit(self, name: str, build: Callable[[], object]) -> None:
        try:
            self.queue.enqueue(build())
        except Exception:
            logger.exception("Could not enqueue %s", name)

    # ------------------------------------------------------------------
    # Lifecycle events
    # ------------------------------------------------------------------

    def on_rfq_created(self, rfq, buyer) -> None:
        self._emit("rfq_created", lambda: RFQCreated(
            rfq=RFQRef.model_validate(rfq),
            buyer=PartyRef.model_validate(buyer),
        ))

    def on_quote_submitted(self, quote, rfq, supplier, buyer) -> None:
        self._emit("quote_submitted", lambda: QuoteSubmitted(
            quote=QuoteRef.model_validate(quote),
            rfq=RFQRef.model_validate(rfq),
            supplier=PartyRef.model_validate(supplier),
            buyer=PartyRef.model_validate(buyer),
        ))

    def on_quote_accepted(self, quote, rfq, supplier, buyer, rejected_quotes: Iterable = ()) -> None:
        self._emit("quote_accepted", lambda: QuoteAccepted(
            quote=QuoteRef.model_validate(quote),
            rfq=RFQRef.model_validate(rfq),
            supplier=PartyRef.model_validate(supplier),
            buyer=PartyRef.model_validate(buyer),
            accepted_at=getattr(rfq, "accepted_at", None) or utcnow(),
            rejected_quotes=[QuoteRef.model_validate(q) for q in rejected_quotes],
        ))

    def on_quote_rejected(self, quote, rfq, supplier) -> None:
        self._emit("quote_rejected", lambda: QuoteRejected(
            quote=QuoteRef.model_validate(quote),
            rfq=RFQRef.model_validate(rfq),
            supplier=PartyRef.model_validate(supplier),
        ))

    def on_counter_offer(self, quote, rfq, buyer, previous_price=None, message: str | None = None) -> None:
        self._emit("counter_offer", lambda: CounterOffer(
            quote=QuoteRef.model_validate(quote),
            rfq=RFQRef.model_validate(rfq),
            buyer=PartyRef.model_validate(buyer),
            previous_price=previous_price,
            message=message,
        ))

    def on_deal_completed(self, rfq, supplier, buyer, completed_at: datetime | None = None) -> None:
        self._emit("deal_completed", lambda: DealCompleted(
            rfq=RFQRef.model_validate(rfq),
            supplier=PartyRef.model_validate(supplier),
            buyer=PartyRef.model_validate(buyer),
            completed_at=completed_at or getattr(rfq, "completed_at", None) or utcnow(),
        ))

    # ------------------------------------------------------------------
    # Rate limits (counted in a session of their own, never the caller's
    # write session)
    # ------------------------------------------------------------------

    async def check_daily_limit(
        self, actor_id: uuid.UUID, kind: ActionKind, limit: int | None = None,
    ) -> DailyLimit:
        limit = limit if limit is not None else _DEFAULT_LIMITS[kind]()
        async with self.session_factory() as session:
            return await check_daily_limit(session, actor_id, kind, limit)

    async def enforce_daily_limit(
        self, actor_id: uuid.UUID, kind: ActionKind, limit: int | None = None,
    ) -> DailyLimit:
        """Like ``check_daily_limit`` but raises ``RateLimitError`` (429) when exhausted."""
        limit = limit if limit is not None else _DEFAULT_LIMITS[kind]()
        async with self.session_factory() as session:
            return await enforce_daily_limit(session, actor_id, kind, limit)

    async def shutdown(self) -> None:
        await self.queue.drain()


def build_orchestrator(
    backend: str | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    **clients,
) -> OrchestrationFacade:
    backend = backend or settings.EVENT_QUEUE_BACKEND
    if backend == "celery":
        queue: EventQueue = CeleryEventQueue()
    else:
        queue = InProcessEventQueue(build_event_processor(session_factory, **clients))
    logger.info("Orchestration queue backend: %s", backend)
    return OrchestrationFacade(queue, session_factory)
