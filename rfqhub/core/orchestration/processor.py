"""Secondary effects of a committed lifecycle event.

Runs supplier matching for new RFQs, applies trust-score bonuses, and hands
the event to the notification dispatcher. Each step uses its own short
session so one failing write never rolls back another.
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable

from sqlalchemy import case, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rfqhub.common.events import DealCompleted, QuoteAccepted, RFQCreated
from rfqhub.common.logging import get_logger
from rfqhub.config import settings
from rfqhub.core.matching.schemas import SupplierMatch
from rfqhub.core.matching.service import find_matched_suppliers
from rfqhub.core.notifications.dispatcher import DispatchReport, NotificationDispatcher
from rfqhub.db.models.user import User

logger = get_logger("orchestration.processor")

MAX_TRUST_SCORE = 100

Matcher = Callable[[AsyncSession, str, str | None], Awaitable[list[SupplierMatch]]]


class EventProcessor:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dispatcher: NotificationDispatcher,
        matcher: Matcher = find_matched_suppliers,
    ) -> None:
        self.session_factory = session_factory
        self.dispatcher = dispatcher
        self.matcher = matcher

    async def process(self, event) -> DispatchReport | None:
        try:
            matches: list[SupplierMatch] = []
            if isinstance(event, RFQCreated):
                matches = await self._match(event)
            elif isinstance(event, QuoteAccepted):
                await self.bump_trust(event.supplier.id, settings.TRUST_BONUS_ACCEPTED)
            elif isinstance(event, DealCompleted):
                await self.bump_trust(event.supplier.id, settings.TRUST_BONUS_COMPLETED)

            return await self.dispatcher.dispatch(event, matches)
        except Exception:
            logger.exception("Event %s (%s) failed", event.kind, event.event_id)
            return None

    async def _match(self, event: RFQCreated) -> list[SupplierMatch]:
        try:
            async with self.session_factory() as db:
                matches = await self.matcher(db, event.rfq.category, event.rfq.location)
        except Exception:
            logger.exception("Supplier matching failed for RFQ %s", event.rfq.id)
            return []
        # Never alert the buyer about their own RFQ
        return [m for m in matches if m.supplier.id != event.buyer.id]

    async def bump_trust(self, supplier_id: uuid.UUID, amount: int) -> None:
        """Add ``amount`` to a supplier's trust score, clamped at 100.

        Duplicate delivery may apply the bonus twice; that is accepted.
        """
        raised = User.trust_score + amount
        try:
            async with self.session_factory() as db:
                await db.execute(
                    update(User)
                    .where(User.id == supplier_id)
                    .values(trust_score=case((raised > MAX_TRUST_SCORE, MAX_TRUST_SCORE), else_=raised))
                    .execution_options(synchronize_session=False)
                )
                await db.commit()
            logger.info("Trust score of %s raised by %d", supplier_id, amount)
        except Exception:
            logger.exception("Trust score update failed for supplier %s", supplier_id)


def build_event_processor(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    email_client=None,
    automation_client=None,
    ai_client=None,
) -> EventProcessor:
    from rfqhub.db.session import async_session_factory
    from rfqhub.integrations import AIClient, AutomationClient, EmailClient

    session_factory = session_factory or async_session_factory
    dispatcher = NotificationDispatcher(
        session_factory=session_factory,
        email_client=email_client or EmailClient(),
        automation_client=automation_client or AutomationClient(),
        ai_client=ai_client or AIClient(),
    )
    return EventProcessor(session_factory, dispatcher)
