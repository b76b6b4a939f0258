"""Fan-out of lifecycle events to in-app notifications, email and webhooks.

Every delivery (one recipient on one channel) runs under its own timeout and
its own error guard, so a failing or slow channel never blocks its siblings.
Failures become ``DownstreamChannelError`` log entries and are listed in the
returned ``DispatchReport``; ``dispatch`` itself never raises.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rfqhub.common.enums import NotificationType
from rfqhub.common.events import (
    CounterOffer,
    DealCompleted,
    QuoteAccepted,
    QuoteRejected,
    QuoteSubmitted,
    RFQCreated,
)
from rfqhub.common.exceptions import DownstreamChannelError
from rfqhub.common.logging import get_logger
from rfqhub.config import settings
from rfqhub.core.matching.schemas import SupplierMatch
from rfqhub.core.notifications.service import create_notification, open_message_thread
from rfqhub.core.notifications.templates import (
    BRAND_AMBER,
    BRAND_GREEN,
    app_link,
    render_email,
)
from rfqhub.integrations.ai_client import AIClient, counter_offer_template, format_inr
from rfqhub.integrations.automation import AutomationClient
from rfqhub.integrations.sendgrid import EmailClient

logger = get_logger("notifications.dispatcher")

IN_APP = "in_app"
EMAIL = "email"
WEBHOOK = "webhook"
MESSAGE = "message"
AI = "ai"


@dataclass
class InAppNotice:
    user_id: uuid.UUID
    type: NotificationType
    title: str
    body: str
    data: dict[str, Any]


@dataclass
class EmailNotice:
    to: str | None
    subject: str
    html_body: str


class DispatchReport(BaseModel):
    event: str
    notifications_created: int = 0
    emails_sent: int = 0
    webhooks_sent: int = 0
    failures: list[str] = Field(default_factory=list)


class NotificationDispatcher:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        email_client: EmailClient,
        automation_client: AutomationClient,
        ai_client: AIClient | None = None,
        email_timeout: float | None = None,
        webhook_timeout: float | None = None,
        ai_timeout: float | None = None,
        db_timeout: float = 10.0,
    ) -> None:
        self.session_factory = session_factory
        self.email_client = email_client
        self.automation_client = automation_client
        self.ai_client = ai_client
        self.email_timeout = email_timeout or settings.EMAIL_TIMEOUT_SECONDS
        self.webhook_timeout = webhook_timeout or settings.WEBHOOK_TIMEOUT_SECONDS
        self.ai_timeout = ai_timeout or settings.AI_TIMEOUT_SECONDS
        self.db_timeout = db_timeout

        self._handlers: dict[type, Callable[..., Awaitable[None]]] = {
            RFQCreated: self._rfq_created,
            QuoteSubmitted: self._quote_submitted,
            QuoteAccepted: self._quote_accepted,
            QuoteRejected: self._quote_rejected,
            CounterOffer: self._counter_offer,
            DealCompleted: self._deal_completed,
        }

    async def dispatch(self, event, matches: Sequence[SupplierMatch] | None = None) -> DispatchReport:
        report = DispatchReport(event=event.kind)
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.error("No dispatch handler for event type %s", type(event).__name__)
            return report

        try:
            if isinstance(event, RFQCreated):
                await handler(event, report, list(matches or []))
            else:
                await handler(event, report)
        except Exception:
            logger.exception("Dispatch of %s (%s) aborted", event.kind, event.event_id)
            report.failures.append(f"dispatch aborted for event={event.kind}")

        logger.info(
            "Dispatched %s: notifications=%d emails=%d webhooks=%d failures=%d",
            event.kind, report.notifications_created, report.emails_sent,
            report.webhooks_sent, len(report.failures),
        )
        return report

    # ------------------------------------------------------------------
    # Guarded delivery
    # ------------------------------------------------------------------

    async def _guard(
        self,
        report: DispatchReport,
        event_name: str,
        channel: str,
        recipient: str | None,
        action: Callable[[], Awaitable[Any]],
        timeout: float,
    ) -> bool:
        try:
            result = await asyncio.wait_for(action(), timeout=timeout)
            if isinstance(result, dict) and result.get("status") == "failed":
                raise DownstreamChannelError(channel, recipient, event_name, result.get("error"))
            return True
        except Exception as e:
            err = e if isinstance(e, DownstreamChannelError) else DownstreamChannelError(
                channel, recipient, event_name, str(e) or type(e).__name__
            )
            logger.warning(
                "%s", err,
                extra={"channel": channel, "recipient": recipient, "event": event_name},
            )
            report.failures.append(str(err))
            return False

    async def _insert_notification(self, notice: InAppNotice) -> None:
        async with self.session_factory() as db:
            await create_notification(
                db, notice.user_id, notice.type.value, notice.title, notice.body, notice.data
            )
            await db.commit()

    async def _notify(self, report: DispatchReport, event_name: str, notice: InAppNotice) -> bool:
        ok = await self._guard(
            report, event_name, IN_APP, str(notice.user_id),
            lambda: self._insert_notification(notice), self.db_timeout,
        )
        if ok:
            report.notifications_created += 1
        return ok

    async def _notify_all(self, report: DispatchReport, event_name: str, notices: list[InAppNotice]) -> int:
        results = await asyncio.gather(*(self._notify(report, event_name, n) for n in notices))
        return sum(1 for ok in results if ok)

    async def _email(self, report: DispatchReport, event_name: str, notice: EmailNotice) -> None:
        if not notice.to:
            return
        ok = await self._guard(
            report, event_name, EMAIL, notice.to,
            lambda: self.email_client.send_email(to=notice.to, subject=notice.subject, html_body=notice.html_body),
            self.email_timeout,
        )
        if ok:
            report.emails_sent += 1

    async def _webhook(self, report: DispatchReport, event_name: str, payload: dict[str, Any]) -> None:
        ok = await self._guard(
            report, event_name, WEBHOOK, None,
            lambda: self.automation_client.notify(event_name, payload),
            self.webhook_timeout,
        )
        if ok:
            report.webhooks_sent += 1

    async def _fan_out(
        self,
        report: DispatchReport,
        event_name: str,
        emails: Sequence[EmailNotice] = (),
        webhooks: Sequence[tuple[str, dict[str, Any]]] = (),
    ) -> None:
        await asyncio.gather(
            *(self._email(report, event_name, e) for e in emails),
            *(self._webhook(report, name, payload) for name, payload in webhooks),
        )

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def _rfq_created(self, event: RFQCreated, report: DispatchReport, matches: list[SupplierMatch]) -> None:
        rfq, buyer = event.rfq, event.buyer
        where = f" · {rfq.location}" if rfq.location else ""
        data = {"rfq_id": str(rfq.id), "category": rfq.category}

        notified = await self._notify_all(report, event.kind, [
            InAppNotice(
                user_id=m.supplier.id,
                type=NotificationType.RFQ_CREATED,
                title="New RFQ in your category",
                body=f'"{rfq.title}" - {rfq.category}{where}. Quote now!',
                data={**data, "match_score": m.score},
            )
            for m in matches
        ])

        # Exactly one confirmation for the buyer, after the supplier inserts settle
        await self._notify(report, event.kind, InAppNotice(
            user_id=buyer.id,
            type=NotificationType.SUCCESS,
            title="RFQ Posted Successfully",
            body=f'Your RFQ "{rfq.title}" is live. {notified} suppliers have been notified.',
            data={"rfq_id": str(rfq.id), "suppliers_notified": notified},
        ))

        rfq_url = app_link(f"rfq/{rfq.id}")
        emails = [EmailNotice(
            to=buyer.email,
            subject=f"RFQ Posted: {rfq.title}",
            html_body=render_email(
                "Your RFQ is live!",
                f'"{rfq.title}" has been posted. {notified} suppliers in {rfq.category} were notified.',
                rfq_url, "View RFQ",
            ),
        )]
        emails += [
            EmailNotice(
                to=m.supplier.email,
                subject=f"New RFQ: {rfq.title}",
                html_body=render_email(
                    "New RFQ in your category",
                    f'A buyer is looking for "{rfq.title}" ({rfq.category}{where}).',
                    rfq_url, "Submit a Quote",
                ),
            )
            for m in matches
        ]
        await self._fan_out(report, event.kind, emails, [("rfq_posted", {
            "rfq_id": str(rfq.id),
            "title": rfq.title,
            "category": rfq.category,
            "location": rfq.location,
            "buyer_id": str(buyer.id),
            "buyer_name": buyer.name or "Buyer",
            "matched_supplier_ids": [str(m.supplier.id) for m in matches],
        })])

    async def _quote_submitted(self, event: QuoteSubmitted, report: DispatchReport) -> None:
        quote, rfq, supplier, buyer = event.quote, event.rfq, event.supplier, event.buyer
        price = format_inr(quote.price)
        data = {"rfq_id": str(rfq.id), "quote_id": str(quote.id), "supplier_id": str(supplier.id)}

        await self._notify_all(report, event.kind, [
            InAppNotice(
                user_id=buyer.id,
                type=NotificationType.QUOTE_RECEIVED,
                title="New Quote Received",
                body=f'{supplier.label} quoted {price} for "{rfq.title}"',
                data=data,
            ),
            InAppNotice(
                user_id=supplier.id,
                type=NotificationType.SUCCESS,
                title="Quote Submitted",
                body=f'Your quote of {price} for "{rfq.title}" was sent to the buyer.',
                data=data,
            ),
        ])

        await self._fan_out(
            report, event.kind,
            [EmailNotice(
                to=buyer.email,
                subject=f'New Quote for "{rfq.title}" - {price}',
                html_body=render_email(
                    "You received a quote!",
                    f'{supplier.label} quoted {price} ({quote.timeline}) for "{rfq.title}".',
                    app_link(f"rfq/{rfq.id}"), "Review & Respond",
                ),
            )],
            [("quote_received", {
                **data,
                "supplier_name": supplier.label,
                "amount": float(quote.price),
            })],
        )

    async def _open_thread(self, event: QuoteAccepted) -> None:
        async with self.session_factory() as db:
            await open_message_thread(
                db,
                sender_id=event.buyer.id,
                recipient_id=event.supplier.id,
                rfq_id=event.rfq.id,
                content=(
                    f'Hi, I have accepted your quote of {format_inr(event.quote.price)} '
                    f'for "{event.rfq.title}". Let\'s finalise delivery details here.'
                ),
            )
            await db.commit()

    async def _quote_accepted(self, event: QuoteAccepted, report: DispatchReport) -> None:
        quote, rfq, supplier, buyer = event.quote, event.rfq, event.supplier, event.buyer
        price = format_inr(quote.price)
        data = {"rfq_id": str(rfq.id), "quote_id": str(quote.id), "supplier_id": str(supplier.id)}
        check_at = event.accepted_at + timedelta(days=settings.DEAL_CHECK_DAYS)

        notices = [
            InAppNotice(
                user_id=supplier.id,
                type=NotificationType.QUOTE_ACCEPTED,
                title="Quote Accepted!",
                body=f'{buyer.name or "The buyer"} accepted your quote of {price} for "{rfq.title}". Deal closed!',
                data=data,
            ),
            InAppNotice(
                user_id=buyer.id,
                type=NotificationType.SUCCESS,
                title="Deal Confirmed",
                body=f'You accepted the quote for "{rfq.title}". Check your messages to proceed.',
                data=data,
            ),
            # Materialised now; the external scheduler surfaces it at check_at
            InAppNotice(
                user_id=buyer.id,
                type=NotificationType.DEAL_CHECK,
                title="Was the deal completed?",
                body=f'Let us know once "{rfq.title}" with {supplier.label} is delivered.',
                data={**data, "check_at": check_at.isoformat()},
            ),
        ]
        notices += [
            InAppNotice(
                user_id=q.supplier_id,
                type=NotificationType.INFO,
                title="Quote Not Selected",
                body=f'Your quote for "{rfq.title}" was not selected this time. Browse new RFQs to try again.',
                data={"rfq_id": str(rfq.id), "quote_id": str(q.id)},
            )
            for q in event.rejected_quotes
        ]
        await self._notify_all(report, event.kind, notices)

        await self._guard(
            report, event.kind, MESSAGE, str(supplier.id),
            lambda: self._open_thread(event), self.db_timeout,
        )

        await self._fan_out(
            report, event.kind,
            [EmailNotice(
                to=supplier.email,
                subject=f'Your quote was accepted - "{rfq.title}"',
                html_body=render_email(
                    "Congratulations! Deal closed!",
                    f'Your quote of {price} for "{rfq.title}" has been accepted by the buyer.',
                    app_link("messages"), "Go to Messages", BRAND_GREEN,
                ),
            )],
            [("quote_accepted", {
                **data,
                "rfq_title": rfq.title,
                "supplier_name": supplier.label,
                "buyer_id": str(buyer.id),
                "buyer_name": buyer.name or "Buyer",
                "amount": float(quote.price),
                "confirm_by": check_at.isoformat(),
            })],
        )

    async def _quote_rejected(self, event: QuoteRejected, report: DispatchReport) -> None:
        quote, rfq, supplier = event.quote, event.rfq, event.supplier
        data = {"rfq_id": str(rfq.id), "quote_id": str(quote.id)}

        await self._notify(report, event.kind, InAppNotice(
            user_id=supplier.id,
            type=NotificationType.INFO,
            title="Quote Not Selected",
            body=f'Your quote for "{rfq.title}" was not selected this time. Browse new RFQs to try again.',
            data=data,
        ))
        await self._fan_out(report, event.kind, webhooks=[("quote_rejected", {
            **data, "supplier_id": str(supplier.id),
        })])

    async def _counter_offer_copy(self, event: CounterOffer, report: DispatchReport) -> str:
        fallback = counter_offer_template(event.rfq.title, event.quote.price, event.quote.timeline)
        if self.ai_client is None:
            return fallback

        text: list[str] = []

        async def _compose() -> None:
            text.append(await self.ai_client.compose_counter_offer_message(
                event.rfq.title, event.quote.price, event.quote.timeline, event.previous_price,
            ))

        await self._guard(report, event.kind, AI, None, _compose, self.ai_timeout)
        return text[0] if text and text[0] else fallback

    async def _counter_offer(self, event: CounterOffer, report: DispatchReport) -> None:
        quote, rfq, buyer = event.quote, event.rfq, event.buyer
        price = format_inr(quote.price)
        data = {"rfq_id": str(rfq.id), "quote_id": str(quote.id)}
        body = await self._counter_offer_copy(event, report)
        if event.message:
            body = f"{body} Supplier note: {event.message}"

        await self._notify(report, event.kind, InAppNotice(
            user_id=buyer.id,
            type=NotificationType.QUOTE_RECEIVED,
            title="Counter Offer Received",
            body=body,
            data={**data, "price": str(quote.price)},
        ))
        await self._fan_out(
            report, event.kind,
            [EmailNotice(
                to=buyer.email,
                subject=f'Counter Offer on "{rfq.title}" - {price}',
                html_body=render_email(
                    "New Counter Offer", body,
                    app_link(f"rfq/{rfq.id}"), "Review Counter Offer", BRAND_AMBER,
                ),
            )],
            [("counter_offer", {
                **data,
                "supplier_id": str(quote.supplier_id),
                "amount": float(quote.price),
                "previous_amount": float(event.previous_price) if event.previous_price is not None else None,
            })],
        )

    async def _deal_completed(self, event: DealCompleted, report: DispatchReport) -> None:
        rfq, supplier, buyer = event.rfq, event.supplier, event.buyer
        data = {"rfq_id": str(rfq.id), "supplier_id": str(supplier.id)}

        await self._notify_all(report, event.kind, [
            InAppNotice(
                user_id=supplier.id,
                type=NotificationType.DEAL_CONFIRMED,
                title="Deal Completed",
                body=f'{buyer.name or "The buyer"} confirmed "{rfq.title}" as delivered. Your trust score went up.',
                data=data,
            ),
            InAppNotice(
                user_id=buyer.id,
                type=NotificationType.DEAL_CONFIRMED,
                title="Thanks for confirming",
                body=f'"{rfq.title}" with {supplier.label} is marked as completed.',
                data=data,
            ),
        ])
        await self._fan_out(
            report, event.kind,
            [EmailNotice(
                to=supplier.email,
                subject=f'Deal completed - "{rfq.title}"',
                html_body=render_email(
                    "Deal completed",
                    f'The buyer confirmed "{rfq.title}" as completed. Thank you for delivering!',
                    app_link("supplier/dashboard"), "Open Dashboard", BRAND_GREEN,
                ),
            )],
            [("deal_completed", {
                **data,
                "rfq_title": rfq.title,
                "supplier_name": supplier.label,
                "buyer_id": str(buyer.id),
                "buyer_name": buyer.name or "Buyer",
            })],
        )
