import re
from datetime import datetime, timedelta

from rfqhub.common.enums import QuoteStatus, RFQStatus
from rfqhub.common.exceptions import ConflictError

RFQ_TRANSITIONS: dict[RFQStatus, frozenset[RFQStatus]] = {
    RFQStatus.ACTIVE: frozenset(
        {RFQStatus.QUOTED, RFQStatus.ACCEPTED, RFQStatus.CANCELLED, RFQStatus.EXPIRED}
    ),
    RFQStatus.QUOTED: frozenset(
        {RFQStatus.QUOTED, RFQStatus.ACCEPTED, RFQStatus.CANCELLED, RFQStatus.EXPIRED}
    ),
    RFQStatus.ACCEPTED: frozenset({RFQStatus.COMPLETED, RFQStatus.CLOSED_EXTERNAL}),
    RFQStatus.COMPLETED: frozenset(),
    RFQStatus.CANCELLED: frozenset(),
    RFQStatus.EXPIRED: frozenset(),
    RFQStatus.CLOSED_EXTERNAL: frozenset(),
}

QUOTE_TRANSITIONS: dict[QuoteStatus, frozenset[QuoteStatus]] = {
    QuoteStatus.PENDING: frozenset({QuoteStatus.ACCEPTED, QuoteStatus.REJECTED, QuoteStatus.EXPIRED}),
    QuoteStatus.ACCEPTED: frozenset(),
    QuoteStatus.REJECTED: frozenset(),
    QuoteStatus.EXPIRED: frozenset(),
}

# RFQ states in which suppliers may still quote
OPEN_RFQ_STATUSES = frozenset({RFQStatus.ACTIVE, RFQStatus.QUOTED})


def can_transition_rfq(current: str, target: RFQStatus) -> bool:
    return target in RFQ_TRANSITIONS[RFQStatus(current)]


def can_transition_quote(current: str, target: QuoteStatus) -> bool:
    return target in QUOTE_TRANSITIONS[QuoteStatus(current)]


def rfq_sources(target: RFQStatus) -> list[str]:
    """Every RFQ status from which ``target`` is reachable, as stored values."""
    return sorted(s.value for s, targets in RFQ_TRANSITIONS.items() if target in targets)


def require_rfq_transition(current: str, target: RFQStatus) -> None:
    if not can_transition_rfq(current, target):
        raise ConflictError(f"RFQ cannot move from '{current}' to '{target.value}'")


def require_quote_transition(current: str, target: QuoteStatus) -> None:
    if not can_transition_quote(current, target):
        raise ConflictError(f"Quote cannot move from '{current}' to '{target.value}'")


_NUMBER = re.compile(r"\d+")


def expiry_from_timeline(timeline: str | None, now: datetime, default_days: int = 30) -> datetime:
    """Turn free-text timelines like '2 weeks' or '45 days' into an RFQ expiry."""
    text = (timeline or "").lower()
    match = _NUMBER.search(text)
    amount = int(match.group()) if match else None

    days = default_days
    if "week" in text:
        days = (amount or 2) * 7
    elif "month" in text:
        days = (amount or 1) * 30
    elif "day" in text:
        days = amount or default_days
    return now + timedelta(days=days)
