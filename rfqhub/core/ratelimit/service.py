"""Per-user daily action ceilings (RFQ posts, quote submissions).

The count is derived on every call from the RFQ/Quote tables, filtered by
actor and by the start of the current day in ``MARKETPLACE_TIMEZONE``.
A failed count query fails open: this guards against abuse, it is not a
billing control.

Callers that go on to write should pass a session of its own, never the
session that will do the INSERT: on PostgreSQL a failed statement aborts
the whole transaction it ran in.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rfqhub.common.enums import ActionKind
from rfqhub.common.exceptions import RateLimitError
from rfqhub.common.logging import get_logger
from rfqhub.config import settings
from rfqhub.core.ratelimit.schemas import DailyLimit
from rfqhub.db.models.rfq import RFQ, Quote

logger = get_logger("ratelimit.service")


def start_of_local_day(now: datetime | None = None, tz_name: str | None = None) -> datetime:
    """Midnight of ``now``'s local day, returned in UTC."""
    tz = ZoneInfo(tz_name or settings.MARKETPLACE_TIMEZONE)
    now = now or datetime.now(timezone.utc)
    local = now.astimezone(tz)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc)


async def count_actions_today(
    db: AsyncSession, actor_id: uuid.UUID, kind: ActionKind, now: datetime | None = None,
) -> int:
    since = start_of_local_day(now)
    if kind == ActionKind.RFQ:
        model, actor_column = RFQ, RFQ.buyer_id
    else:
        model, actor_column = Quote, Quote.supplier_id

    query = select(func.count()).select_from(model).where(
        actor_column == actor_id, model.created_at >= since
    )
    if now is not None:
        query = query.where(model.created_at <= now)
    return (await db.execute(query)).scalar() or 0


async def check_daily_limit(
    db: AsyncSession,
    actor_id: uuid.UUID,
    kind: ActionKind,
    limit: int,
    now: datetime | None = None,
) -> DailyLimit:
    try:
        count = await count_actions_today(db, actor_id, kind, now)
    except SQLAlchemyError as e:
        logger.warning("Daily %s limit check failed for %s, allowing: %s", kind.value, actor_id, e)
        return DailyLimit(kind=kind, allowed=True, count=0, limit=limit)

    allowed = count < limit
    if not allowed:
        logger.info("Daily %s limit reached for %s (%d/%d)", kind.value, actor_id, count, limit)
    return DailyLimit(kind=kind, allowed=allowed, count=count, limit=limit)


async def enforce_daily_limit(
    db: AsyncSession, actor_id: uuid.UUID, kind: ActionKind, limit: int,
) -> DailyLimit:
    result = await check_daily_limit(db, actor_id, kind, limit)
    if not result.allowed:
        raise RateLimitError(kind.value.upper(), result.count, result.limit)
    return result
