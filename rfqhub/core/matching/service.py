import uuid
from collections import defaultdict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rfqhub.common.enums import UserRole
from rfqhub.common.logging import get_logger
from rfqhub.config import settings
from rfqhub.core.matching.schemas import QuoteHistoryItem, SupplierCandidate, SupplierMatch
from rfqhub.core.matching.scorer import rank_suppliers
from rfqhub.db.models.rfq import RFQ, Quote
from rfqhub.db.models.user import User

logger = get_logger("matching.service")

HISTORY_SAMPLE_SIZE = 20


def _as_str_list(value) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v]


async def _load_history(
    db: AsyncSession, supplier_ids: list[uuid.UUID]
) -> dict[uuid.UUID, list[QuoteHistoryItem]]:
    if not supplier_ids:
        return {}

    result = await db.execute(
        select(Quote.supplier_id, Quote.status, RFQ.category)
        .join(RFQ, Quote.rfq_id == RFQ.id)
        .where(Quote.supplier_id.in_(supplier_ids))
        .order_by(Quote.created_at.desc())
        .limit(len(supplier_ids) * HISTORY_SAMPLE_SIZE)
    )

    history: dict[uuid.UUID, list[QuoteHistoryItem]] = defaultdict(list)
    for supplier_id, status, category in result.all():
        if len(history[supplier_id]) < HISTORY_SAMPLE_SIZE:
            history[supplier_id].append(QuoteHistoryItem(status=status, category=category))
    return history


async def load_supplier_pool(db: AsyncSession, pool_size: int | None = None) -> list[SupplierCandidate]:
    """Read-only snapshot of active suppliers, highest trust first."""
    result = await db.execute(
        select(User)
        .where(User.role == UserRole.SUPPLIER.value, User.is_active.is_(True))
        .order_by(User.trust_score.desc(), User.created_at, User.id)
        .limit(pool_size or settings.MATCH_POOL_SIZE)
    )
    suppliers = result.scalars().all()
    history = await _load_history(db, [s.id for s in suppliers])

    pool = []
    for s in suppliers:
        prefs = s.preferences or {}
        pool.append(
            SupplierCandidate(
                id=s.id,
                name=s.name,
                company=s.company,
                email=s.email,
                location=s.location,
                is_verified=s.is_verified,
                trust_score=s.trust_score,
                preferred_categories=_as_str_list(prefs.get("categories")),
                preferred_cities=_as_str_list(prefs.get("cities")),
                history=history.get(s.id, []),
            )
        )
    return pool


async def find_matched_suppliers(
    db: AsyncSession,
    category: str,
    location: str | None,
    limit: int | None = None,
) -> list[SupplierMatch]:
    pool = await load_supplier_pool(db)
    matches = rank_suppliers(
        pool,
        category,
        location,
        limit=limit or settings.MATCH_SHORTLIST_SIZE,
        min_scored=settings.MATCH_MIN_SCORED,
    )
    logger.info(
        "Matched %d of %d suppliers for category=%s location=%s",
        len(matches), len(pool), category, location,
    )
    return matches
