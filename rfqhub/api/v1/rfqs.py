import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rfqhub.api.deps import get_current_user, get_db, get_orchestrator, require_role
from rfqhub.api.v1.schemas import MatchResponse, QuoteResponse, RFQFeedItem, RFQPage, RFQResponse
from rfqhub.common.enums import ActionKind, RFQStatus, RFQUrgency, UserRole
from rfqhub.common.exceptions import AuthorizationError
from rfqhub.common.pagination import PaginationParams, paginate
from rfqhub.core.lifecycle.schemas import QuoteCreate, RFQCreate
from rfqhub.core.lifecycle.service import LifecycleService
from rfqhub.core.lifecycle.state_machine import OPEN_RFQ_STATUSES
from rfqhub.core.matching.service import find_matched_suppliers
from rfqhub.core.orchestration.service import OrchestrationFacade
from rfqhub.db.models.rfq import RFQ, Quote
from rfqhub.db.models.user import User

router = APIRouter(prefix="/rfqs", tags=["RFQs"])

lifecycle = LifecycleService()


# ---------- Endpoints ----------


@router.get("", response_model=RFQPage)
async def browse_rfqs(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    params: PaginationParams = Depends(),
    status: RFQStatus | None = Query(None, description="Defaults to open RFQs (active and quoted)"),
    category: str | None = None,
    location: str | None = None,
    urgency: RFQUrgency | None = None,
):
    """Marketplace feed suppliers browse for RFQs to quote on."""
    if status is None:
        query = select(RFQ).where(RFQ.status.in_([s.value for s in OPEN_RFQ_STATUSES]))
    else:
        query = select(RFQ).where(RFQ.status == status.value)
    if category:
        query = query.where(RFQ.category.ilike(f"%{category}%"))
    if location:
        query = query.where(RFQ.location.ilike(f"%{location}%"))
    if urgency:
        query = query.where(RFQ.urgency == urgency.value)

    rfqs, total = await paginate(db, query, params, RFQ, RFQ.created_at.desc())

    counts: dict[uuid.UUID, int] = {}
    if rfqs:
        rows = await db.execute(
            select(Quote.rfq_id, func.count())
            .where(Quote.rfq_id.in_([r.id for r in rfqs]))
            .group_by(Quote.rfq_id)
        )
        counts = dict(rows.all())

    items = [
        RFQFeedItem(**RFQResponse.model_validate(r).model_dump(), quote_count=counts.get(r.id, 0))
        for r in rfqs
    ]
    return RFQPage.build(items, total, params)


@router.post("", response_model=RFQResponse, status_code=201)
async def create_rfq(
    body: RFQCreate,
    current_user: User = Depends(require_role(UserRole.BUYER)),
    db: AsyncSession = Depends(get_db),
    orchestrator: OrchestrationFacade = Depends(get_orchestrator),
):
    await orchestrator.enforce_daily_limit(current_user.id, ActionKind.RFQ)

    rfq = await lifecycle.create_rfq(db, current_user, body)
    await db.commit()

    orchestrator.on_rfq_created(rfq, current_user)
    return RFQResponse.model_validate(rfq)


@router.get("/{rfq_id}", response_model=RFQResponse)
async def get_rfq(
    rfq_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rfq = await lifecycle.get_rfq(db, rfq_id)
    return RFQResponse.model_validate(rfq)


@router.get("/{rfq_id}/matches", response_model=list[MatchResponse])
async def get_matches(
    rfq_id: uuid.UUID,
    current_user: User = Depends(require_role(UserRole.BUYER, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    rfq = await lifecycle.get_rfq(db, rfq_id)
    if current_user.role != UserRole.ADMIN.value and rfq.buyer_id != current_user.id:
        raise AuthorizationError("You do not have access to this RFQ")

    matches = await find_matched_suppliers(db, rfq.category, rfq.location)
    return [
        MatchResponse(
            supplier_id=m.supplier.id,
            name=m.supplier.name,
            company=m.supplier.company,
            location=m.supplier.location,
            trust_score=m.supplier.trust_score,
            is_verified=m.supplier.is_verified,
            score=m.score,
            reasons=m.reasons,
        )
        for m in matches
        if m.supplier.id != rfq.buyer_id
    ]


@router.post("/{rfq_id}/cancel", response_model=RFQResponse)
async def cancel_rfq(
    rfq_id: uuid.UUID,
    current_user: User = Depends(require_role(UserRole.BUYER)),
    db: AsyncSession = Depends(get_db),
):
    rfq = await lifecycle.cancel_rfq(db, current_user, rfq_id)
    await db.commit()
    return RFQResponse.model_validate(rfq)


@router.post("/{rfq_id}/complete", response_model=RFQResponse)
async def complete_deal(
    rfq_id: uuid.UUID,
    current_user: User = Depends(require_role(UserRole.BUYER)),
    db: AsyncSession = Depends(get_db),
    orchestrator: OrchestrationFacade = Depends(get_orchestrator),
):
    outcome = await lifecycle.complete_deal(db, current_user, rfq_id)
    supplier = await db.get(User, outcome.quote.supplier_id)
    await db.commit()

    orchestrator.on_deal_completed(outcome.rfq, supplier, current_user, outcome.rfq.completed_at)
    return RFQResponse.model_validate(outcome.rfq)


# ---------- Quotes on an RFQ ----------


@router.post("/{rfq_id}/quotes", response_model=QuoteResponse, status_code=201)
async def submit_quote(
    rfq_id: uuid.UUID,
    body: QuoteCreate,
    current_user: User = Depends(require_role(UserRole.SUPPLIER)),
    db: AsyncSession = Depends(get_db),
    orchestrator: OrchestrationFacade = Depends(get_orchestrator),
):
    await orchestrator.enforce_daily_limit(current_user.id, ActionKind.QUOTE)

    quote, rfq = await lifecycle.submit_quote(db, current_user, rfq_id, body)
    buyer = await db.get(User, rfq.buyer_id)
    await db.commit()

    orchestrator.on_quote_submitted(quote, rfq, current_user, buyer)
    return QuoteResponse.model_validate(quote)


@router.get("/{rfq_id}/quotes", response_model=list[QuoteResponse])
async def list_quotes(
    rfq_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rfq = await lifecycle.get_rfq(db, rfq_id)
    quotes = await lifecycle.list_quotes(db, rfq.id)

    # Suppliers only see their own quote; the buyer and admins see all
    if current_user.role == UserRole.SUPPLIER.value:
        quotes = [q for q in quotes if q.supplier_id == current_user.id]
    elif current_user.role != UserRole.ADMIN.value and rfq.buyer_id != current_user.id:
        raise AuthorizationError("You do not have access to quotes on this RFQ")

    return [QuoteResponse.model_validate(q) for q in quotes]
