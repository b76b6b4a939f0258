import uuid

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rfqhub.api.deps import get_db, get_orchestrator, require_role
from rfqhub.api.v1.schemas import (
    AcceptResponse,
    QuoteResponse,
    RFQResponse,
    RFQSummary,
    SupplierQuoteItem,
    SupplierQuotePage,
)
from rfqhub.common.enums import QuoteStatus, UserRole
from rfqhub.common.pagination import PaginationParams, paginate
from rfqhub.core.lifecycle.schemas import CounterOfferRequest
from rfqhub.core.lifecycle.service import LifecycleService
from rfqhub.core.orchestration.service import OrchestrationFacade
from rfqhub.db.models.rfq import RFQ, Quote
from rfqhub.db.models.user import User

router = APIRouter(prefix="/quotes", tags=["Quotes"])

lifecycle = LifecycleService()


@router.get("/mine", response_model=SupplierQuotePage)
async def my_quotes(
    current_user: User = Depends(require_role(UserRole.SUPPLIER)),
    db: AsyncSession = Depends(get_db),
    params: PaginationParams = Depends(),
    status: QuoteStatus | None = None,
):
    """The calling supplier's quotes, newest first, each with its RFQ."""
    query = select(Quote).where(Quote.supplier_id == current_user.id)
    if status:
        query = query.where(Quote.status == status.value)

    quotes, total = await paginate(db, query, params, Quote, Quote.created_at.desc())

    rfqs: dict[uuid.UUID, RFQ] = {}
    if quotes:
        result = await db.execute(select(RFQ).where(RFQ.id.in_(list({q.rfq_id for q in quotes}))))
        rfqs = {r.id: r for r in result.scalars().all()}

    items = [
        SupplierQuoteItem(
            **QuoteResponse.model_validate(q).model_dump(),
            rfq=RFQSummary.model_validate(rfqs[q.rfq_id]),
        )
        for q in quotes
    ]
    return SupplierQuotePage.build(items, total, params)


@router.post("/{quote_id}/accept", response_model=AcceptResponse)
async def accept_quote(
    quote_id: uuid.UUID,
    current_user: User = Depends(require_role(UserRole.BUYER)),
    db: AsyncSession = Depends(get_db),
    orchestrator: OrchestrationFacade = Depends(get_orchestrator),
):
    outcome = await lifecycle.accept_quote(db, current_user, quote_id)
    supplier = await db.get(User, outcome.quote.supplier_id)
    await db.commit()

    orchestrator.on_quote_accepted(outcome.quote, outcome.rfq, supplier, current_user, outcome.rejected)
    return AcceptResponse(
        quote=QuoteResponse.model_validate(outcome.quote),
        rfq=RFQResponse.model_validate(outcome.rfq),
        rejected_quote_ids=[q.id for q in outcome.rejected],
    )


@router.post("/{quote_id}/reject", response_model=QuoteResponse)
async def reject_quote(
    quote_id: uuid.UUID,
    current_user: User = Depends(require_role(UserRole.BUYER)),
    db: AsyncSession = Depends(get_db),
    orchestrator: OrchestrationFacade = Depends(get_orchestrator),
):
    quote, rfq = await lifecycle.reject_quote(db, current_user, quote_id)
    supplier = await db.get(User, quote.supplier_id)
    await db.commit()

    orchestrator.on_quote_rejected(quote, rfq, supplier)
    return QuoteResponse.model_validate(quote)


@router.post("/{quote_id}/counter", response_model=QuoteResponse)
async def counter_offer(
    quote_id: uuid.UUID,
    body: CounterOfferRequest,
    current_user: User = Depends(require_role(UserRole.SUPPLIER)),
    db: AsyncSession = Depends(get_db),
    orchestrator: OrchestrationFacade = Depends(get_orchestrator),
):
    outcome = await lifecycle.counter_offer(db, current_user, quote_id, body)
    buyer = await db.get(User, outcome.rfq.buyer_id)
    await db.commit()

    orchestrator.on_counter_offer(outcome.quote, outcome.rfq, buyer, outcome.previous_price, body.message)
    return QuoteResponse.model_validate(outcome.quote)
