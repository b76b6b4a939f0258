import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from rfqhub.api.deps import get_db, require_role
from rfqhub.api.v1.schemas import RFQResponse
from rfqhub.common.enums import UserRole
from rfqhub.core.lifecycle.service import LifecycleService
from rfqhub.db.models.user import User

router = APIRouter(prefix="/admin", tags=["Admin"])

lifecycle = LifecycleService()


@router.post("/rfqs/{rfq_id}/close-external", response_model=RFQResponse)
async def close_external(
    rfq_id: uuid.UUID,
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    rfq = await lifecycle.close_external(db, current_user, rfq_id)
    await db.commit()
    return RFQResponse.model_validate(rfq)
