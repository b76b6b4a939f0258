from fastapi import APIRouter

from rfqhub.api.v1.admin import router as admin_router
from rfqhub.api.v1.messages import router as messages_router
from rfqhub.api.v1.notifications import router as notifications_router
from rfqhub.api.v1.quotes import router as quotes_router
from rfqhub.api.v1.rfqs import router as rfqs_router

v1_router = APIRouter()

v1_router.include_router(rfqs_router)
v1_router.include_router(quotes_router)
v1_router.include_router(notifications_router)
v1_router.include_router(messages_router)
v1_router.include_router(admin_router)
