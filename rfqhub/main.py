import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rfqhub.api.middleware import RequestTimingMiddleware
from rfqhub.api.v1.router import v1_router
from rfqhub.common.logging import setup_logging
from rfqhub.config import settings
from rfqhub.core.orchestration.service import build_orchestrator
from rfqhub.integrations import AIClient, AutomationClient, EmailClient


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    if getattr(app.state, "orchestrator", None) is None:
        app.state.orchestrator = build_orchestrator()
    yield
    # Let in-flight fan-out finish before the loop goes away
    await app.state.orchestrator.shutdown()


app = FastAPI(
    title="RFQHub API",
    description="B2B procurement marketplace: RFQs, quotes and supplier matching",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
origins = settings.ALLOWED_ORIGINS.split(",") if settings.ALLOWED_ORIGINS != "*" else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestTimingMiddleware)

# API routes
app.include_router(v1_router, prefix="/api/v1")


@app.get("/health")
async def health_check(deep: bool = False):
    body = {
        "status": "healthy",
        "service": "rfqhub",
        "version": "1.0.0",
        "env": settings.APP_ENV,
    }
    if deep:
        clients = (EmailClient(), AutomationClient(), AIClient())
        results = await asyncio.gather(*(c.health_check() for c in clients))
        body["integrations"] = {c.name: ok for c, ok in zip(clients, results)}
        if not all(results):
            body["status"] = "degraded"
    return body
