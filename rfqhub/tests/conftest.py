import uuid
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import JSON, event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from rfqhub.common.enums import UserRole
from rfqhub.core.notifications.dispatcher import NotificationDispatcher
from rfqhub.core.orchestration.processor import EventProcessor
from rfqhub.core.orchestration.queue import InProcessEventQueue
from rfqhub.core.orchestration.service import OrchestrationFacade
from rfqhub.db.base import Base
from rfqhub.db.models import *  # noqa: F401,F403 - ensure all models loaded
from rfqhub.db.models.user import User


# Make JSONB render as JSON for SQLite
@event.listens_for(Base.metadata, "before_create")
def _remap_jsonb(target, connection, **kw):
    if connection.dialect.name == "sqlite":
        for table in target.tables.values():
            for column in table.columns:
                if isinstance(column.type, JSONB):
                    column.type = JSON()


@pytest.fixture
async def test_engine(tmp_path):
    # File-backed so independent sessions see each other's commits
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


# ---------- Users ----------


@pytest.fixture
def make_user(session_factory):
    async def _make(role: UserRole = UserRole.BUYER, **fields) -> User:
        fields.setdefault("email", f"{role.value}_{uuid.uuid4().hex[:8]}@test.com")
        fields.setdefault("name", f"Test {role.value.title()}")
        async with session_factory() as db:
            user = User(id=uuid.uuid4(), role=role.value, **fields)
            db.add(user)
            await db.commit()
            await db.refresh(user)
        return user

    return _make


@pytest.fixture
async def buyer_user(make_user):
    return await make_user(UserRole.BUYER, company="Acme Buyers")


@pytest.fixture
async def supplier_user(make_user):
    return await make_user(
        UserRole.SUPPLIER,
        company="Bharat Steel",
        location="Mumbai",
        trust_score=50,
        preferences={"categories": ["Industrial Machinery"], "cities": ["Mumbai"]},
    )


@pytest.fixture
async def admin_user(make_user):
    return await make_user(UserRole.ADMIN)


@pytest.fixture
def headers():
    def _headers(user: User) -> dict[str, str]:
        return {"X-User-Id": str(user.id)}

    return _headers


# ---------- Integration fakes ----------


@pytest.fixture
def email_client():
    client = MagicMock()
    client.send_email = AsyncMock(return_value={"status": "sent", "message_id": "mock-123"})
    return client


@pytest.fixture
def automation_client():
    client = MagicMock()
    client.notify = AsyncMock(return_value={"status": "sent"})
    return client


@pytest.fixture
def ai_client():
    client = MagicMock()
    client.compose_counter_offer_message = AsyncMock(return_value="")
    return client


@pytest.fixture
def dispatcher(session_factory, email_client, automation_client, ai_client):
    return NotificationDispatcher(
        session_factory=session_factory,
        email_client=email_client,
        automation_client=automation_client,
        ai_client=ai_client,
        email_timeout=1,
        webhook_timeout=1,
        ai_timeout=1,
    )


@pytest.fixture
def processor(session_factory, dispatcher):
    return EventProcessor(session_factory, dispatcher)


@pytest.fixture
def orchestrator(session_factory, processor):
    return OrchestrationFacade(InProcessEventQueue(processor), session_factory)


# ---------- HTTP ----------


@pytest.fixture
async def client(session_factory, orchestrator):
    from rfqhub.api.deps import get_db
    from rfqhub.main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.state.orchestrator = orchestrator

    # Fan-out started by a request finishes before the test sees the response
    async def drain_fan_out(response):
        await orchestrator.queue.drain()

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport, base_url="http://test", event_hooks={"response": [drain_fan_out]}
    ) as ac:
        yield ac

    await orchestrator.shutdown()
    app.dependency_overrides.clear()
    app.state.orchestrator = None
