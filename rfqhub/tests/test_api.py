import uuid
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import event, select
from sqlalchemy.exc import InternalError, OperationalError

from rfqhub.common.enums import NotificationType, UserRole
from rfqhub.db.models.notification import Notification
from rfqhub.db.models.rfq import RFQ
from rfqhub.db.models.user import User
from rfqhub.integrations import AutomationClient

RFQ_BODY = {
    "title": "Steel Pipes",
    "category": "Industrial Machinery",
    "location": "Mumbai",
    "quantity": "500",
    "unit": "meters",
    "timeline": "2 weeks",
}


async def _notifications(session_factory, user_id) -> list[Notification]:
    async with session_factory() as db:
        result = await db.execute(select(Notification).where(Notification.user_id == user_id))
        return list(result.scalars().all())


async def _post_rfq(client, headers, buyer, **overrides):
    response = await client.post("/api/v1/rfqs", json={**RFQ_BODY, **overrides}, headers=headers(buyer))
    assert response.status_code == 201, response.text
    return response.json()


async def _post_quote(client, headers, supplier, rfq_id, price="1000"):
    response = await client.post(
        f"/api/v1/rfqs/{rfq_id}/quotes",
        json={"price": price, "timeline": "10 days"},
        headers=headers(supplier),
    )
    assert response.status_code == 201, response.text
    return response.json()


# ---------- Identity ----------


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["service"] == "rfqhub"


@pytest.mark.asyncio
async def test_deep_health_reports_integrations(client):
    response = await client.get("/health?deep=true")

    body = response.json()
    assert body["status"] == "healthy"
    assert body["integrations"] == {"sendgrid": True, "automation": True, "ai": True}


@pytest.mark.asyncio
async def test_deep_health_degrades_when_an_integration_is_down(client):
    with patch.object(AutomationClient, "health_check", AsyncMock(return_value=False)):
        response = await client.get("/health?deep=true")

    body = response.json()
    assert body["status"] == "degraded"
    assert body["integrations"]["automation"] is False


@pytest.mark.asyncio
async def test_missing_identity_header_is_rejected(client):
    response = await client.post("/api/v1/rfqs", json=RFQ_BODY)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_malformed_identity_header_is_forbidden(client):
    response = await client.post("/api/v1/rfqs", json=RFQ_BODY, headers={"X-User-Id": "not-a-uuid"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unknown_user_is_not_found(client):
    response = await client.get(f"/api/v1/rfqs/{uuid.uuid4()}", headers={"X-User-Id": str(uuid.uuid4())})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_supplier_cannot_post_rfq(client, headers, supplier_user):
    response = await client.post("/api/v1/rfqs", json=RFQ_BODY, headers=headers(supplier_user))
    assert response.status_code == 403


# ---------- RFQ creation ----------


@pytest.mark.asyncio
async def test_rfq_post_succeeds_when_email_transport_raises(
    client, headers, session_factory, buyer_user, supplier_user, email_client
):
    email_client.send_email.side_effect = ConnectionError("SendGrid unreachable")

    data = await _post_rfq(client, headers, buyer_user)

    assert data["status"] == "active"
    assert data["title"] == "Steel Pipes"
    assert email_client.send_email.await_count == 2

    [alert] = await _notifications(session_factory, supplier_user.id)
    assert alert.type == NotificationType.RFQ_CREATED.value
    [confirmation] = await _notifications(session_factory, buyer_user.id)
    assert confirmation.type == NotificationType.SUCCESS.value


@pytest.mark.asyncio
async def test_steel_pipes_scenario(client, headers, session_factory, make_user, buyer_user):
    s1 = await make_user(
        UserRole.SUPPLIER, company="S1", location="Mumbai", trust_score=80, is_verified=True,
        preferences={"categories": ["Industrial Machinery"]},
    )
    s2 = await make_user(UserRole.SUPPLIER, company="S2", location="Kolkata", trust_score=10)

    data = await _post_rfq(client, headers, buyer_user)

    response = await client.get(f"/api/v1/rfqs/{data['id']}/matches", headers=headers(buyer_user))
    assert response.status_code == 200
    matches = response.json()
    assert [m["supplier_id"] for m in matches] == [str(s1.id), str(s2.id)]
    assert matches[0]["score"] > matches[1]["score"]

    buyer_notices = await _notifications(session_factory, buyer_user.id)
    success = [n for n in buyer_notices if n.type == NotificationType.SUCCESS.value]
    assert len(success) == 1
    assert "2 suppliers have been notified" in success[0].body

    for supplier in (s1, s2):
        assert len(await _notifications(session_factory, supplier.id)) == 1


@pytest.mark.asyncio
async def test_eleventh_rfq_of_the_day_is_rate_limited(client, headers, session_factory, buyer_user):
    async with session_factory() as db:
        for i in range(10):
            db.add(RFQ(buyer_id=buyer_user.id, title=f"RFQ {i}", category="Steel"))
        await db.commit()

    response = await client.post("/api/v1/rfqs", json=RFQ_BODY, headers=headers(buyer_user))

    assert response.status_code == 429
    detail = response.json()["detail"]
    assert detail["count"] == 10
    assert detail["limit"] == 10


@pytest.mark.asyncio
async def test_rfq_post_survives_failed_limit_count(client, headers, session_factory, buyer_user):
    # Emulates PostgreSQL: after a failed statement the session's transaction
    # refuses every later write.
    async def _count_then_abort(db, actor_id, kind, now=None):
        def _aborted(session, flush_context, instances):
            raise InternalError("INSERT", {}, Exception("current transaction is aborted"))

        event.listen(db.sync_session, "before_flush", _aborted)
        raise OperationalError("SELECT count(*)", {}, Exception("canceling statement due to statement timeout"))

    with patch("rfqhub.core.ratelimit.service.count_actions_today", _count_then_abort):
        response = await client.post("/api/v1/rfqs", json=RFQ_BODY, headers=headers(buyer_user))

    assert response.status_code == 201, response.text
    async with session_factory() as db:
        assert await db.get(RFQ, uuid.UUID(response.json()["id"])) is not None


@pytest.mark.asyncio
async def test_invalid_rfq_body(client, headers, buyer_user):
    response = await client.post("/api/v1/rfqs", json={"title": ""}, headers=headers(buyer_user))
    assert response.status_code == 422


# ---------- Quotes ----------


@pytest.mark.asyncio
async def test_quote_accept_flow(client, headers, session_factory, make_user, buyer_user):
    winner = await make_user(UserRole.SUPPLIER, trust_score=20)
    loser = await make_user(UserRole.SUPPLIER)
    rfq = await _post_rfq(client, headers, buyer_user)
    q1 = await _post_quote(client, headers, winner, rfq["id"], price="1000")
    q2 = await _post_quote(client, headers, loser, rfq["id"], price="1100")

    response = await client.post(f"/api/v1/quotes/{q1['id']}/accept", headers=headers(buyer_user))

    assert response.status_code == 200
    body = response.json()
    assert body["quote"]["status"] == "accepted"
    assert body["rfq"]["status"] == "accepted"
    assert body["rejected_quote_ids"] == [q2["id"]]

    again = await client.post(f"/api/v1/quotes/{q2['id']}/accept", headers=headers(buyer_user))
    assert again.status_code == 409

    async with session_factory() as db:
        assert (await db.get(User, winner.id)).trust_score == 25

    loser_types = {n.type for n in await _notifications(session_factory, loser.id)}
    assert NotificationType.INFO.value in loser_types


@pytest.mark.asyncio
async def test_missing_price_is_a_validation_error(client, headers, buyer_user, supplier_user):
    rfq = await _post_rfq(client, headers, buyer_user)
    response = await client.post(
        f"/api/v1/rfqs/{rfq['id']}/quotes", json={"timeline": "5 days"}, headers=headers(supplier_user),
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_duplicate_quote_conflicts(client, headers, buyer_user, supplier_user):
    rfq = await _post_rfq(client, headers, buyer_user)
    await _post_quote(client, headers, supplier_user, rfq["id"])

    response = await client.post(
        f"/api/v1/rfqs/{rfq['id']}/quotes",
        json={"price": "900", "timeline": "5 days"},
        headers=headers(supplier_user),
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_suppliers_only_see_their_own_quotes(client, headers, make_user, buyer_user, supplier_user):
    other = await make_user(UserRole.SUPPLIER)
    rfq = await _post_rfq(client, headers, buyer_user)
    mine = await _post_quote(client, headers, supplier_user, rfq["id"])
    await _post_quote(client, headers, other, rfq["id"], price="1500")

    as_supplier = await client.get(f"/api/v1/rfqs/{rfq['id']}/quotes", headers=headers(supplier_user))
    as_buyer = await client.get(f"/api/v1/rfqs/{rfq['id']}/quotes", headers=headers(buyer_user))

    assert [q["id"] for q in as_supplier.json()] == [mine["id"]]
    assert len(as_buyer.json()) == 2


@pytest.mark.asyncio
async def test_counter_offer_then_reject(client, headers, session_factory, buyer_user, supplier_user):
    rfq = await _post_rfq(client, headers, buyer_user)
    quote = await _post_quote(client, headers, supplier_user, rfq["id"], price="1000")

    countered = await client.post(
        f"/api/v1/quotes/{quote['id']}/counter",
        json={"price": "900", "message": "Best price"},
        headers=headers(supplier_user),
    )
    assert countered.status_code == 200
    assert countered.json()["price"] == "900.00"
    assert len(countered.json()["negotiation_history"]) == 1

    rejected = await client.post(f"/api/v1/quotes/{quote['id']}/reject", headers=headers(buyer_user))
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "rejected"

    supplier_types = [n.type for n in await _notifications(session_factory, supplier_user.id)]
    assert NotificationType.INFO.value in supplier_types


# ---------- Closing ----------


@pytest.mark.asyncio
async def test_complete_and_close_external(
    client, headers, session_factory, make_user, buyer_user, admin_user
):
    supplier = await make_user(UserRole.SUPPLIER, trust_score=0)
    first = await _post_rfq(client, headers, buyer_user, title="Flanges")
    quote = await _post_quote(client, headers, supplier, first["id"])
    await client.post(f"/api/v1/quotes/{quote['id']}/accept", headers=headers(buyer_user))

    done = await client.post(f"/api/v1/rfqs/{first['id']}/complete", headers=headers(buyer_user))
    assert done.status_code == 200
    assert done.json()["status"] == "completed"

    closed = await client.post(f"/api/v1/admin/rfqs/{first['id']}/close-external", headers=headers(admin_user))
    assert closed.status_code == 409

    async with session_factory() as db:
        assert (await db.get(User, supplier.id)).trust_score == 15


@pytest.mark.asyncio
async def test_cancel_rfq(client, headers, buyer_user):
    rfq = await _post_rfq(client, headers, buyer_user)

    response = await client.post(f"/api/v1/rfqs/{rfq['id']}/cancel", headers=headers(buyer_user))
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    again = await client.post(f"/api/v1/rfqs/{rfq['id']}/cancel", headers=headers(buyer_user))
    assert again.status_code == 409

