import uuid

import pytest

from rfqhub.common.enums import NotificationType
from rfqhub.core.notifications.service import create_notification, open_message_thread
from rfqhub.core.notifications.templates import app_link, render_email
from rfqhub.db.models.notification import Notification


@pytest.mark.asyncio
async def test_list_notifications_empty(client, headers, buyer_user):
    response = await client.get("/api/v1/notifications", headers=headers(buyer_user))
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 0
    assert data["unread_count"] == 0


@pytest.mark.asyncio
async def test_list_and_filter_notifications(client, headers, buyer_user, session_factory):
    async with session_factory() as db:
        for i, kind in enumerate([NotificationType.QUOTE_RECEIVED, NotificationType.QUOTE_RECEIVED, NotificationType.INFO]):
            db.add(Notification(
                id=uuid.uuid4(),
                user_id=buyer_user.id,
                type=kind.value,
                title=f"Notice #{i}",
                body="Something happened",
                is_read=i == 2,
            ))
        await db.commit()

    everything = await client.get("/api/v1/notifications", headers=headers(buyer_user))
    quotes = await client.get("/api/v1/notifications?type=quote_received", headers=headers(buyer_user))
    unread = await client.get("/api/v1/notifications?unread_only=true&page_size=1", headers=headers(buyer_user))

    assert everything.json()["total"] == 3
    assert everything.json()["unread_count"] == 2
    assert quotes.json()["total"] == 2
    assert unread.json()["total"] == 2
    assert unread.json()["total_pages"] == 2
    assert len(unread.json()["items"]) == 1


@pytest.mark.asyncio
async def test_mark_notification_read(client, headers, buyer_user, session_factory):
    async with session_factory() as db:
        notif = await create_notification(
            db, buyer_user.id, NotificationType.QUOTE_RECEIVED.value,
            "New Quote Received", "Bharat Steel quoted ₹1,000", {"rfq_id": str(uuid.uuid4())},
        )
        await db.commit()

    response = await client.post(f"/api/v1/notifications/{notif.id}/read", headers=headers(buyer_user))

    assert response.status_code == 200
    assert response.json()["is_read"] is True
    assert "rfq_id" in response.json()["data"]


@pytest.mark.asyncio
async def test_cannot_read_someone_elses_notification(client, headers, buyer_user, supplier_user, session_factory):
    async with session_factory() as db:
        notif = await create_notification(db, buyer_user.id, NotificationType.INFO.value, "Hi", "Private")
        await db.commit()

    response = await client.post(f"/api/v1/notifications/{notif.id}/read", headers=headers(supplier_user))

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_open_message_thread(db_session, buyer_user, supplier_user):
    rfq_id = uuid.uuid4()
    message = await open_message_thread(db_session, buyer_user.id, supplier_user.id, "Hello", rfq_id=rfq_id)

    assert message.id is not None
    assert message.rfq_id == rfq_id
    assert message.is_read is False


def test_render_email_escapes_user_text():
    html = render_email("New RFQ", '<script>alert("x")</script> Steel', app_link("rfq/1"), "Open")

    assert "<script>" not in html
    assert "&lt;script&gt;" in html
    assert "/rfq/1" in html
    assert "Open" in html


@pytest.mark.asyncio
async def test_sort_by_column(client, headers, buyer_user, session_factory):
    async with session_factory() as db:
        for title in ("Bravo", "Alpha"):
            await create_notification(db, buyer_user.id, NotificationType.INFO.value, title, "Body")
        await db.commit()

    response = await client.get(
        "/api/v1/notifications?sort_by=title&sort_order=asc", headers=headers(buyer_user)
    )

    assert response.status_code == 200
    assert [n["title"] for n in response.json()["items"]] == ["Alpha", "Bravo"]


@pytest.mark.asyncio
@pytest.mark.parametrize("attribute", ["registry", "metadata", "user_id_missing"])
async def test_sort_by_non_column_is_rejected(client, headers, buyer_user, attribute):
    response = await client.get(f"/api/v1/notifications?sort_by={attribute}", headers=headers(buyer_user))
    assert response.status_code == 422
