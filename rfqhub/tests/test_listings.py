import uuid

import pytest

from rfqhub.common.enums import UserRole

RFQ_BODY = {
    "title": "Steel Pipes",
    "category": "Industrial Machinery",
    "location": "Mumbai",
    "quantity": "500",
    "unit": "meters",
    "timeline": "2 weeks",
}


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


# ---------- RFQ feed ----------


@pytest.mark.asyncio
async def test_feed_shows_open_rfqs_with_quote_counts(client, headers, buyer_user, supplier_user):
    pipes = await _post_rfq(client, headers, buyer_user)
    valves = await _post_rfq(client, headers, buyer_user, title="Valves", category="Plumbing")
    dropped = await _post_rfq(client, headers, buyer_user, title="Old order")
    await client.post(f"/api/v1/rfqs/{dropped['id']}/cancel", headers=headers(buyer_user))
    await _post_quote(client, headers, supplier_user, pipes["id"])

    response = await client.get("/api/v1/rfqs", headers=headers(supplier_user))

    assert response.status_code == 200
    page = response.json()
    assert page["total"] == 2
    counts = {item["id"]: item["quote_count"] for item in page["items"]}
    assert counts == {pipes["id"]: 1, valves["id"]: 0}
    statuses = {item["id"]: item["status"] for item in page["items"]}
    assert statuses[pipes["id"]] == "quoted"


@pytest.mark.asyncio
async def test_feed_filters(client, headers, buyer_user, supplier_user):
    await _post_rfq(client, headers, buyer_user)
    await _post_rfq(client, headers, buyer_user, title="Valves", category="Plumbing", location="Pune")
    dropped = await _post_rfq(client, headers, buyer_user, title="Old order")
    await client.post(f"/api/v1/rfqs/{dropped['id']}/cancel", headers=headers(buyer_user))

    by_category = await client.get("/api/v1/rfqs?category=plumb", headers=headers(supplier_user))
    by_location = await client.get("/api/v1/rfqs?location=mumbai", headers=headers(supplier_user))
    cancelled = await client.get("/api/v1/rfqs?status=cancelled", headers=headers(supplier_user))

    assert [i["title"] for i in by_category.json()["items"]] == ["Valves"]
    assert [i["title"] for i in by_location.json()["items"]] == ["Steel Pipes"]
    assert [i["id"] for i in cancelled.json()["items"]] == [dropped["id"]]


@pytest.mark.asyncio
async def test_feed_pagination_and_sorting(client, headers, buyer_user, supplier_user):
    for title in ("Bolts", "Anchors", "Cables"):
        await _post_rfq(client, headers, buyer_user, title=title)

    first = await client.get("/api/v1/rfqs?page_size=2&sort_by=title&sort_order=asc", headers=headers(supplier_user))
    second = await client.get(
        "/api/v1/rfqs?page=2&page_size=2&sort_by=title&sort_order=asc", headers=headers(supplier_user)
    )

    assert first.json()["total_pages"] == 2
    assert [i["title"] for i in first.json()["items"]] == ["Anchors", "Bolts"]
    assert [i["title"] for i in second.json()["items"]] == ["Cables"]


@pytest.mark.asyncio
async def test_feed_rejects_unknown_sort_column(client, headers, supplier_user):
    response = await client.get("/api/v1/rfqs?sort_by=metadata", headers=headers(supplier_user))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_feed_rejects_unknown_status(client, headers, supplier_user):
    response = await client.get("/api/v1/rfqs?status=archived", headers=headers(supplier_user))
    assert response.status_code == 422


# ---------- Supplier quotes ----------


@pytest.mark.asyncio
async def test_supplier_sees_own_quotes_with_rfq(client, headers, make_user, buyer_user, supplier_user):
    other = await make_user(UserRole.SUPPLIER)
    pipes = await _post_rfq(client, headers, buyer_user)
    valves = await _post_rfq(client, headers, buyer_user, title="Valves")
    mine = {
        (await _post_quote(client, headers, supplier_user, pipes["id"]))["id"],
        (await _post_quote(client, headers, supplier_user, valves["id"], price="450"))["id"],
    }
    await _post_quote(client, headers, other, pipes["id"])

    response = await client.get("/api/v1/quotes/mine", headers=headers(supplier_user))

    assert response.status_code == 200
    page = response.json()
    assert page["total"] == 2
    assert {q["id"] for q in page["items"]} == mine
    assert {q["rfq"]["title"] for q in page["items"]} == {"Steel Pipes", "Valves"}


@pytest.mark.asyncio
async def test_supplier_quotes_status_filter(client, headers, buyer_user, supplier_user):
    pipes = await _post_rfq(client, headers, buyer_user)
    valves = await _post_rfq(client, headers, buyer_user, title="Valves")
    won = await _post_quote(client, headers, supplier_user, pipes["id"])
    await _post_quote(client, headers, supplier_user, valves["id"])
    await client.post(f"/api/v1/quotes/{won['id']}/accept", headers=headers(buyer_user))

    accepted = await client.get("/api/v1/quotes/mine?status=accepted", headers=headers(supplier_user))
    pending = await client.get("/api/v1/quotes/mine?status=pending", headers=headers(supplier_user))

    assert [q["id"] for q in accepted.json()["items"]] == [won["id"]]
    assert pending.json()["total"] == 1


@pytest.mark.asyncio
async def test_buyers_have_no_quote_listing(client, headers, buyer_user):
    response = await client.get("/api/v1/quotes/mine", headers=headers(buyer_user))
    assert response.status_code == 403


# ---------- Messages ----------


@pytest.mark.asyncio
async def test_accepted_quote_thread_is_readable_and_replyable(client, headers, buyer_user, supplier_user):
    rfq = await _post_rfq(client, headers, buyer_user)
    quote = await _post_quote(client, headers, supplier_user, rfq["id"])
    await client.post(f"/api/v1/quotes/{quote['id']}/accept", headers=headers(buyer_user))

    inbox = await client.get("/api/v1/messages", headers=headers(supplier_user))

    assert inbox.status_code == 200
    [thread] = inbox.json()["threads"]
    assert thread["partner_id"] == str(buyer_user.id)
    assert thread["partner_company"] == "Acme Buyers"
    assert thread["unread"] == 1
    assert thread["last_message"]["rfq_id"] == rfq["id"]

    again = await client.get("/api/v1/messages", headers=headers(supplier_user))
    assert again.json()["threads"][0]["unread"] == 0

    reply = await client.post(
        "/api/v1/messages",
        json={"recipient_id": str(buyer_user.id), "content": "  Dispatching Monday  ", "rfq_id": rfq["id"]},
        headers=headers(supplier_user),
    )
    assert reply.status_code == 201
    assert reply.json()["content"] == "Dispatching Monday"

    conversation = await client.get(
        f"/api/v1/messages?with_user={supplier_user.id}", headers=headers(buyer_user)
    )
    messages = conversation.json()["messages"]
    assert len(messages) == 2
    assert messages[-1]["sender_id"] == str(supplier_user.id)
    assert conversation.json()["threads"][0]["unread"] == 1


@pytest.mark.asyncio
async def test_messages_filter_by_rfq(client, headers, buyer_user, supplier_user):
    rfq_id = (await _post_rfq(client, headers, buyer_user))["id"]
    for rfq in (rfq_id, None):
        await client.post(
            "/api/v1/messages",
            json={"recipient_id": str(supplier_user.id), "content": "Hello", "rfq_id": rfq},
            headers=headers(buyer_user),
        )

    response = await client.get(f"/api/v1/messages?rfq_id={rfq_id}", headers=headers(buyer_user))

    assert [m["rfq_id"] for m in response.json()["messages"]] == [rfq_id]


@pytest.mark.asyncio
async def test_cannot_message_yourself(client, headers, buyer_user):
    response = await client.post(
        "/api/v1/messages",
        json={"recipient_id": str(buyer_user.id), "content": "Note to self"},
        headers=headers(buyer_user),
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_message_to_unknown_recipient(client, headers, buyer_user):
    response = await client.post(
        "/api/v1/messages",
        json={"recipient_id": str(uuid.uuid4()), "content": "Anyone there?"},
        headers=headers(buyer_user),
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_blank_message_is_rejected(client, headers, buyer_user, supplier_user):
    response = await client.post(
        "/api/v1/messages",
        json={"recipient_id": str(supplier_user.id), "content": "   "},
        headers=headers(buyer_user),
    )
    assert response.status_code == 422
