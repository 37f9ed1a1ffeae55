"""Integration tests for the orders API."""

import pytest

ADDRESS = {
    "full_name": "Dana Reyes",
    "line1": "12 Harbour Road",
    "city": "Portsmouth",
    "postal_code": "PO1 3AX",
    "country": "GB",
}
OIL_LINE = {"product_id": "oil-1", "variant": "500ml", "packaging": "bottle", "quantity": 2}


def _order_body(**overrides):
    body = {
        "customer_id": "cust-1",
        "items": [OIL_LINE],
        "shipping_address": ADDRESS,
        "payment_method": "card",
    }
    body.update(overrides)
    return body


async def _create(client, stock, **overrides):
    await stock("oil-1", "500ml", 10)
    response = await client.post("/api/v1/orders", json=_order_body(**overrides))
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_create_and_fetch_order(client, stock):
    created = await _create(client, stock)

    assert created["status"] == "pending"
    assert created["total"] == "40.00"
    assert created["items"][0]["product_title"] == "Olive Oil"

    fetched = await client.get(f"/api/v1/orders/{created['order_number']}")
    assert fetched.status_code == 200
    assert fetched.json()["order_number"] == created["order_number"]

    listing = await client.get("/api/v1/orders", params={"status": "pending", "limit": 5})
    assert listing.json()["total"] == 1


@pytest.mark.asyncio
async def test_request_validation_is_a_400(client):
    response = await client.post("/api/v1/orders", json=_order_body(items=[]))

    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"


@pytest.mark.asyncio
async def test_domain_errors_map_to_status_codes(client, stock):
    missing = await client.get("/api/v1/orders/ORD-1700000000000-000001")
    assert missing.status_code == 404
    assert missing.json()["error"] == "OrderNotFound"

    short = await client.post(
        "/api/v1/orders", json=_order_body(items=[dict(OIL_LINE, quantity=50)])
    )
    assert short.status_code == 400
    assert short.json() == {
        "detail": "Insufficient stock for product Olive Oil, variant 500ml.",
        "error": "InsufficientStock",
    }


@pytest.mark.asyncio
async def test_pay_ship_and_refund(client, stock):
    created = await _create(client, stock)
    number = created["order_number"]

    paid = await client.post(f"/api/v1/orders/{number}/payments", json={"payment_details": {"token": "tok"}})
    assert paid.status_code == 200, paid.text
    assert paid.json()["order_status"] == "processing"
    assert paid.json()["transaction"]["gateway_transaction_id"].endswith("****")

    shipped = await client.put(
        f"/api/v1/orders/{number}/status", json={"status": "shipped", "tracking_number": "TRK-1"}
    )
    assert shipped.json()["tracking_number"] == "TRK-1"

    refund = await client.post(f"/api/v1/orders/{number}/refund", json={"amount": "40.00"})
    assert refund.status_code == 200, refund.text
    assert refund.json()["order_status"] == "refunded"

    again = await client.post(f"/api/v1/orders/{number}/refund", json={"amount": "1.00"})
    assert again.status_code == 400
    assert again.json()["error"] == "InvalidTransition"

    transactions = await client.get(f"/api/v1/orders/{number}/transactions")
    [transaction] = transactions.json()
    assert transaction["status"] == "refunded"


@pytest.mark.asyncio
async def test_refund_gateway_failure_is_a_502(client, stock, fake_gateway):
    created = await _create(client, stock)
    number = created["order_number"]
    await client.post(f"/api/v1/orders/{number}/payments")
    await client.put(f"/api/v1/orders/{number}/status", json={"status": "delivered"})
    fake_gateway.refund_succeeds = False

    response = await client.post(f"/api/v1/orders/{number}/refund", json={"amount": "10.00"})

    assert response.status_code == 502
    assert response.json()["error"] == "RefundProcessingFailed"


@pytest.mark.asyncio
async def test_accept_and_cancel(client, stock):
    created = await _create(client, stock)
    number = created["order_number"]

    accepted = await client.post(f"/api/v1/orders/{number}/accept")
    assert accepted.json()["status"] == "processing"
    assert (await client.get("/api/v1/stock/oil-1/500ml")).json()["quantity"] == 8

    cancelled = await client.post(f"/api/v1/orders/{number}/cancel", json={"reason": "Duplicate order"})
    assert cancelled.json()["status"] == "cancelled"
    assert cancelled.json()["cancellation_reason"] == "Duplicate order"
    assert (await client.get("/api/v1/stock/oil-1/500ml")).json()["quantity"] == 10

    conflict = await client.post(f"/api/v1/orders/{number}/cancel")
    assert conflict.status_code == 400
    assert conflict.json()["error"] == "InvalidTransition"


@pytest.mark.asyncio
async def test_return_request_and_approval(client, stock):
    created = await _create(client, stock)
    number = created["order_number"]
    await client.post(f"/api/v1/orders/{number}/payments", json={"payment_details": {"token": "tok"}})

    early = await client.post(f"/api/v1/orders/{number}/returns", json={"items": [{"product_id": "oil-1", "quantity": 1}]})
    assert early.status_code == 400
    assert early.json()["error"] == "InvalidTransition"

    for target in ("shipped", "delivered"):
        await client.put(f"/api/v1/orders/{number}/status", json={"status": target})

    requested = await client.post(
        f"/api/v1/orders/{number}/returns",
        json={"items": [{"product_id": "oil-1", "variant": "500ml", "quantity": 1}], "reason": "Leaking cap"},
    )
    assert requested.status_code == 201, requested.text
    body = requested.json()
    assert body["status"] == "requested"
    assert body["refund_amount"] == "20.00"

    approved = await client.post(f"/api/v1/orders/{number}/returns/{body['id']}/approve", json={"note": "ok"})
    assert approved.status_code == 200, approved.text
    assert approved.json()["refunded_amount"] == "20.00"

    twice = await client.post(f"/api/v1/orders/{number}/returns/{body['id']}/reject")
    assert twice.status_code == 400

    listing = await client.get(f"/api/v1/orders/{number}/returns")
    assert [r["status"] for r in listing.json()] == ["approved"]
    assert (await client.get(f"/api/v1/orders/{number}")).json()["total_refunded"] == "20.00"

    missing = await client.get(f"/api/v1/orders/{number}/returns/999")
    assert missing.status_code == 404
    assert missing.json()["error"] == "ReturnNotFound"
