"""Integration tests for gateway webhooks."""

import pytest

from fulfillment.application.interfaces import ChargeStatus

OIL_LINE = {"product_id": "oil-1", "variant": "500ml", "packaging": "bottle", "quantity": 1}


@pytest.mark.asyncio
async def test_signed_webhook_is_queued_and_applied(client, container, place_order, fake_gateway, webhook_queue):
    fake_gateway.charge_status = ChargeStatus.PENDING
    order = await place_order([OIL_LINE])
    await container.payments.charge(order.order_number, {})
    gateway_id = fake_gateway.charges[-1]["gateway_transaction_id"]

    body = fake_gateway.build_event("payment.succeeded", gateway_id)
    response = await client.post(
        "/api/v1/webhooks/fake",
        content=body,
        headers={"X-Fake-Signature": fake_gateway.sign(body), "Content-Type": "application/json"},
    )

    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert webhook_queue.pending_count == 1

    await container.webhook_worker.drain()
    current = await client.get(f"/api/v1/orders/{order.order_number}")
    assert current.json()["status"] == "processing"
    assert current.json()["payment_status"] == "paid"


@pytest.mark.asyncio
async def test_bad_signature_is_rejected(client, fake_gateway, webhook_queue):
    body = fake_gateway.build_event("payment.succeeded", "fake_1")

    response = await client.post("/api/v1/webhooks/fake", content=body, headers={"X-Fake-Signature": "bad"})

    assert response.status_code == 400
    assert response.json()["error"] == "WebhookSignatureInvalid"
    assert webhook_queue.pending_count == 0


@pytest.mark.asyncio
async def test_ignored_event_types_are_acknowledged(client, fake_gateway, webhook_queue):
    body = b'{"id": "evt_9", "type": "payment.disputed", "transaction_id": "fake_1"}'

    response = await client.post("/api/v1/webhooks/fake", content=body, headers={"X-Fake-Signature": fake_gateway.sign(body)})

    assert response.status_code == 200
    assert webhook_queue.pending_count == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("gateway", ["paypal", "cod"])
async def test_gateways_without_webhooks_are_404(client, gateway):
    response = await client.post(f"/api/v1/webhooks/{gateway}", content=b"{}")
    assert response.status_code == 404
