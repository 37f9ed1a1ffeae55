"""Tests for payment gateway adapters and the gateway registry."""

import hashlib
import hmac
import json
import time
from decimal import Decimal

import pytest

from fulfillment.application.interfaces import GatewayEventType
from fulfillment.domain.enums import PaymentMethod
from fulfillment.domain.errors import PaymentGatewayError, ValidationError
from fulfillment.infrastructure.adapters.gateways import (
    CashOnDeliveryGateway,
    FakeGateway,
    PaymentGatewayRegistry,
    StripeGateway,
)
from fulfillment.settings.modules.payment_settings import PaymentSettings
from orchestration import RetryPolicy


def _stripe() -> StripeGateway:
    return StripeGateway(
        PaymentSettings(
            STRIPE_SECRET_KEY="sk_test_123",
            STRIPE_WEBHOOK_SECRET="whsec_test",
            STRIPE_SIGNATURE_TOLERANCE=300,
        )
    )


def _stripe_header(payload: bytes, secret: str = "whsec_test", timestamp: int = None) -> dict:
    timestamp = timestamp or int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"), f"{timestamp}.".encode("utf-8") + payload, hashlib.sha256
    ).hexdigest()
    return {"Stripe-Signature": f"t={timestamp},v1={signature}"}


@pytest.mark.asyncio
async def test_fake_gateway_signature_verification():
    gateway = FakeGateway(webhook_secret="s3cret")
    body = gateway.build_event("payment.succeeded", "fake_1")

    assert await gateway.verify_signature(body, {"x-fake-signature": gateway.sign(body)})
    assert not await gateway.verify_signature(body, {"X-Fake-Signature": "0" * 64})
    assert not await gateway.verify_signature(body, {})


def test_fake_gateway_parses_known_events_only():
    gateway = FakeGateway()

    event = gateway.parse_event(gateway.build_event("payment.failed", "fake_9", event_id="evt_1"))
    assert event.event_type == GatewayEventType.FAILED
    assert event.gateway_transaction_id == "fake_9"
    assert event.event_id == "evt_1"

    assert gateway.parse_event(json.dumps({"type": "payment.disputed", "transaction_id": "x"}).encode()) is None
    with pytest.raises(ValidationError):
        gateway.parse_event(b"not json")


@pytest.mark.asyncio
async def test_fake_gateway_retries_transient_failures():
    gateway = FakeGateway(retry_policy=RetryPolicy(max_attempts=3, backoff_seconds=0))
    gateway.transient_failures = 2

    result = await gateway.refund("fake_1", Decimal("5.00"), "USD", "key-1")

    assert result.success is True
    assert gateway.attempts == 3


@pytest.mark.asyncio
async def test_fake_gateway_gives_up_after_bounded_attempts():
    gateway = FakeGateway(retry_policy=RetryPolicy(max_attempts=2, backoff_seconds=0))
    gateway.transient_failures = 5

    with pytest.raises(PaymentGatewayError):
        await gateway.refund("fake_1", Decimal("5.00"), "USD", "key-1")
    assert gateway.attempts == 2


@pytest.mark.asyncio
async def test_fake_gateway_refunds_are_idempotent_by_key():
    gateway = FakeGateway()

    first = await gateway.refund("fake_1", Decimal("5.00"), "USD", "key-1")
    second = await gateway.refund("fake_1", Decimal("5.00"), "USD", "key-1")

    assert first == second
    assert len(gateway.refunds) == 1


@pytest.mark.asyncio
async def test_stripe_signature_verification():
    gateway = _stripe()
    payload = json.dumps({"id": "evt_1", "type": "payment_intent.succeeded"}).encode()

    assert await gateway.verify_signature(payload, _stripe_header(payload))
    assert not await gateway.verify_signature(payload, _stripe_header(payload, secret="other"))
    assert not await gateway.verify_signature(payload, _stripe_header(payload, timestamp=int(time.time()) - 3600))
    assert not await gateway.verify_signature(payload, {"Stripe-Signature": "garbage"})


def test_stripe_event_mapping():
    gateway = _stripe()

    succeeded = gateway.parse_event(
        json.dumps(
            {
                "id": "evt_1",
                "type": "payment_intent.succeeded",
                "data": {"object": {"id": "pi_1", "amount_received": 4000}},
            }
        ).encode()
    )
    assert succeeded.event_type == GatewayEventType.SUCCEEDED
    assert succeeded.gateway_transaction_id == "pi_1"
    assert succeeded.amount == Decimal("40.00")

    refunded = gateway.parse_event(
        json.dumps(
            {
                "id": "evt_2",
                "type": "charge.refunded",
                "data": {"object": {"id": "ch_1", "payment_intent": "pi_1", "amount_refunded": 1500}},
            }
        ).encode()
    )
    assert refunded.event_type == GatewayEventType.REFUNDED
    assert refunded.gateway_transaction_id == "pi_1"

    ignored = gateway.parse_event(
        json.dumps({"id": "evt_3", "type": "customer.created", "data": {"object": {"id": "cus_1"}}}).encode()
    )
    assert ignored is None


def test_stripe_requires_api_key():
    with pytest.raises(ValueError):
        StripeGateway(PaymentSettings(STRIPE_SECRET_KEY=None))


def test_registry_routes_methods_and_webhooks():
    fake = FakeGateway()
    cod = CashOnDeliveryGateway()
    registry = PaymentGatewayRegistry(
        [fake, cod],
        routes={PaymentMethod.CARD: "fake", PaymentMethod.COD: "cod"},
    )

    assert registry.for_method(PaymentMethod.CARD) is fake
    assert registry.for_method(PaymentMethod.COD) is cod
    with pytest.raises(ValidationError, match="not supported"):
        registry.for_method(PaymentMethod.PAYPAL)

    assert registry.webhook_gateway("fake") is fake
    assert registry.webhook_gateway("cod") is None
    assert registry.webhook_gateway("unknown") is None
