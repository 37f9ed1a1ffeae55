"""Partial and full refunds through the gateway."""

import asyncio
from decimal import Decimal

import pytest

from fulfillment.application.interfaces import GatewayEvent, GatewayEventType
from fulfillment.application.services import ReconcileOutcome
from fulfillment.domain.enums import OrderStatus, PaymentMethod, PaymentStatus, TransactionStatus
from fulfillment.domain.errors import (
    InvalidTransition,
    RefundExceedsLimit,
    RefundProcessingFailed,
    ValidationError,
)

HONEY = {"product_id": "honey-1", "variant": "1kg", "packaging": "jar", "quantity": 1}


@pytest.fixture
def shipped_order(container, place_order):
    """A paid, shipped order with a total of 50.00."""

    async def _ship():
        order = await place_order([HONEY])
        await container.payments.charge(order.order_number, {"token": "tok_visa"})
        await container.orders.transition_status(order.order_number, OrderStatus.SHIPPED)
        return order.order_number

    return _ship


@pytest.mark.asyncio
async def test_partial_then_final_refund(container, shipped_order, fake_gateway):
    order_number = await shipped_order()

    first = await container.orders.refund_order(order_number, Decimal("20"), "Damaged lid")
    assert first.total_refunded == Decimal("20.00")
    assert first.refundable == Decimal("30.00")
    assert first.order_status == OrderStatus.SHIPPED
    assert first.fully_refunded is False

    second = await container.orders.refund_order(order_number, Decimal("30.00"))
    assert second.total_refunded == Decimal("50.00")
    assert second.refundable == Decimal("0.00")
    assert second.order_status == OrderStatus.REFUNDED
    assert second.payment_status == PaymentStatus.REFUNDED
    assert second.fully_refunded is True

    assert [r["amount"] for r in fake_gateway.refunds] == [Decimal("20.00"), Decimal("30.00")]
    [transaction] = await container.transaction_log.history(order_number)
    assert transaction.status == TransactionStatus.REFUNDED
    assert transaction.refunded_amount == Decimal("50.00")
    assert await container.transaction_log.refunded_total(order_number) == Decimal("50.00")
    assert await container.transaction_log.refundable_remainder(order_number) == Decimal("0.00")


@pytest.mark.asyncio
async def test_partial_refund_webhook_keeps_the_payment_refundable(container, shipped_order, fake_gateway):
    order_number = await shipped_order()
    gateway_id = fake_gateway.charges[-1]["gateway_transaction_id"]
    await container.orders.refund_order(order_number, Decimal("20.00"))

    partial = GatewayEvent(
        gateway="fake",
        event_type=GatewayEventType.REFUNDED,
        gateway_transaction_id=gateway_id,
        event_id="evt_refund_1",
        amount=Decimal("20.00"),
    )
    assert await container.reconciler.reconcile(partial) == ReconcileOutcome.DUPLICATE
    [transaction] = await container.transaction_log.history(order_number)
    assert transaction.status == TransactionStatus.COMPLETED

    final = await container.orders.refund_order(order_number, Decimal("30.00"))
    assert final.order_status == OrderStatus.REFUNDED
    [transaction] = await container.transaction_log.history(order_number)
    assert transaction.status == TransactionStatus.REFUNDED

    # The cumulative webhook for the full amount is already reflected.
    full = GatewayEvent(
        gateway="fake",
        event_type=GatewayEventType.REFUNDED,
        gateway_transaction_id=gateway_id,
        event_id="evt_refund_2",
        amount=Decimal("50.00"),
    )
    assert await container.reconciler.reconcile(full) == ReconcileOutcome.DUPLICATE


@pytest.mark.asyncio
async def test_full_refund_webhook_closes_the_transaction(container, shipped_order, fake_gateway):
    order_number = await shipped_order()
    gateway_id = fake_gateway.charges[-1]["gateway_transaction_id"]

    event = GatewayEvent(
        gateway="fake",
        event_type=GatewayEventType.REFUNDED,
        gateway_transaction_id=gateway_id,
        event_id="evt_refund_1",
        amount=Decimal("50.00"),
    )
    assert await container.reconciler.reconcile(event) == ReconcileOutcome.APPLIED
    [transaction] = await container.transaction_log.history(order_number)
    assert transaction.status == TransactionStatus.REFUNDED


@pytest.mark.asyncio
async def test_refund_above_remainder_is_rejected(container, shipped_order, fake_gateway):
    order_number = await shipped_order()
    await container.orders.refund_order(order_number, Decimal("45.00"))

    with pytest.raises(RefundExceedsLimit):
        await container.orders.refund_order(order_number, Decimal("5.01"))

    assert len(fake_gateway.refunds) == 1
    assert (await container.orders.get_order(order_number)).total_refunded == Decimal("45.00")


@pytest.mark.asyncio
async def test_refund_requires_shipped_or_delivered(container, place_order):
    order = await place_order([HONEY])
    await container.payments.charge(order.order_number, {})

    with pytest.raises(InvalidTransition, match="shipped or delivered"):
        await container.orders.refund_order(order.order_number, Decimal("10"))


@pytest.mark.asyncio
async def test_refund_amount_must_be_positive(container, shipped_order):
    order_number = await shipped_order()
    with pytest.raises(ValidationError):
        await container.orders.refund_order(order_number, Decimal("0"))


@pytest.mark.asyncio
async def test_refund_without_captured_payment(container, place_order):
    order = await place_order([HONEY], payment_method=PaymentMethod.COD)
    await container.orders.transition_status(order.order_number, OrderStatus.SHIPPED)

    with pytest.raises(InvalidTransition, match="no captured payment"):
        await container.orders.refund_order(order.order_number, Decimal("10"))


@pytest.mark.asyncio
async def test_gateway_refusal_changes_nothing_and_is_retried(container, shipped_order, fake_gateway):
    order_number = await shipped_order()
    fake_gateway.refund_succeeds = False

    with pytest.raises(RefundProcessingFailed):
        await container.orders.refund_order(order_number, Decimal("20"))
    fake_gateway.refund_succeeds = True

    before_retry = await container.orders.get_order(order_number)
    assert before_retry.status == OrderStatus.SHIPPED

    await container.job_queue.drain()

    after = await container.orders.get_order(order_number)
    assert after.total_refunded == Decimal("20.00")
    keys = [r["idempotency_key"] for r in fake_gateway.refunds]
    assert len(keys) == 2
    assert keys[0] == keys[1]


@pytest.mark.asyncio
async def test_gateway_outage_releases_the_reservation(container, shipped_order, fake_gateway):
    order_number = await shipped_order()
    fake_gateway.transient_failures = 10

    with pytest.raises(RefundProcessingFailed):
        await container.refunds.refund(order_number, Decimal("20"))

    assert (await container.orders.get_order(order_number)).total_refunded == Decimal("0.00")


@pytest.mark.asyncio
async def test_concurrent_refunds_never_exceed_the_total(container, shipped_order):
    order_number = await shipped_order()

    results = await asyncio.gather(
        container.orders.refund_order(order_number, Decimal("30")),
        container.orders.refund_order(order_number, Decimal("30")),
        return_exceptions=True,
    )

    succeeded = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, RefundExceedsLimit)]
    assert len(succeeded) == 1
    assert len(rejected) == 1
    assert (await container.orders.get_order(order_number)).total_refunded == Decimal("30.00")


@pytest.mark.asyncio
async def test_partially_refunded_order_cannot_be_cancelled(container, shipped_order):
    order_number = await shipped_order()
    await container.orders.refund_order(order_number, Decimal("10"))

    with pytest.raises(InvalidTransition, match="partial refunds"):
        await container.orders.cancel_order(order_number)
