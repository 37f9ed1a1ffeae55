"""Stock deduction on acceptance, compensation and cancellation."""

import pytest

from fulfillment.domain.enums import OrderStatus, PaymentStatus, TransactionStatus
from fulfillment.domain.errors import InsufficientStock, InvalidTransition, OrderNotFound

OIL = {"product_id": "oil-1", "variant": "500ml", "packaging": "bottle", "quantity": 2}
HONEY = {"product_id": "honey-1", "variant": "1kg", "packaging": "jar", "quantity": 1}


@pytest.mark.asyncio
async def test_short_second_line_rolls_back_the_first(container, place_order):
    order = await place_order([OIL, HONEY])
    # Someone else takes the honey between checkout and acceptance.
    await container.stock_ledger.deduct("honey-1", "1kg", 5)

    with pytest.raises(InsufficientStock, match="Wild Honey"):
        await container.orders.accept_order(order.order_number)

    assert await container.stock_ledger.quantity("oil-1", "500ml") == 10
    assert await container.stock_ledger.quantity("honey-1", "1kg") == 0
    reloaded = await container.orders.get_order(order.order_number)
    assert reloaded.status == OrderStatus.PENDING
    assert reloaded.stock_deducted is False


@pytest.mark.asyncio
async def test_accept_requires_pending(container, place_order):
    order = await place_order([OIL])
    await container.orders.accept_order(order.order_number)

    with pytest.raises(InvalidTransition, match="pending"):
        await container.orders.accept_order(order.order_number)
    assert await container.stock_ledger.quantity("oil-1", "500ml") == 8


@pytest.mark.asyncio
async def test_unknown_order(container):
    with pytest.raises(OrderNotFound):
        await container.orders.accept_order("ORD-1700000000000-000001")
    with pytest.raises(OrderNotFound):
        await container.orders.get_order("ORD-1700000000000-000001")


@pytest.mark.asyncio
async def test_fulfillment_transitions(container, place_order):
    order = await place_order([OIL])

    processing = await container.orders.transition_status(order.order_number, OrderStatus.PROCESSING)
    assert processing.stock_deducted is True

    shipped = await container.orders.transition_status(
        order.order_number, OrderStatus.SHIPPED, tracking_number="TRACK-1"
    )
    assert shipped.status == OrderStatus.SHIPPED
    assert shipped.tracking_number == "TRACK-1"
    assert shipped.shipping_date is not None

    delivered = await container.orders.transition_status(order.order_number, OrderStatus.DELIVERED)
    assert delivered.delivery_date is not None

    with pytest.raises(InvalidTransition):
        await container.orders.transition_status(order.order_number, OrderStatus.SHIPPED)
    with pytest.raises(InvalidTransition):
        await container.orders.transition_status(order.order_number, OrderStatus.REFUNDED)
    with pytest.raises(InvalidTransition):
        await container.orders.transition_status(order.order_number, OrderStatus.PENDING)


@pytest.mark.asyncio
async def test_shipping_a_pending_order_skips_deduction(container, place_order):
    order = await place_order([OIL])

    shipped = await container.orders.transition_status(order.order_number, OrderStatus.SHIPPED)

    assert shipped.stock_deducted is False
    assert await container.stock_ledger.quantity("oil-1", "500ml") == 10


@pytest.mark.asyncio
async def test_cancelling_an_accepted_order_restores_stock(container, place_order):
    order = await place_order([OIL, HONEY])
    await container.orders.accept_order(order.order_number)
    assert await container.stock_ledger.quantity("oil-1", "500ml") == 8

    cancelled = await container.orders.cancel_order(order.order_number, "Changed my mind")

    assert cancelled.status == OrderStatus.CANCELLED
    assert cancelled.payment_status == PaymentStatus.REFUNDED
    assert cancelled.cancellation_reason == "Changed my mind"
    assert cancelled.stock_deducted is False
    assert await container.stock_ledger.quantity("oil-1", "500ml") == 10
    assert await container.stock_ledger.quantity("honey-1", "1kg") == 5


@pytest.mark.asyncio
async def test_cancelling_twice_restores_only_once(container, place_order):
    order = await place_order([OIL])
    await container.orders.accept_order(order.order_number)
    await container.orders.cancel_order(order.order_number)

    with pytest.raises(InvalidTransition):
        await container.orders.cancel_order(order.order_number)
    assert await container.stock_ledger.quantity("oil-1", "500ml") == 10


@pytest.mark.asyncio
async def test_cancelling_a_pending_order_leaves_stock_alone(container, place_order):
    order = await place_order([OIL])

    cancelled = await container.orders.cancel_order(order.order_number)

    assert cancelled.cancellation_reason == "No reason provided."
    assert await container.stock_ledger.quantity("oil-1", "500ml") == 10


@pytest.mark.asyncio
async def test_cancelling_a_paid_order_reverses_the_payment(container, place_order, fake_gateway):
    order = await place_order([OIL])
    await container.payments.charge(order.order_number, {})

    await container.orders.cancel_order(order.order_number, "Out of business")
    await container.job_queue.drain()

    assert len(fake_gateway.refunds) == 1
    assert fake_gateway.refunds[0]["amount"] == order.total
    assert fake_gateway.refunds[0]["idempotency_key"].startswith("reversal-")

    [transaction] = await container.transaction_log.history(order.order_number)
    assert transaction.status == TransactionStatus.REFUNDED
    assert transaction.refunded_amount == order.total
    assert await container.stock_ledger.quantity("oil-1", "500ml") == 10


@pytest.mark.asyncio
async def test_failed_restores_are_retried_in_the_background(container, place_order, monkeypatch):
    order = await place_order([OIL])
    await container.orders.accept_order(order.order_number)

    real_restore = container.stock_ledger.restore
    calls = {"n": 0}

    async def flaky_restore(product_id, variant, quantity):
        calls["n"] += 1
        if calls["n"] <= 2:
            raise ConnectionError("database unavailable")
        await real_restore(product_id, variant, quantity)

    monkeypatch.setattr(container.stock_ledger, "restore", flaky_restore)

    await container.orders.cancel_order(order.order_number)
    assert await container.stock_ledger.quantity("oil-1", "500ml") == 8

    await container.job_queue.drain()

    assert await container.stock_ledger.quantity("oil-1", "500ml") == 10
    assert [r.name for r in container.job_queue.results] == ["restore_stock"]
    assert container.job_queue.results[0].success is True


@pytest.mark.asyncio
async def test_exhausted_restore_becomes_an_operator_alert(container, place_order, monkeypatch):
    order = await place_order([OIL])
    await container.orders.accept_order(order.order_number)

    async def broken_restore(product_id, variant, quantity):
        raise ConnectionError("database unavailable")

    monkeypatch.setattr(container.stock_ledger, "restore", broken_restore)

    await container.orders.cancel_order(order.order_number)
    await container.job_queue.drain()

    alerts = await container.alerts.list_alerts(resolved=False)
    assert [a.kind for a in alerts] == ["restore_stock_exhausted"]
    assert alerts[0].order_number == order.order_number
    assert alerts[0].detail["job"]["quantity"] == 2
