"""Charging orders and reconciling gateway webhooks."""

import pytest

from fulfillment.application.interfaces import ChargeStatus, GatewayEvent, GatewayEventType
from fulfillment.application.services import ReconcileOutcome
from fulfillment.data.uow import create_uow
from fulfillment.domain.enums import OrderStatus, PaymentMethod, PaymentStatus, TransactionStatus
from fulfillment.domain.errors import InvalidTransition

OIL = {"product_id": "oil-1", "variant": "500ml", "packaging": "bottle", "quantity": 2}


def _event(gateway_transaction_id: str, event_type: GatewayEventType, event_id: str = "evt_1") -> GatewayEvent:
    return GatewayEvent(
        gateway="fake",
        event_type=event_type,
        gateway_transaction_id=gateway_transaction_id,
        event_id=event_id,
    )


async def _pending_charge(container, place_order, fake_gateway):
    """Place an order and start a charge that waits for its webhook."""
    fake_gateway.charge_status = ChargeStatus.PENDING
    order = await place_order([OIL])
    outcome = await container.payments.charge(order.order_number, {"token": "tok_visa"})
    return order, outcome, fake_gateway.charges[-1]["gateway_transaction_id"]


@pytest.mark.asyncio
async def test_immediate_success_pays_and_accepts(container, place_order):
    order = await place_order([OIL])

    outcome = await container.payments.charge(order.order_number, {"token": "tok_visa"})

    assert outcome.outcome == ChargeStatus.SUCCEEDED
    assert outcome.order_status == OrderStatus.PROCESSING
    assert outcome.payment_status == PaymentStatus.PAID
    assert outcome.transaction.status == TransactionStatus.COMPLETED
    assert outcome.transaction.gateway == "fake"
    assert outcome.transaction.gateway_transaction_id.endswith("****")
    assert await container.stock_ledger.quantity("oil-1", "500ml") == 8

    with pytest.raises(InvalidTransition, match="not awaiting payment"):
        await container.payments.charge(order.order_number, {})


@pytest.mark.asyncio
async def test_declined_charge_marks_payment_failed(container, place_order, fake_gateway):
    fake_gateway.charge_status = ChargeStatus.FAILED
    order = await place_order([OIL])

    outcome = await container.payments.charge(order.order_number, {})

    assert outcome.order_status == OrderStatus.PENDING
    assert outcome.payment_status == PaymentStatus.FAILED
    assert outcome.transaction.status == TransactionStatus.FAILED
    assert await container.stock_ledger.quantity("oil-1", "500ml") == 10


@pytest.mark.asyncio
async def test_retry_after_decline_records_a_new_attempt(container, place_order, fake_gateway):
    fake_gateway.charge_status = ChargeStatus.FAILED
    order = await place_order([OIL])
    await container.payments.charge(order.order_number, {})

    fake_gateway.charge_status = ChargeStatus.SUCCEEDED
    outcome = await container.payments.charge(order.order_number, {})

    assert outcome.payment_status == PaymentStatus.PAID
    history = await container.transaction_log.history(order.order_number)
    assert [t.status for t in history] == [TransactionStatus.FAILED, TransactionStatus.COMPLETED]


@pytest.mark.asyncio
async def test_cash_on_delivery_waits_for_collection(container, place_order):
    order = await place_order([OIL], payment_method=PaymentMethod.COD)

    outcome = await container.payments.charge(order.order_number, {})

    assert outcome.outcome == ChargeStatus.PENDING
    assert outcome.order_status == OrderStatus.PENDING
    assert outcome.transaction.gateway == "cod"


@pytest.mark.asyncio
async def test_repeated_cash_on_delivery_charge_reuses_the_attempt(container, place_order):
    order = await place_order([OIL], payment_method=PaymentMethod.COD)

    first = await container.payments.charge(order.order_number, {})
    second = await container.payments.charge(order.order_number, {})

    assert second.outcome == ChargeStatus.PENDING
    assert second.transaction.id == first.transaction.id
    history = await container.transaction_log.history(order.order_number)
    assert [t.status for t in history] == [TransactionStatus.PENDING]


@pytest.mark.asyncio
async def test_success_webhook_is_applied_once(container, place_order, fake_gateway):
    order, outcome, gateway_id = await _pending_charge(container, place_order, fake_gateway)
    assert outcome.order_status == OrderStatus.PENDING
    assert outcome.transaction.status == TransactionStatus.PENDING

    first = await container.reconciler.reconcile(_event(gateway_id, GatewayEventType.SUCCEEDED))
    replay = await container.reconciler.reconcile(_event(gateway_id, GatewayEventType.SUCCEEDED))

    assert first == ReconcileOutcome.APPLIED
    assert replay == ReconcileOutcome.DUPLICATE
    current = await container.orders.get_order(order.order_number)
    assert current.status == OrderStatus.PROCESSING
    assert current.payment_status == PaymentStatus.PAID
    assert await container.stock_ledger.quantity("oil-1", "500ml") == 8


@pytest.mark.asyncio
async def test_webhook_for_an_order_accepted_by_staff_does_not_deduct_again(
    container, place_order, fake_gateway
):
    order, _, gateway_id = await _pending_charge(container, place_order, fake_gateway)
    await container.orders.accept_order(order.order_number)

    await container.reconciler.reconcile(_event(gateway_id, GatewayEventType.SUCCEEDED))

    current = await container.orders.get_order(order.order_number)
    assert current.payment_status == PaymentStatus.PAID
    assert await container.stock_ledger.quantity("oil-1", "500ml") == 8


@pytest.mark.asyncio
async def test_failure_then_late_success(container, place_order, fake_gateway):
    order, _, gateway_id = await _pending_charge(container, place_order, fake_gateway)

    assert (
        await container.reconciler.reconcile(_event(gateway_id, GatewayEventType.FAILED))
        == ReconcileOutcome.APPLIED
    )
    failed = await container.orders.get_order(order.order_number)
    assert failed.status == OrderStatus.PENDING
    assert failed.payment_status == PaymentStatus.FAILED

    await container.reconciler.reconcile(_event(gateway_id, GatewayEventType.SUCCEEDED, "evt_2"))

    paid = await container.orders.get_order(order.order_number)
    assert paid.status == OrderStatus.PROCESSING
    assert paid.payment_status == PaymentStatus.PAID

    # A stale failure after the success changes nothing.
    assert (
        await container.reconciler.reconcile(_event(gateway_id, GatewayEventType.FAILED, "evt_3"))
        == ReconcileOutcome.DUPLICATE
    )


@pytest.mark.asyncio
async def test_unknown_transaction_is_discarded(container):
    outcome = await container.reconciler.reconcile(_event("fake_unknown", GatewayEventType.SUCCEEDED))
    assert outcome == ReconcileOutcome.UNKNOWN_TRANSACTION


@pytest.mark.asyncio
async def test_payment_after_cancellation_is_reversed(container, place_order, fake_gateway):
    order, _, gateway_id = await _pending_charge(container, place_order, fake_gateway)
    await container.orders.cancel_order(order.order_number)

    await container.reconciler.reconcile(_event(gateway_id, GatewayEventType.SUCCEEDED))
    await container.job_queue.drain()

    current = await container.orders.get_order(order.order_number)
    assert current.status == OrderStatus.CANCELLED
    assert await container.stock_ledger.quantity("oil-1", "500ml") == 10

    alerts = await container.alerts.list_alerts()
    assert [a.kind for a in alerts] == ["payment_after_cancellation"]
    assert [r["gateway_transaction_id"] for r in fake_gateway.refunds] == [gateway_id]
    [transaction] = await container.transaction_log.history(order.order_number)
    assert transaction.status == TransactionStatus.REFUNDED


@pytest.mark.asyncio
async def test_paid_order_without_stock_raises_an_alert(container, place_order, fake_gateway):
    order = await place_order([OIL])
    await container.stock_ledger.deduct("oil-1", "500ml", 10)

    outcome = await container.payments.charge(order.order_number, {})

    assert outcome.order_status == OrderStatus.PENDING
    assert outcome.payment_status == PaymentStatus.PAID
    alerts = await container.alerts.list_alerts()
    assert [a.kind for a in alerts] == ["paid_order_out_of_stock"]


@pytest.mark.asyncio
async def test_webhook_worker_applies_queued_events(container, place_order, fake_gateway, webhook_queue):
    order, _, gateway_id = await _pending_charge(container, place_order, fake_gateway)

    await webhook_queue.enqueue(_event(gateway_id, GatewayEventType.SUCCEEDED))
    await container.webhook_worker.drain()

    assert webhook_queue.pending_count == 0
    current = await container.orders.get_order(order.order_number)
    assert current.status == OrderStatus.PROCESSING


@pytest.mark.asyncio
async def test_webhook_worker_dead_letters_after_max_deliveries(
    container, place_order, fake_gateway, webhook_queue, monkeypatch
):
    _, _, gateway_id = await _pending_charge(container, place_order, fake_gateway)
    deliveries = {"n": 0}

    async def failing_reconcile(event):
        deliveries["n"] += 1
        raise ConnectionError("database unavailable")

    monkeypatch.setattr(container.reconciler, "reconcile", failing_reconcile)

    await webhook_queue.enqueue(_event(gateway_id, GatewayEventType.SUCCEEDED))
    await container.webhook_worker.drain()

    assert deliveries["n"] == 3
    assert webhook_queue.pending_count == 0
    alerts = await container.alerts.list_alerts()
    assert [a.kind for a in alerts] == ["webhook_dead_letter"]
    assert alerts[0].detail["event"]["gateway_transaction_id"] == gateway_id


@pytest.mark.asyncio
async def test_webhook_for_unattached_charge_is_retried(
    container, place_order, session_factory, webhook_queue
):
    order = await place_order([OIL])
    await webhook_queue.enqueue(_event("fake_late", GatewayEventType.SUCCEEDED))

    # First delivery arrives before the charge recorded its gateway id.
    assert await container.webhook_worker.process_batch(block_ms=10) == 1
    assert webhook_queue.pending_count == 1

    async with create_uow(session_factory) as uow:
        [placeholder] = await uow.transactions.find_by_order(order.order_number)
        await uow.transactions.attach_gateway_id(placeholder.id, "fake", "fake_late", None, {})
        await uow.commit()

    await container.webhook_worker.drain()

    assert webhook_queue.pending_count == 0
    current = await container.orders.get_order(order.order_number)
    assert current.status == OrderStatus.PROCESSING
    assert current.payment_status == PaymentStatus.PAID


@pytest.mark.asyncio
async def test_webhook_for_unknown_transaction_is_dropped_after_max_deliveries(
    container, webhook_queue, monkeypatch
):
    deliveries = {"n": 0}
    reconcile = container.reconciler.reconcile

    async def counting_reconcile(event):
        deliveries["n"] += 1
        return await reconcile(event)

    monkeypatch.setattr(container.reconciler, "reconcile", counting_reconcile)

    await webhook_queue.enqueue(_event("fake_never_seen", GatewayEventType.SUCCEEDED))
    await container.webhook_worker.drain()

    assert deliveries["n"] == 3
    assert webhook_queue.pending_count == 0
    assert await container.alerts.list_alerts() == []


@pytest.mark.asyncio
async def test_client_confirmation_settles_a_pending_charge(container, place_order, fake_gateway):
    order, outcome, gateway_id = await _pending_charge(container, place_order, fake_gateway)
    assert outcome.next_action == {"gateway": "fake"}

    confirmed = await container.payments.confirm(order.order_number, {"token": gateway_id})

    assert confirmed.outcome == ChargeStatus.SUCCEEDED
    assert confirmed.order_status == OrderStatus.PROCESSING
    assert confirmed.payment_status == PaymentStatus.PAID
    assert fake_gateway.confirmations[0]["gateway_transaction_id"] == gateway_id

    # The webhook for the same capture arrives afterwards.
    replay = await container.reconciler.reconcile(_event(gateway_id, GatewayEventType.SUCCEEDED))
    assert replay == ReconcileOutcome.DUPLICATE
    assert await container.stock_ledger.quantity("oil-1", "500ml") == 8


@pytest.mark.asyncio
async def test_declined_confirmation_marks_payment_failed(container, place_order, fake_gateway):
    order, _, _ = await _pending_charge(container, place_order, fake_gateway)
    fake_gateway.confirm_status = ChargeStatus.FAILED

    confirmed = await container.payments.confirm(order.order_number, {})

    assert confirmed.order_status == OrderStatus.PENDING
    assert confirmed.payment_status == PaymentStatus.FAILED
    assert confirmed.transaction.status == TransactionStatus.FAILED


@pytest.mark.asyncio
async def test_confirmation_needs_a_pending_charge(container, place_order):
    order = await place_order([OIL])

    with pytest.raises(InvalidTransition, match="awaiting confirmation"):
        await container.payments.confirm(order.order_number, {})

    await container.payments.charge(order.order_number, {"token": "tok_visa"})
    with pytest.raises(InvalidTransition, match="not awaiting payment"):
        await container.payments.confirm(order.order_number, {})
