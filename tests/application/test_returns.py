"""Returns: request, approval with refund and restock, rejection."""

import asyncio
from decimal import Decimal

import pytest

from fulfillment.application.dtos import CreateReturnRequest, ReturnLineRequest
from fulfillment.domain.enums import OrderStatus, PaymentMethod, ReturnStatus
from fulfillment.domain.errors import (
    InvalidTransition,
    OrderNotFound,
    RefundProcessingFailed,
    ReturnNotFound,
    ValidationError,
)

HONEY = {"product_id": "honey-1", "variant": "1kg", "packaging": "jar", "quantity": 2}


def _return(quantity: int, reason: str = "Arrived crystallised") -> CreateReturnRequest:
    return CreateReturnRequest(
        items=[ReturnLineRequest(product_id="honey-1", quantity=quantity)],
        reason=reason,
    )


@pytest.fixture
def delivered_order(container, place_order):
    """A paid, delivered order for two jars of honey (100.00)."""

    async def _deliver(payment_method: PaymentMethod = PaymentMethod.CARD):
        order = await place_order([HONEY], payment_method=payment_method)
        if payment_method.is_cash:
            await container.orders.accept_order(order.order_number)
        else:
            await container.payments.charge(order.order_number, {"token": "tok_visa"})
        await container.orders.transition_status(order.order_number, OrderStatus.SHIPPED)
        await container.orders.transition_status(order.order_number, OrderStatus.DELIVERED)
        return order.order_number

    return _deliver


@pytest.mark.asyncio
async def test_approved_return_refunds_and_restocks(container, delivered_order, fake_gateway):
    order_number = await delivered_order()
    assert await container.stock_ledger.quantity("honey-1", "1kg") == 8

    requested = await container.returns.request_return(order_number, _return(1))
    assert requested.status == ReturnStatus.REQUESTED
    assert requested.refund_amount == Decimal("50.00")
    assert requested.items[0].variant == "1kg"

    approved = await container.returns.approve_return(order_number, requested.id, note="Checked")

    assert approved.status == ReturnStatus.APPROVED
    assert approved.refunded_amount == Decimal("50.00")
    assert approved.refund_id.startswith("fake_re_")
    assert approved.decision_note == "Checked"
    assert fake_gateway.refunds[-1]["idempotency_key"] == f"return-{requested.id}"

    order = await container.orders.get_order(order_number)
    assert order.total_refunded == Decimal("50.00")
    assert order.status == OrderStatus.DELIVERED
    assert await container.stock_ledger.quantity("honey-1", "1kg") == 9

    [stored] = await container.returns.list_returns(order_number)
    assert stored.status == ReturnStatus.APPROVED
    assert stored.refund_id == approved.refund_id


@pytest.mark.asyncio
async def test_returning_everything_refunds_the_order(container, delivered_order):
    order_number = await delivered_order()
    requested = await container.returns.request_return(order_number, _return(2))

    await container.returns.approve_return(order_number, requested.id)

    order = await container.orders.get_order(order_number)
    assert order.status == OrderStatus.REFUNDED
    assert order.total_refunded == Decimal("100.00")
    assert await container.stock_ledger.quantity("honey-1", "1kg") == 10


@pytest.mark.asyncio
async def test_returns_need_a_delivered_order(container, place_order):
    order = await place_order([HONEY])
    await container.payments.charge(order.order_number, {})
    await container.orders.transition_status(order.order_number, OrderStatus.SHIPPED)

    with pytest.raises(InvalidTransition, match="delivered"):
        await container.returns.request_return(order.order_number, _return(1))
    with pytest.raises(OrderNotFound):
        await container.returns.request_return("ORD-MISSING", _return(1))


@pytest.mark.asyncio
async def test_rejected_return_frees_its_units(container, delivered_order, fake_gateway):
    order_number = await delivered_order()
    first = await container.returns.request_return(order_number, _return(2))

    with pytest.raises(ValidationError, match="only 0 left"):
        await container.returns.request_return(order_number, _return(1))

    rejected = await container.returns.reject_return(order_number, first.id, note="Seal broken")
    assert rejected.status == ReturnStatus.REJECTED
    with pytest.raises(InvalidTransition, match="already rejected"):
        await container.returns.approve_return(order_number, first.id)

    second = await container.returns.request_return(order_number, _return(2))
    assert second.id != first.id
    assert fake_gateway.refunds == []
    assert await container.stock_ledger.quantity("honey-1", "1kg") == 8


@pytest.mark.asyncio
async def test_refused_refund_reopens_the_return(container, delivered_order, fake_gateway):
    order_number = await delivered_order()
    requested = await container.returns.request_return(order_number, _return(1))
    fake_gateway.refund_succeeds = False

    with pytest.raises(RefundProcessingFailed):
        await container.returns.approve_return(order_number, requested.id)

    reopened = await container.returns.get_return(order_number, requested.id)
    assert reopened.status == ReturnStatus.REQUESTED
    assert reopened.refunded_amount is None
    assert (await container.orders.get_order(order_number)).total_refunded == Decimal("0.00")
    assert await container.stock_ledger.quantity("honey-1", "1kg") == 8

    fake_gateway.refund_succeeds = True
    approved = await container.returns.approve_return(order_number, requested.id)

    assert approved.status == ReturnStatus.APPROVED
    keys = {refund["idempotency_key"] for refund in fake_gateway.refunds}
    assert keys == {f"return-{requested.id}"}
    assert await container.stock_ledger.quantity("honey-1", "1kg") == 9


@pytest.mark.asyncio
async def test_return_refund_is_capped_by_earlier_refunds(container, delivered_order):
    order_number = await delivered_order()
    await container.orders.refund_order(order_number, Decimal("80.00"), "Late delivery")
    requested = await container.returns.request_return(order_number, _return(1))

    approved = await container.returns.approve_return(order_number, requested.id)

    assert approved.refund_amount == Decimal("50.00")
    assert approved.refunded_amount == Decimal("20.00")
    assert (await container.orders.get_order(order_number)).status == OrderStatus.REFUNDED


@pytest.mark.asyncio
async def test_cash_order_return_is_approved_without_a_gateway_refund(container, delivered_order, fake_gateway):
    order_number = await delivered_order(PaymentMethod.COD)
    requested = await container.returns.request_return(order_number, _return(1))

    approved = await container.returns.approve_return(order_number, requested.id)

    assert approved.refunded_amount == Decimal("0.00")
    assert approved.refund_id is None
    assert fake_gateway.refunds == []
    assert await container.stock_ledger.quantity("honey-1", "1kg") == 9


@pytest.mark.asyncio
async def test_unknown_return_ids(container, delivered_order, place_order):
    order_number = await delivered_order()
    other = await place_order([HONEY])
    requested = await container.returns.request_return(order_number, _return(1))

    with pytest.raises(ReturnNotFound):
        await container.returns.approve_return(order_number, requested.id + 100)
    with pytest.raises(ReturnNotFound):
        await container.returns.reject_return(other.order_number, requested.id)


@pytest.mark.asyncio
async def test_parallel_returns_cannot_exceed_the_delivered_quantity(container, delivered_order):
    order_number = await delivered_order()

    results = await asyncio.gather(
        container.returns.request_return(order_number, _return(2)),
        container.returns.request_return(order_number, _return(2)),
        return_exceptions=True,
    )

    failures = [r for r in results if isinstance(r, Exception)]
    assert len(failures) == 1
    assert isinstance(failures[0], (ValidationError, InvalidTransition))
    assert len(await container.returns.list_returns(order_number)) == 1
