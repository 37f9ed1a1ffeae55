"""Concurrent callers against the same stock entry, order and coupon."""

import asyncio
from decimal import Decimal

import pytest

from fulfillment.application.dtos import CreateCouponRequest
from fulfillment.domain.enums import DiscountType, OrderStatus
from fulfillment.domain.errors import CouponExhausted, InsufficientStock, InvalidTransition

OIL = {"product_id": "oil-1", "variant": "500ml", "packaging": "bottle", "quantity": 2}


@pytest.mark.asyncio
async def test_parallel_deductions_never_oversell(container, stock):
    await stock("soap-1", "bar", 5)

    results = await asyncio.gather(
        *(container.stock_ledger.deduct("soap-1", "bar", 1) for _ in range(8)),
        return_exceptions=True,
    )

    assert sum(1 for r in results if r is None) == 5
    assert sum(1 for r in results if isinstance(r, InsufficientStock)) == 3
    assert await container.stock_ledger.quantity("soap-1", "bar") == 0


@pytest.mark.asyncio
async def test_parallel_accepts_deduct_once(container, place_order):
    order = await place_order([OIL])

    results = await asyncio.gather(
        container.orders.accept_order(order.order_number),
        container.orders.accept_order(order.order_number),
        return_exceptions=True,
    )

    accepted = [r for r in results if not isinstance(r, Exception)]
    assert len(accepted) == 1
    assert accepted[0].status == OrderStatus.PROCESSING
    assert all(isinstance(r, InvalidTransition) for r in results if isinstance(r, Exception))
    assert await container.stock_ledger.quantity("oil-1", "500ml") == 8


@pytest.mark.asyncio
async def test_parallel_accept_and_cancel_leave_stock_consistent(container, place_order):
    order = await place_order([OIL])

    await asyncio.gather(
        container.orders.accept_order(order.order_number),
        container.orders.cancel_order(order.order_number),
        return_exceptions=True,
    )

    current = await container.orders.get_order(order.order_number)
    expected = 8 if current.stock_deducted else 10
    assert await container.stock_ledger.quantity("oil-1", "500ml") == expected


@pytest.mark.asyncio
async def test_single_use_coupon_is_redeemed_once(container, stock, order_request):
    await container.coupons.create_coupon(
        CreateCouponRequest(
            code="ONCE",
            discount_type=DiscountType.FIXED,
            discount_value=Decimal("5"),
            max_uses=1,
        )
    )
    await stock("oil-1", "500ml", 20)

    results = await asyncio.gather(
        *(container.orders.create_order(order_request([OIL], coupon_code="ONCE")) for _ in range(3)),
        return_exceptions=True,
    )

    placed = [r for r in results if not isinstance(r, Exception)]
    assert len(placed) == 1
    assert all(isinstance(r, CouponExhausted) for r in results if isinstance(r, Exception))
    assert (await container.coupons.get_coupon("ONCE")).used_count == 1
    assert (await container.orders.list_orders()).total == 1
