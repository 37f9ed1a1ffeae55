"""
Order application service.

Entry point for the order lifecycle: checkout, acceptance, fulfillment
transitions, cancellation and refunds. Each use case loads the Order
aggregate, lets it enforce the state machine, persists through the Unit
of Work and publishes the collected domain events after commit.
"""

import logging
from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import async_sessionmaker

from fulfillment.application.dtos.order_dto import (
    CreateOrderRequest,
    OrderDTO,
    OrderLineRequest,
    OrderListDTO,
)
from fulfillment.application.dtos.payment_dto import RefundRecordDTO
from fulfillment.application.interfaces import ICatalogService, ProductSnapshot
from fulfillment.data.uow import create_uow
from fulfillment.domain.entities.order import Order, OrderItem
from fulfillment.domain.entities.transaction import Transaction
from fulfillment.domain.enums import OrderStatus, PaymentMethod, TransactionStatus
from fulfillment.domain.errors import (
    InsufficientStock,
    InvalidTransition,
    OrderNotFound,
    PackagingInvalid,
    ProductInvalid,
    RefundProcessingFailed,
    ValidationError,
    VariantNotFound,
)
from fulfillment.domain.event_bus import EventBus
from fulfillment.domain.value_objects import Address, Money
from fulfillment.infrastructure.adapters.gateways.registry import PaymentGatewayRegistry

from .compensation import CompensationScheduler
from .coupon_engine import CouponEngine
from .order_acceptance import OrderAcceptance
from .order_updates import OrderUpdater
from .refund_processor import RefundProcessor
from .stock_ledger import StockLedger

logger = logging.getLogger(__name__)


class OrderApplicationService:
    """
    Application service for Order use cases.

    Responsibilities:
    1. Validate checkout requests against the catalog and stock ledger
    2. Persist orders together with their coupon redemption
    3. Route status changes through the state machine
    4. Hand compensation work to the background job queue
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        event_bus: EventBus,
        catalog: ICatalogService,
        stock_ledger: StockLedger,
        coupons: CouponEngine,
        updater: OrderUpdater,
        acceptance: OrderAcceptance,
        refunds: RefundProcessor,
        compensation: CompensationScheduler,
        currency: str = "USD",
        gateways: Optional[PaymentGatewayRegistry] = None,
    ) -> None:
        self._session_factory = session_factory
        self._event_bus = event_bus
        self._catalog = catalog
        self._ledger = stock_ledger
        self._coupons = coupons
        self._updater = updater
        self._acceptance = acceptance
        self._refunds = refunds
        self._compensation = compensation
        self._currency = currency
        self._gateways = gateways

    # =========================================================================
    # CHECKOUT
    # =========================================================================

    async def create_order(self, request: CreateOrderRequest) -> OrderDTO:
        """
        Place a new order in `pending`.

        Prices come from the catalog. Stock is checked but not deducted;
        the coupon is redeemed in the same commit as the order insert.

        Args:
            request: Checkout request

        Returns:
            OrderDTO of the persisted order

        Raises:
            ProductInvalid / VariantNotFound / PackagingInvalid: Catalog mismatch
            InsufficientStock: Not enough stock for a requested variant
            CouponInvalid / CouponExpired / CouponExhausted: Coupon rejected
            ValidationError: No configured gateway takes the payment method
        """
        if self._gateways is not None and not self._gateways.serves(request.payment_method):
            raise ValidationError(
                f"Payment method {PaymentMethod(request.payment_method).value} is not supported."
            )

        items = await self._build_items(request.items)
        await self._check_stock(items)

        subtotal = Money.zero(self._currency)
        for item in items:
            subtotal = subtotal + item.line_total

        discount = Money.zero(self._currency)
        coupon_code = None
        if request.coupon_code:
            coupon = await self._coupons.validate(request.coupon_code)
            discount = self._coupons.apply(coupon, subtotal)
            coupon_code = coupon.code

        shipping = Address(**request.shipping_address.model_dump())
        billing = (
            Address(**request.billing_address.model_dump())
            if request.billing_address is not None
            else shipping
        )

        order = Order.place(
            customer_id=request.customer_id,
            items=items,
            shipping_address=shipping,
            billing_address=billing,
            payment_method=request.payment_method,
            discount=discount,
            coupon_code=coupon_code,
        )
        order_number = order.order_number.value

        async with create_uow(self._session_factory) as uow:
            await uow.orders.add(order)
            if coupon_code:
                await self._coupons.redeem(uow, coupon_code)
            await uow.transactions.add(
                Transaction(
                    order_number=order_number,
                    payment_method=order.payment_method,
                    amount=order.total,
                    status=TransactionStatus.PENDING,
                )
            )
            await uow.commit()

        logger.info(
            f"Order {order_number} created for customer {order.customer_id} "
            f"(total {order.total}, coupon {coupon_code or '-'})"
        )

        events = order.get_domain_events()
        order.clear_domain_events()
        await self._event_bus.publish_all(events)

        return OrderDTO.from_order(order)

    async def _build_items(self, lines: List[OrderLineRequest]) -> List[OrderItem]:
        products: Dict[str, ProductSnapshot] = {}
        items: List[OrderItem] = []
        for line in lines:
            product = products.get(line.product_id)
            if product is None:
                product = await self._catalog.get_product(line.product_id)
                if product is None or not product.is_active:
                    raise ProductInvalid(line.product_id)
                products[line.product_id] = product

            variant = product.find_variant(line.variant)
            if variant is None:
                raise VariantNotFound(line.variant, product.title)
            if line.packaging not in product.packaging_options:
                raise PackagingInvalid(line.packaging, product.title)

            items.append(
                OrderItem(
                    product_id=product.product_id,
                    product_title=product.title,
                    variant=variant.size,
                    packaging=line.packaging,
                    quantity=line.quantity,
                    unit_price=Money(variant.price, self._currency),
                )
            )
        return items

    async def _check_stock(self, items: List[OrderItem]) -> None:
        # Lines for the same variant draw on the same entry.
        wanted: "OrderedDict[Tuple[str, str], Tuple[str, int]]" = OrderedDict()
        for item in items:
            key = (item.product_id, item.variant)
            title, quantity = wanted.get(key, (item.product_title, 0))
            wanted[key] = (title, quantity + item.quantity)

        for (product_id, variant), (title, quantity) in wanted.items():
            if not await self._ledger.reserve_check(product_id, variant, quantity):
                raise InsufficientStock(title, variant)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def accept_order(self, order_number: str) -> OrderDTO:
        """Deduct stock and move a pending order to processing."""
        order = await self._acceptance.accept(order_number)
        return OrderDTO.from_order(order)

    async def transition_status(
        self,
        order_number: str,
        target: OrderStatus,
        tracking_number: Optional[str] = None,
    ) -> OrderDTO:
        """
        Apply a status change requested by staff.

        `processing` goes through acceptance and `cancelled` through
        cancellation so their stock effects are never skipped.

        Raises:
            InvalidTransition: Transition forbidden by the table, or target `refunded`
        """
        if target == OrderStatus.PROCESSING:
            return await self.accept_order(order_number)
        if target == OrderStatus.CANCELLED:
            return await self.cancel_order(order_number)
        if target in (OrderStatus.REFUNDED, OrderStatus.PENDING):
            raise InvalidTransition(
                f"Status {target.value} cannot be set directly."
            )

        def advance(order: Order) -> None:
            order.transition_to(target, tracking_number)

        order = await self._updater.apply(order_number, advance)
        logger.info(f"Order {order_number} moved to {target.value}")
        return OrderDTO.from_order(order)

    async def cancel_order(self, order_number: str, reason: Optional[str] = None) -> OrderDTO:
        """
        Cancel a non-terminal order.

        The status write clears `stock_deducted` under the version check,
        so exactly one canceller restores the stock. Captured payments are
        reversed by a background job.

        Raises:
            InvalidTransition: Order is terminal or carries partial refunds
        """
        outcome: Dict[str, bool] = {}

        def cancel(order: Order) -> None:
            outcome["restore_stock"] = order.cancel(reason)

        order = await self._updater.apply(order_number, cancel)

        if outcome.get("restore_stock"):
            await self._acceptance.compensate(order_number, order.items)

        if await self._has_captured_payment(order_number):
            await self._compensation.schedule_reversal(order_number, order.cancellation_reason)

        logger.info(
            f"Order {order_number} cancelled "
            f"(stock restored: {bool(outcome.get('restore_stock'))}, reason: {order.cancellation_reason})"
        )
        return OrderDTO.from_order(order)

    async def refund_order(
        self, order_number: str, amount: Decimal, reason: Optional[str] = None
    ) -> RefundRecordDTO:
        """
        Refund a shipped or delivered order.

        A gateway failure leaves the order unchanged, schedules a retry
        with the same idempotency key and is reported to the caller.
        """
        try:
            return await self._refunds.refund(order_number, amount, reason)
        except RefundProcessingFailed as e:
            if e.idempotency_key:
                await self._compensation.schedule_refund_retry(
                    order_number, amount, reason, e.idempotency_key
                )
            raise

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_order(self, order_number: str) -> OrderDTO:
        """
        Get order by order number.

        Raises:
            OrderNotFound: If the order doesn't exist
        """
        async with create_uow(self._session_factory) as uow:
            order = await uow.orders.find_by_number(order_number)
        if order is None:
            raise OrderNotFound(order_number)
        return OrderDTO.from_order(order)

    async def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        customer_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        limit: int = 10,
    ) -> OrderListDTO:
        """List orders newest first, paginated."""
        page = max(page, 1)
        limit = max(limit, 1)
        async with create_uow(self._session_factory) as uow:
            orders = await uow.orders.find_all(
                status=status,
                customer_id=customer_id,
                date_from=date_from,
                date_to=date_to,
                offset=(page - 1) * limit,
                limit=limit,
            )
            total = await uow.orders.count(
                status=status,
                customer_id=customer_id,
                date_from=date_from,
                date_to=date_to,
            )
        return OrderListDTO(
            orders=[OrderDTO.from_order(order) for order in orders],
            total=total,
            page=page,
            limit=limit,
        )

    async def _has_captured_payment(self, order_number: str) -> bool:
        async with create_uow(self._session_factory) as uow:
            completed = await uow.transactions.find_by_order(
                order_number, TransactionStatus.COMPLETED
            )
        return any(transaction.is_captured for transaction in completed)
