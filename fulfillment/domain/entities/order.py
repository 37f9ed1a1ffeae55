"""
Order aggregate root.

CRITICAL: This file must contain ZERO imports from:
- sqlalchemy
- pydantic
- fastapi
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from ..enums import (
    CANCELLABLE_STATUSES,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    can_transition,
    is_valid_payment_pair,
)
from ..enums.order_status import REFUNDABLE_STATUSES
from ..errors import InvalidTransition, RefundExceedsLimit, ValidationError
from ..events.base import DomainEvent
from ..value_objects import Address, Money, OrderNumber, quantize_amount

DEFAULT_CANCELLATION_REASON = "No reason provided."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class OrderItem:
    """Line item snapshot captured at order time."""
    product_id: str
    product_title: str
    variant: str
    packaging: str
    quantity: int
    unit_price: Money

    def __post_init__(self):
        if self.quantity < 1:
            raise ValidationError(f"Quantity for product {self.product_id} must be at least 1.")
        if self.unit_price.is_negative():
            raise ValidationError(f"Price for product {self.product_id} cannot be negative.")

    @property
    def line_total(self) -> Money:
        return self.unit_price.times(self.quantity)


@dataclass
class Order:
    """
    Order aggregate root.

    Owns its line items and address snapshots. All status changes go
    through the methods below so the transition table and the
    status/payment-status pairing are checked in one place.
    """
    order_number: OrderNumber
    customer_id: str
    items: List[OrderItem]
    shipping_address: Address
    billing_address: Address
    payment_method: PaymentMethod
    subtotal: Money
    discount: Money
    total: Money
    coupon_code: Optional[str] = None
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    total_refunded: Optional[Money] = None
    stock_deducted: bool = False
    cancellation_reason: Optional[str] = None
    tracking_number: Optional[str] = None
    shipping_date: Optional[datetime] = None
    delivery_date: Optional[datetime] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    version: int = 0

    # Event collection
    _domain_events: List[DomainEvent] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self):
        if self.total_refunded is None:
            self.total_refunded = Money.zero(self.total.currency)
        self._check_invariants()

    @classmethod
    def place(
        cls,
        customer_id: str,
        items: List[OrderItem],
        shipping_address: Address,
        billing_address: Address,
        payment_method: PaymentMethod,
        discount: Money,
        coupon_code: Optional[str] = None,
    ) -> "Order":
        """
        Factory for a new checkout order in `pending`.

        Args:
            customer_id: Customer reference
            items: Line items with catalog prices already resolved
            shipping_address: Shipping address snapshot
            billing_address: Billing address snapshot
            payment_method: Chosen payment method
            discount: Discount already capped at the subtotal
            coupon_code: Applied coupon code, if any

        Returns:
            New Order with OrderCreatedEvent collected
        """
        if not items:
            raise ValidationError("Order must contain at least one item.")

        currency = items[0].unit_price.currency
        subtotal = Money.zero(currency)
        for item in items:
            subtotal = subtotal + item.line_total

        if discount.amount > subtotal.amount:
            discount = subtotal
        total = subtotal - discount

        order = cls(
            order_number=OrderNumber.generate(),
            customer_id=customer_id,
            items=list(items),
            shipping_address=shipping_address,
            billing_address=billing_address,
            payment_method=payment_method,
            subtotal=subtotal.quantized(),
            discount=discount.quantized(),
            total=total.quantized(),
            coupon_code=coupon_code,
        )

        from ..events.order_events import OrderCreatedEvent

        order._record_event(
            OrderCreatedEvent(
                order_number=order.order_number.value,
                customer_id=customer_id,
                total=order.total.amount,
                currency=currency,
                coupon_code=coupon_code,
            )
        )
        return order

    # =========================================================================
    # STATE MACHINE
    # =========================================================================

    @property
    def refundable(self) -> Money:
        """Amount that can still be refunded."""
        return self.total - self.total_refunded

    @property
    def is_terminal(self) -> bool:
        return self.status not in CANCELLABLE_STATUSES

    def accept(self) -> None:
        """Move a pending order to processing once its stock is deducted."""
        if self.status != OrderStatus.PENDING:
            raise InvalidTransition("Only orders with 'pending' status can be accepted.")
        self._transition(OrderStatus.PROCESSING, "Order accepted")
        self.stock_deducted = True

    def transition_to(self, target: OrderStatus, tracking_number: Optional[str] = None) -> None:
        """
        Fulfillment transition without stock or money side effects.

        Raises:
            InvalidTransition: If the table forbids the move
        """
        if target not in (OrderStatus.SHIPPED, OrderStatus.DELIVERED):
            raise InvalidTransition(
                f"Status {target.value} cannot be set directly."
            )
        self._transition(target)

        now = _utcnow()
        if target == OrderStatus.SHIPPED:
            self.shipping_date = now
            if tracking_number:
                self.tracking_number = tracking_number
        elif target == OrderStatus.DELIVERED:
            self.delivery_date = now
            if self.shipping_date is None:
                self.shipping_date = now

    def cancel(self, reason: Optional[str] = None) -> bool:
        """
        Cancel the order.

        Returns:
            True if stock had been deducted and must be restored
        """
        if self.status not in CANCELLABLE_STATUSES:
            raise InvalidTransition("Order is already cancelled or refunded.")
        if not self.total_refunded.is_zero():
            raise InvalidTransition(
                "Order has partial refunds; complete the refund before cancelling."
            )

        restore_stock = self.stock_deducted
        previous = self.status

        self.status = OrderStatus.CANCELLED
        self.payment_status = PaymentStatus.REFUNDED
        self.stock_deducted = False
        self.cancellation_reason = reason or DEFAULT_CANCELLATION_REASON
        self._touch()

        from ..events.order_events import OrderCancelledEvent

        self._record_status_change(previous, self.status, self.cancellation_reason)
        self._record_event(
            OrderCancelledEvent(
                order_number=self.order_number.value,
                customer_id=self.customer_id,
                reason=self.cancellation_reason,
                stock_restored=restore_stock,
            )
        )
        return restore_stock

    def mark_paid(self) -> bool:
        """
        Record a confirmed payment.

        Returns:
            False if the order was already paid
        """
        if self.payment_status == PaymentStatus.PAID:
            return False
        if self.status not in CANCELLABLE_STATUSES:
            raise InvalidTransition(
                f"Cannot record payment on a {self.status.value} order."
            )
        self.payment_status = PaymentStatus.PAID
        self._touch()
        self._assert_payment_pair()

        from ..events.order_events import PaymentConfirmedEvent

        self._record_event(
            PaymentConfirmedEvent(
                order_number=self.order_number.value,
                customer_id=self.customer_id,
                amount=self.total.amount,
            )
        )
        return True

    def mark_payment_failed(self) -> bool:
        """
        Record a failed payment attempt.

        Only a pending, unpaid order reflects the failure.

        Returns:
            True if the payment status changed
        """
        if self.status != OrderStatus.PENDING or self.payment_status == PaymentStatus.PAID:
            return False
        if self.payment_status == PaymentStatus.FAILED:
            return False
        self.payment_status = PaymentStatus.FAILED
        self._touch()

        from ..events.order_events import PaymentFailedEvent

        self._record_event(
            PaymentFailedEvent(
                order_number=self.order_number.value,
                customer_id=self.customer_id,
            )
        )
        return True

    def check_refund(self, amount: Money) -> None:
        """
        Validate a refund request against status and refundable remainder.

        Raises:
            InvalidTransition: Order is not shipped or delivered
            RefundExceedsLimit: Amount exceeds the refundable remainder
            ValidationError: Amount is not positive
        """
        if self.status not in REFUNDABLE_STATUSES:
            raise InvalidTransition(
                f"Refunds are only allowed for shipped or delivered orders, not {self.status.value}."
            )
        if amount.amount <= 0:
            raise ValidationError("Refund amount must be greater than zero.")
        if amount.amount > self.refundable.amount:
            raise RefundExceedsLimit(amount.amount, self.refundable.amount)

    def complete_refund(self, amount: Money, reason: Optional[str] = None) -> bool:
        """
        Finish a refund the gateway has issued.

        The amount is already counted in `total_refunded` by the storage
        reservation; this settles the resulting status.

        Returns:
            True if the order is now fully refunded
        """
        fully_refunded = self.total_refunded.amount >= self.total.amount

        if fully_refunded and self.status != OrderStatus.REFUNDED:
            self._transition(OrderStatus.REFUNDED, reason, payment_status=PaymentStatus.REFUNDED)
        else:
            self._touch()

        from ..events.order_events import RefundIssuedEvent

        self._record_event(
            RefundIssuedEvent(
                order_number=self.order_number.value,
                customer_id=self.customer_id,
                amount=amount.amount,
                total_refunded=self.total_refunded.amount,
                fully_refunded=fully_refunded,
            )
        )
        return fully_refunded

    def _transition(
        self,
        target: OrderStatus,
        reason: Optional[str] = None,
        payment_status: Optional[PaymentStatus] = None,
    ) -> None:
        if not can_transition(self.status, target):
            raise InvalidTransition(
                f"Invalid status transition from {self.status.value} to {target.value}."
            )
        previous = self.status
        self.status = target
        if payment_status is not None:
            self.payment_status = payment_status
        self._touch()
        self._assert_payment_pair()
        self._record_status_change(previous, target, reason)

    def _touch(self) -> None:
        self.updated_at = _utcnow()

    def _check_invariants(self) -> None:
        if not self.items:
            raise ValidationError("Order must contain at least one item.")

        expected_subtotal = quantize_amount(
            sum((item.line_total.amount for item in self.items), Decimal("0"))
        )
        if expected_subtotal != quantize_amount(self.subtotal.amount):
            raise ValidationError(
                f"Subtotal mismatch: {self.subtotal.amount} vs {expected_subtotal}"
            )
        if self.discount.is_negative() or self.discount.amount > self.subtotal.amount:
            raise ValidationError("Discount must be between zero and the order subtotal.")
        if self.total.is_negative():
            raise ValidationError("Order total cannot be negative.")
        if self.total != self.subtotal - self.discount:
            raise ValidationError(
                f"Total mismatch: {self.total.amount} vs {self.subtotal.amount - self.discount.amount}"
            )
        self._assert_payment_pair()

    def _assert_payment_pair(self) -> None:
        if not is_valid_payment_pair(self.status, self.payment_status):
            raise InvalidTransition(
                f"Payment status {self.payment_status.value} is not valid for a "
                f"{self.status.value} order."
            )

    # =========================================================================
    # EVENT COLLECTION
    # =========================================================================

    def get_domain_events(self) -> List[DomainEvent]:
        """
        Get all domain events collected by this aggregate.

        Returns:
            List of domain events (published after commit)
        """
        return list(self._domain_events)

    def clear_domain_events(self) -> None:
        """Clear all collected domain events (after publishing)."""
        self._domain_events.clear()

    def _record_status_change(
        self, previous: OrderStatus, new: OrderStatus, reason: Optional[str] = None
    ) -> None:
        """Record OrderStatusChangedEvent when status changes."""
        from ..events.order_events import OrderStatusChangedEvent

        self._record_event(
            OrderStatusChangedEvent(
                order_number=self.order_number.value,
                customer_id=self.customer_id,
                previous_status=previous.value,
                new_status=new.value,
                reason=reason,
            )
        )

    def _record_event(self, event: DomainEvent) -> None:
        self._domain_events.append(event)
