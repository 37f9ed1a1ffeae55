"""
Customer return request.

A return names delivered units the customer sends back. Approval refunds
their share of what was actually paid and puts the units back in stock.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from ..enums import OrderStatus, ReturnStatus
from ..errors import InvalidTransition, ValidationError
from ..value_objects import Money, quantize_amount
from .order import Order, OrderItem


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReturnItem:
    product_id: str
    variant: str
    quantity: int

    def __post_init__(self):
        if self.quantity < 1:
            raise ValidationError(f"Return quantity for product {self.product_id} must be at least 1.")

    @property
    def key(self) -> Tuple[str, str]:
        return self.product_id, self.variant


@dataclass
class ReturnRequest:
    """
    Return of some or all delivered units of an order.

    `refund_amount` is the value of the returned units after the order's
    discount, fixed when the return is requested. Approval refunds it,
    capped at whatever is still refundable on the order.
    """
    order_number: str
    items: List[ReturnItem]
    refund_amount: Money
    reason: Optional[str] = None
    status: ReturnStatus = ReturnStatus.REQUESTED
    refunded_amount: Optional[Money] = None
    refund_id: Optional[str] = None
    decision_note: Optional[str] = None
    id: Optional[int] = None
    created_at: datetime = field(default_factory=_utcnow)
    decided_at: Optional[datetime] = None

    @classmethod
    def open(
        cls,
        order: Order,
        lines: Iterable[Tuple[str, Optional[str], int]],
        reason: Optional[str] = None,
        earlier: Iterable["ReturnRequest"] = (),
    ) -> "ReturnRequest":
        """
        Validate a return against the order and the returns before it.

        Args:
            order: The order being returned
            lines: (product_id, variant or None, quantity) triples; the
                variant may be omitted when the order has only one
            reason: Customer's reason
            earlier: Returns already filed for this order

        Raises:
            InvalidTransition: Order is not delivered
            ValidationError: Unknown line, or more units than are left to return
        """
        if order.status != OrderStatus.DELIVERED:
            raise InvalidTransition(
                f"Returns are only accepted for delivered orders, not {order.status.value}."
            )

        requested: Dict[Tuple[str, str], int] = {}
        for product_id, variant, quantity in lines:
            item = ReturnItem(product_id, _resolve_variant(order, product_id, variant), quantity)
            requested[item.key] = requested.get(item.key, 0) + item.quantity
        if not requested:
            raise ValidationError("A return must name at least one item.")

        already = _returned_quantities(earlier)
        value = Decimal("0")
        for (product_id, variant), quantity in requested.items():
            ordered = _ordered_lines(order, product_id, variant)
            left = sum(line.quantity for line in ordered) - already.get((product_id, variant), 0)
            if quantity > left:
                raise ValidationError(
                    f"Cannot return {quantity} x {product_id}/{variant}; "
                    f"only {max(left, 0)} left to return."
                )
            value += ordered[0].unit_price.amount * quantity

        return cls(
            order_number=order.order_number.value,
            items=[ReturnItem(p, v, q) for (p, v), q in requested.items()],
            refund_amount=Money(_after_discount(order, value), order.total.currency),
            reason=reason,
        )

    @property
    def is_open(self) -> bool:
        return self.status == ReturnStatus.REQUESTED

    def ensure_open(self) -> None:
        if not self.is_open:
            raise InvalidTransition(f"Return {self.id} is already {self.status.value}.")

    def approve(self, refunded: Money, refund_id: Optional[str] = None, note: Optional[str] = None) -> None:
        self.ensure_open()
        self.status = ReturnStatus.APPROVED
        self.refunded_amount = refunded
        self.refund_id = refund_id
        self.decision_note = note
        self.decided_at = _utcnow()

    def reject(self, note: Optional[str] = None) -> None:
        self.ensure_open()
        self.status = ReturnStatus.REJECTED
        self.decision_note = note
        self.decided_at = _utcnow()


def _ordered_lines(order: Order, product_id: str, variant: str) -> List[OrderItem]:
    return [
        item for item in order.items
        if item.product_id == product_id and item.variant == variant
    ]


def _resolve_variant(order: Order, product_id: str, variant: Optional[str]) -> str:
    variants = sorted({item.variant for item in order.items if item.product_id == product_id})
    if variant is not None:
        if variant not in variants:
            raise ValidationError(f"Order has no {product_id}/{variant} to return.")
        return variant
    if not variants:
        raise ValidationError(f"Product {product_id} is not part of this order.")
    if len(variants) > 1:
        raise ValidationError(
            f"Order has several variants of {product_id} ({', '.join(variants)}); name one."
        )
    return variants[0]


def _returned_quantities(returns: Iterable[ReturnRequest]) -> Dict[Tuple[str, str], int]:
    counted: Dict[Tuple[str, str], int] = {}
    for earlier in returns:
        if earlier.status == ReturnStatus.REJECTED:
            continue
        for item in earlier.items:
            counted[item.key] = counted.get(item.key, 0) + item.quantity
    return counted


def _after_discount(order: Order, value: Decimal) -> Decimal:
    # Spread the discount across lines in proportion to their value.
    if order.subtotal.amount <= 0:
        return Decimal("0.00")
    share = value * order.total.amount / order.subtotal.amount
    return min(quantize_amount(share), order.total.amount)
