"""
Order, payment and transaction status values.

The allowed-transition table lives here so that every caller validates
against one source of truth.
"""
from enum import Enum
from typing import Dict, FrozenSet


class OrderStatus(str, Enum):
    """Order lifecycle status."""

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, Enum):
    """Customer-visible payment status of an order."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class TransactionStatus(str, Enum):
    """Status of a single payment attempt."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class ReturnStatus(str, Enum):
    """Status of a customer return request."""

    REQUESTED = "requested"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentMethod(str, Enum):
    """Payment methods accepted at checkout."""

    COD = "cod"
    CASH_ON_DELIVERY = "cash_on_delivery"
    STRIPE = "stripe"
    CARD = "card"
    UPI = "upi"
    PAYPAL = "paypal"
    RAZORPAY = "razorpay"

    @property
    def is_cash(self) -> bool:
        return self in (PaymentMethod.COD, PaymentMethod.CASH_ON_DELIVERY)


class DiscountType(str, Enum):
    """Coupon discount kind."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"


ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PROCESSING: frozenset({
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.REFUNDED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

# Payment status values each order status may be paired with.
VALID_PAYMENT_PAIRS: Dict[OrderStatus, FrozenSet[PaymentStatus]] = {
    OrderStatus.PENDING: frozenset({PaymentStatus.PENDING, PaymentStatus.FAILED, PaymentStatus.PAID}),
    OrderStatus.PROCESSING: frozenset({PaymentStatus.PENDING, PaymentStatus.PAID}),
    OrderStatus.SHIPPED: frozenset({PaymentStatus.PENDING, PaymentStatus.PAID}),
    OrderStatus.DELIVERED: frozenset({PaymentStatus.PENDING, PaymentStatus.PAID}),
    OrderStatus.CANCELLED: frozenset({PaymentStatus.REFUNDED}),
    OrderStatus.REFUNDED: frozenset({PaymentStatus.REFUNDED}),
}

TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED})

CANCELLABLE_STATUSES: FrozenSet[OrderStatus] = frozenset(set(OrderStatus) - TERMINAL_STATUSES)

STOCK_HOLDING_STATUSES: FrozenSet[OrderStatus] = frozenset({
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
})

REFUNDABLE_STATUSES: FrozenSet[OrderStatus] = frozenset({OrderStatus.SHIPPED, OrderStatus.DELIVERED})


def can_transition(source: OrderStatus, target: OrderStatus) -> bool:
    """Check the allowed-transition table."""
    return target in ALLOWED_TRANSITIONS[source]


def is_valid_payment_pair(status: OrderStatus, payment_status: PaymentStatus) -> bool:
    """Check that an order status and payment status may coexist."""
    return payment_status in VALID_PAYMENT_PAIRS[status]
