"""
Order Domain Events.

Events raised by the Order aggregate during its lifecycle. They are
published after the owning unit of work commits and feed customer
notifications.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .base import DomainEvent


@dataclass
class OrderEvent(DomainEvent):
    """Common fields for events about a single order."""

    order_number: str = ""
    customer_id: str = ""

    def __post_init__(self):
        """Set aggregate_id to order_number."""
        if not self.aggregate_id and self.order_number:
            object.__setattr__(self, 'aggregate_id', self.order_number)
        super().__post_init__()


@dataclass
class OrderCreatedEvent(OrderEvent):
    """
    Order was placed at checkout.

    Consumers: order confirmation notification
    """

    total: Optional[Decimal] = None
    currency: str = ""
    coupon_code: Optional[str] = None


@dataclass
class OrderStatusChangedEvent(OrderEvent):
    """
    Order status changed.

    Consumers: accepted / shipped / delivered notifications
    """

    previous_status: str = ""
    new_status: str = ""
    reason: Optional[str] = None


@dataclass
class OrderCancelledEvent(OrderEvent):
    """Order was cancelled, with or without stock restoration."""

    reason: str = ""
    stock_restored: bool = False


@dataclass
class PaymentConfirmedEvent(OrderEvent):
    """Gateway confirmed payment for the order."""

    amount: Optional[Decimal] = None


@dataclass
class PaymentFailedEvent(OrderEvent):
    """Gateway reported a failed payment attempt."""


@dataclass
class RefundIssuedEvent(OrderEvent):
    """A partial or full refund was issued."""

    amount: Optional[Decimal] = None
    total_refunded: Optional[Decimal] = None
    fully_refunded: bool = False
