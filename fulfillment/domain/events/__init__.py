"""Domain events published after commit."""
from .base import DomainEvent
from .order_events import (
    OrderCancelledEvent,
    OrderCreatedEvent,
    OrderEvent,
    OrderStatusChangedEvent,
    PaymentConfirmedEvent,
    PaymentFailedEvent,
    RefundIssuedEvent,
)

__all__ = [
    "DomainEvent",
    "OrderCancelledEvent",
    "OrderCreatedEvent",
    "OrderEvent",
    "OrderStatusChangedEvent",
    "PaymentConfirmedEvent",
    "PaymentFailedEvent",
    "RefundIssuedEvent",
]
