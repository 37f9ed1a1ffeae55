"""Domain enums."""
from .order_status import (
    CANCELLABLE_STATUSES,
    STOCK_HOLDING_STATUSES,
    TERMINAL_STATUSES,
    DiscountType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ReturnStatus,
    TransactionStatus,
    can_transition,
    is_valid_payment_pair,
)

__all__ = [
    "CANCELLABLE_STATUSES",
    "STOCK_HOLDING_STATUSES",
    "TERMINAL_STATUSES",
    "DiscountType",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "ReturnStatus",
    "TransactionStatus",
    "can_transition",
    "is_valid_payment_pair",
]
