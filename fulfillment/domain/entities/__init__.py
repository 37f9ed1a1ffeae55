"""Domain entities."""
from .alert import OperatorAlert
from .coupon import Coupon, normalize_code
from .order import DEFAULT_CANCELLATION_REASON, Order, OrderItem
from .return_request import ReturnItem, ReturnRequest
from .transaction import Transaction, mask_identifier

__all__ = [
    "Coupon",
    "DEFAULT_CANCELLATION_REASON",
    "OperatorAlert",
    "Order",
    "OrderItem",
    "ReturnItem",
    "ReturnRequest",
    "Transaction",
    "mask_identifier",
    "normalize_code",
]
