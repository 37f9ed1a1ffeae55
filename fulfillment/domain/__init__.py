"""Domain layer - pure domain models and interfaces."""

from .entities import Coupon, Order, OrderItem, Transaction
from .enums import OrderStatus, PaymentMethod, PaymentStatus, TransactionStatus
from .value_objects import Address, ExecutionID, Money, OrderNumber

__all__ = [
    "Address",
    "Coupon",
    "ExecutionID",
    "Money",
    "Order",
    "OrderItem",
    "OrderNumber",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "Transaction",
    "TransactionStatus",
]
