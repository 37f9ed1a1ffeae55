"""Domain value objects."""

from .value_objects import Address, ExecutionID, Money, quantize_amount
from .order_number import OrderNumber

__all__ = [
    "Address",
    "ExecutionID",
    "Money",
    "OrderNumber",
    "quantize_amount",
]
