"""Database models."""

from .alert_model import OperatorAlertModel
from .base import Base
from .coupon_model import CouponModel
from .order_model import OrderItemModel, OrderModel
from .return_model import ReturnRequestModel
from .stock_model import StockEntryModel
from .transaction_model import TransactionModel

__all__ = [
    "Base",
    "CouponModel",
    "OperatorAlertModel",
    "OrderItemModel",
    "OrderModel",
    "ReturnRequestModel",
    "StockEntryModel",
    "TransactionModel",
]
