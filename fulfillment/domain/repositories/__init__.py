"""Repository interfaces."""
from .alert_repository import AlertRepository
from .coupon_repository import CouponRepository
from .order_repository import OrderRepository
from .return_repository import ReturnRepository
from .stock_repository import StockRepository
from .transaction_repository import TransactionRepository

__all__ = [
    "AlertRepository",
    "CouponRepository",
    "OrderRepository",
    "ReturnRepository",
    "StockRepository",
    "TransactionRepository",
]
