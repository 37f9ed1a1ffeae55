"""Repository implementations."""

from .alert_repository_impl import SqlAlchemyAlertRepository
from .coupon_repository_impl import SqlAlchemyCouponRepository
from .order_repository_impl import SqlAlchemyOrderRepository
from .return_repository_impl import SqlAlchemyReturnRepository
from .stock_repository_impl import SqlAlchemyStockRepository
from .transaction_repository_impl import SqlAlchemyTransactionRepository

__all__ = [
    "SqlAlchemyAlertRepository",
    "SqlAlchemyCouponRepository",
    "SqlAlchemyOrderRepository",
    "SqlAlchemyReturnRepository",
    "SqlAlchemyStockRepository",
    "SqlAlchemyTransactionRepository",
]
