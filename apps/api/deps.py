"""FastAPI dependencies for dependency injection."""

from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends

from fulfillment.application.services import (
    AlertService,
    CouponEngine,
    OrderApplicationService,
    PaymentService,
    ReturnService,
    StockLedger,
    TransactionLog,
)
from fulfillment.container import ServiceContainer

load_dotenv()

_container: Optional[ServiceContainer] = None


def set_container(container: Optional[ServiceContainer]) -> None:
    """Install the process-wide container (done by the app lifespan)."""
    global _container
    _container = container


def get_container() -> ServiceContainer:
    """Get the service container.

    Returns:
        ServiceContainer instance
    """
    if _container is None:
        raise RuntimeError("Service container is not initialized; start the application first.")
    return _container


def get_order_service(container: ServiceContainer = Depends(get_container)) -> OrderApplicationService:
    return container.orders


def get_payment_service(container: ServiceContainer = Depends(get_container)) -> PaymentService:
    return container.payments


def get_transaction_log(container: ServiceContainer = Depends(get_container)) -> TransactionLog:
    return container.transaction_log


def get_coupon_engine(container: ServiceContainer = Depends(get_container)) -> CouponEngine:
    return container.coupons


def get_stock_ledger(container: ServiceContainer = Depends(get_container)) -> StockLedger:
    return container.stock_ledger


def get_alert_service(container: ServiceContainer = Depends(get_container)) -> AlertService:
    return container.alerts


def get_return_service(container: ServiceContainer = Depends(get_container)) -> ReturnService:
    return container.returns
