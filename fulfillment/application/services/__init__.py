"""Application services."""
from .alert_service import AlertService
from .compensation import CompensationScheduler
from .coupon_engine import CouponEngine
from .notification_dispatcher import NotificationDispatcher
from .order_acceptance import OrderAcceptance
from .order_service import OrderApplicationService
from .order_updates import OrderUpdater
from .payment_service import PaymentService
from .refund_processor import RefundProcessor
from .return_service import ReturnService
from .stock_ledger import StockLedger
from .transaction_log import TransactionLog
from .webhook_reconciler import ReconcileOutcome, WebhookReconciler
from .webhook_worker import WebhookWorker

__all__ = [
    "AlertService",
    "CompensationScheduler",
    "CouponEngine",
    "NotificationDispatcher",
    "OrderAcceptance",
    "OrderApplicationService",
    "OrderUpdater",
    "PaymentService",
    "ReconcileOutcome",
    "RefundProcessor",
    "ReturnService",
    "StockLedger",
    "TransactionLog",
    "WebhookReconciler",
    "WebhookWorker",
]
