"""Application layer interfaces."""
from .catalog import ICatalogService, ProductSnapshot, VariantSnapshot
from .notifications import INotificationService
from .payment_gateway import (
    ChargeResult,
    ChargeStatus,
    GatewayEvent,
    GatewayEventType,
    IPaymentGateway,
    RefundResult,
)
from .webhook_queue import IWebhookQueue, QueuedWebhook

__all__ = [
    "ChargeResult",
    "ChargeStatus",
    "GatewayEvent",
    "GatewayEventType",
    "ICatalogService",
    "INotificationService",
    "IPaymentGateway",
    "IWebhookQueue",
    "ProductSnapshot",
    "QueuedWebhook",
    "RefundResult",
    "VariantSnapshot",
]
