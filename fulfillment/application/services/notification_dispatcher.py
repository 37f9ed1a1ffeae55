"""Turns committed domain events into customer notifications."""

import logging
from typing import Dict, Optional

from fulfillment.application.interfaces import INotificationService
from fulfillment.domain.events.base import DomainEvent
from fulfillment.domain.events.order_events import OrderStatusChangedEvent

logger = logging.getLogger(__name__)

EVENT_NOTIFICATIONS: Dict[str, str] = {
    "OrderCreatedEvent": "order_confirmation",
    "OrderCancelledEvent": "order_cancelled",
    "PaymentConfirmedEvent": "payment_confirmed",
    "PaymentFailedEvent": "payment_failed",
    "RefundIssuedEvent": "refund_issued",
}

STATUS_NOTIFICATIONS: Dict[str, str] = {
    "processing": "order_accepted",
    "shipped": "order_shipped",
    "delivered": "order_delivered",
}


class NotificationDispatcher:
    """Event bus subscriber; delivery failures are left to the notifier to log."""

    def __init__(self, notifier: INotificationService) -> None:
        self._notifier = notifier

    async def __call__(self, event: DomainEvent) -> None:
        notification = self.notification_for(event)
        if notification is None:
            return

        recipient = getattr(event, "customer_id", "") or event.aggregate_id
        payload = event.to_dict()["data"]
        payload["order_number"] = event.aggregate_id
        await self._notifier.notify(recipient, notification, payload)

    @staticmethod
    def notification_for(event: DomainEvent) -> Optional[str]:
        if isinstance(event, OrderStatusChangedEvent):
            return STATUS_NOTIFICATIONS.get(event.new_status)
        return EVENT_NOTIFICATIONS.get(event.event_type)
