"""
Mock Notification Service Implementation.

Records notifications instead of sending them; used in development and tests.
"""
import logging
from typing import Any, Dict, List

from fulfillment.application.interfaces import INotificationService

logger = logging.getLogger(__name__)


class MockNotificationService(INotificationService):
    """
    Mock implementation of notification service.

    Logs notifications instead of actually sending them.
    """

    def __init__(self):
        """Initialize mock notification service."""
        self.notifications_sent: List[Dict[str, Any]] = []
        logger.info("MockNotificationService initialized (console logging)")

    async def notify(self, recipient: str, event_type: str, payload: Dict[str, Any]) -> None:
        self.notifications_sent.append(
            {"recipient": recipient, "event_type": event_type, "payload": dict(payload)}
        )
        logger.info(f"NOTIFICATION {event_type} -> {recipient}")

    def get_notifications(self, event_type: str = None) -> List[Dict[str, Any]]:
        """Get sent notifications, optionally filtered by type (for testing)."""
        if event_type is None:
            return list(self.notifications_sent)
        return [n for n in self.notifications_sent if n["event_type"] == event_type]

    def clear(self) -> None:
        """Clear notifications (for testing)."""
        self.notifications_sent.clear()
