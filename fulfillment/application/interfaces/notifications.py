"""Notification service port."""
from abc import ABC, abstractmethod
from typing import Any, Dict


class INotificationService(ABC):
    """
    Interface for notification service operations.

    Delivery is fire-and-forget: implementations log failures and never
    raise into the caller, so a notification can never undo a committed
    state change.
    """

    @abstractmethod
    async def notify(self, recipient: str, event_type: str, payload: Dict[str, Any]) -> None:
        """
        Send a notification.

        Args:
            recipient: Customer id or operator channel
            event_type: Notification template key (e.g. order_confirmation)
            payload: Template data
        """
        pass
