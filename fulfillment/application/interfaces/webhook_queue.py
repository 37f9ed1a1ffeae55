"""Webhook queue port."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

from .payment_gateway import GatewayEvent


@dataclass(frozen=True)
class QueuedWebhook:
    message_id: str
    event: GatewayEvent
    deliveries: int = 1


class IWebhookQueue(ABC):
    """
    Durable hand-off between the webhook endpoint and the worker.

    A message stays pending until acknowledged, so a worker crash leads
    to redelivery rather than loss.
    """

    @abstractmethod
    async def enqueue(self, event: GatewayEvent) -> str:
        """Queue a verified event and return its message id."""
        pass

    @abstractmethod
    async def receive(self, batch_size: int = 10, block_ms: int = 1000) -> List[QueuedWebhook]:
        pass

    @abstractmethod
    async def ack(self, message_id: str) -> None:
        pass

    @abstractmethod
    async def retry_later(self, message: QueuedWebhook) -> None:
        """Return an unacknowledged message for another delivery."""
        pass

    async def close(self) -> None:
        return None
