"""In-process webhook queue for development and tests."""
import asyncio
import itertools
import logging
from typing import Dict, List

from fulfillment.application.interfaces import GatewayEvent, IWebhookQueue, QueuedWebhook

logger = logging.getLogger(__name__)


class InMemoryWebhookQueue(IWebhookQueue):
    """
    asyncio.Queue backed webhook queue.

    Not durable across restarts; unacknowledged messages are tracked so
    `pending_count` reflects in-flight work.
    """

    def __init__(self):
        self._queue: asyncio.Queue[QueuedWebhook] = asyncio.Queue()
        self._ids = itertools.count(1)
        self._unacked: Dict[str, QueuedWebhook] = {}

    @property
    def pending_count(self) -> int:
        return self._queue.qsize() + len(self._unacked)

    async def enqueue(self, event: GatewayEvent) -> str:
        message_id = f"mem-{next(self._ids)}"
        await self._queue.put(QueuedWebhook(message_id=message_id, event=event))
        logger.info(f"Queued {event.gateway} webhook {event.event_type.value} as {message_id}")
        return message_id

    async def receive(self, batch_size: int = 10, block_ms: int = 1000) -> List[QueuedWebhook]:
        messages: List[QueuedWebhook] = []
        if self._queue.empty():
            try:
                messages.append(await asyncio.wait_for(self._queue.get(), timeout=block_ms / 1000))
            except asyncio.TimeoutError:
                return []
        while len(messages) < batch_size and not self._queue.empty():
            messages.append(self._queue.get_nowait())
        for message in messages:
            self._unacked[message.message_id] = message
        return messages

    async def ack(self, message_id: str) -> None:
        self._unacked.pop(message_id, None)

    async def retry_later(self, message: QueuedWebhook) -> None:
        self._unacked.pop(message.message_id, None)
        await self._queue.put(
            QueuedWebhook(
                message_id=message.message_id,
                event=message.event,
                deliveries=message.deliveries + 1,
            )
        )
