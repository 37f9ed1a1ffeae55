"""
Redis Streams webhook queue.

Verified gateway events are appended to a stream and read through a
consumer group; a message is acknowledged only after the worker handled
it, so a crashed worker leaves it pending for redelivery.
"""
import json
import logging
from typing import List, Optional

import redis.asyncio as aioredis

from fulfillment.application.interfaces import GatewayEvent, IWebhookQueue, QueuedWebhook
from fulfillment.settings.modules.queue_settings import QueueSettings

logger = logging.getLogger(__name__)


class RedisStreamWebhookQueue(IWebhookQueue):
    """
    Webhook queue on Redis Streams.

    Stream: fulfillment:webhooks:stream
    Consumer Group: fulfillment:webhooks:consumers
    Message format: {"event": <GatewayEvent JSON>, "deliveries": "<n>"}
    """

    def __init__(self, settings: QueueSettings):
        """
        Initialize Redis stream queue.

        Args:
            settings: Queue settings (URL, stream, group, consumer name)
        """
        self.redis_url = settings.redis_url
        self.stream_name = settings.stream_name
        self.consumer_group = settings.consumer_group
        self.consumer_name = settings.consumer_name
        self._redis_client: Optional[aioredis.Redis] = None

    async def connect(self) -> aioredis.Redis:
        """Establish Redis connection and create consumer group."""
        if self._redis_client is not None:
            return self._redis_client

        client = aioredis.from_url(self.redis_url, encoding="utf-8", decode_responses=True)
        try:
            await client.ping()
            logger.info(f"Connected to Redis: {self.redis_url}")
            try:
                await client.xgroup_create(
                    name=self.stream_name,
                    groupname=self.consumer_group,
                    id="0",
                    mkstream=True,
                )
                logger.info(f"Created consumer group: {self.consumer_group}")
            except aioredis.ResponseError as e:
                if "BUSYGROUP" not in str(e):
                    raise
                logger.info(f"Consumer group {self.consumer_group} already exists")
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            await client.aclose()
            raise

        self._redis_client = client
        return client

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis_client:
            await self._redis_client.aclose()
            self._redis_client = None
            logger.info("Disconnected from Redis")

    async def enqueue(self, event: GatewayEvent) -> str:
        return await self._add(event, deliveries=1)

    async def _add(self, event: GatewayEvent, deliveries: int) -> str:
        client = await self.connect()
        message = {"event": json.dumps(event.to_dict()), "deliveries": str(deliveries)}
        msg_id = await client.xadd(self.stream_name, message, maxlen=100000, approximate=True)
        logger.info(
            f"Queued {event.gateway} webhook {event.event_type.value} "
            f"(delivery {deliveries}) as {msg_id}"
        )
        return msg_id

    async def receive(self, batch_size: int = 10, block_ms: int = 1000) -> List[QueuedWebhook]:
        client = await self.connect()
        # Reclaim this consumer's own unacknowledged messages first (after a crash).
        response = await client.xreadgroup(
            groupname=self.consumer_group,
            consumername=self.consumer_name,
            streams={self.stream_name: "0"},
            count=batch_size,
        )
        if not self._has_messages(response):
            response = await client.xreadgroup(
                groupname=self.consumer_group,
                consumername=self.consumer_name,
                streams={self.stream_name: ">"},
                count=batch_size,
                block=block_ms,
            )

        result: List[QueuedWebhook] = []
        for _stream, stream_messages in response or []:
            for msg_id, msg_data in stream_messages:
                if not msg_data:
                    continue
                result.append(
                    QueuedWebhook(
                        message_id=msg_id,
                        event=GatewayEvent.from_dict(json.loads(msg_data["event"])),
                        deliveries=int(msg_data.get("deliveries", "1")),
                    )
                )
        return result

    @staticmethod
    def _has_messages(response) -> bool:
        return any(messages for _stream, messages in response or [])

    async def ack(self, message_id: str) -> None:
        client = await self.connect()
        await client.xack(self.stream_name, self.consumer_group, message_id)
        logger.debug(f"Acknowledged message: {message_id}")

    async def retry_later(self, message: QueuedWebhook) -> None:
        await self._add(message.event, deliveries=message.deliveries + 1)
        await self.ack(message.message_id)
