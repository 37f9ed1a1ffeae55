from __future__ import annotations

from typing import Literal

from pydantic import Field

from fulfillment.settings.base import FulfillmentBaseSettings


class QueueSettings(FulfillmentBaseSettings):
    """
    Webhook event queue settings.
    `memory` keeps events in-process (development, tests); `redis` uses a stream.
    """

    backend: Literal["memory", "redis"] = Field("memory", alias="WEBHOOK_QUEUE_BACKEND")
    redis_url: str = Field("redis://localhost:6379/0", alias="REDIS_URL")
    stream_name: str = Field("fulfillment:webhooks:stream", alias="WEBHOOK_STREAM")
    consumer_group: str = Field("fulfillment:webhooks:consumers", alias="WEBHOOK_CONSUMER_GROUP")
    consumer_name: str = Field("webhook-worker-1", alias="WEBHOOK_CONSUMER_NAME")
    max_deliveries: int = Field(5, alias="WEBHOOK_MAX_DELIVERIES")
