"""Webhook queue backends."""
from .memory_webhook_queue import InMemoryWebhookQueue
from .redis_webhook_queue import RedisStreamWebhookQueue

__all__ = ["InMemoryWebhookQueue", "RedisStreamWebhookQueue"]
