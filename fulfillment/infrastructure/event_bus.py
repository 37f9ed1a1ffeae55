"""
Event Bus Implementation (Infrastructure Layer).

Notifies subscribers of domain events after the state change committed.
"""
import asyncio
import logging
from typing import Callable, List

from fulfillment.domain.event_bus import EventBus
from fulfillment.domain.events.base import DomainEvent

logger = logging.getLogger(__name__)


class InMemoryEventBus(EventBus):
    """
    In-Memory Event Bus Implementation.

    Subscribers run in registration order. A failing subscriber is logged
    and skipped; it never propagates into the publisher.
    """

    def __init__(self):
        """Initialize event bus with subscribers."""
        self._subscribers: List[Callable[[DomainEvent], None]] = []

    async def publish(self, event: DomainEvent) -> None:
        """
        Publish a single domain event.

        Args:
            event: Domain event to publish
        """
        logger.info(f"Publishing event: {event.event_type} (aggregate: {event.aggregate_id})")
        await self._notify_subscribers(event)

    async def publish_all(self, events: List[DomainEvent]) -> None:
        """
        Publish multiple domain events in order.

        Args:
            events: List of domain events to publish
        """
        for event in events:
            await self.publish(event)

    def subscribe(self, handler: Callable[[DomainEvent], None]) -> None:
        """
        Subscribe to all domain events.

        Args:
            handler: Callback function that receives events
        """
        if handler not in self._subscribers:
            self._subscribers.append(handler)
        logger.info(f"Registered event subscriber: {getattr(handler, '__name__', handler)}")

    def unsubscribe(self, handler: Callable[[DomainEvent], None]) -> None:
        """
        Unsubscribe from domain events.

        Args:
            handler: Callback function to remove
        """
        if handler in self._subscribers:
            self._subscribers.remove(handler)

    async def _notify_subscribers(self, event: DomainEvent) -> None:
        """Notify all subscribers about an event."""
        for subscriber in list(self._subscribers):
            try:
                if asyncio.iscoroutinefunction(subscriber):
                    await subscriber(event)
                else:
                    result = subscriber(event)
                    if asyncio.iscoroutine(result):
                        await result
            except Exception as e:
                logger.error(
                    f"Subscriber {getattr(subscriber, '__name__', subscriber)} failed: {e}",
                    exc_info=True,
                )
