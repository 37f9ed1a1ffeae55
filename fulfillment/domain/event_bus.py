"""
Event Bus Interface (Domain Layer).

Pure interface definition - no implementation details.
"""
from abc import ABC, abstractmethod
from typing import List

from .events.base import DomainEvent


class EventBus(ABC):
    """
    Event Bus Interface.

    Aggregates collect events; application services publish them after
    the unit of work commits. Subscribers (notifications) must never be
    able to undo the committed state change.
    """

    @abstractmethod
    async def publish(self, event: DomainEvent) -> None:
        """
        Publish a single domain event.

        Args:
            event: Domain event to publish
        """
        pass

    @abstractmethod
    async def publish_all(self, events: List[DomainEvent]) -> None:
        """
        Publish multiple domain events in order.

        Args:
            events: List of domain events to publish
        """
        pass
