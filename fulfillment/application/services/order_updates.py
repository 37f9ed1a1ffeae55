"""Optimistic (version compare-and-set) updates of the Order aggregate."""

import logging
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from fulfillment.data.uow import create_uow
from fulfillment.domain.entities.order import Order
from fulfillment.domain.errors import InvalidTransition, OrderNotFound
from fulfillment.domain.event_bus import EventBus

logger = logging.getLogger(__name__)

MAX_CAS_ATTEMPTS = 5

# Returns False when the mutation turned out to be a no-op.
OrderMutation = Callable[[Order], Optional[bool]]


class OrderUpdater:
    """
    Load, mutate and write an order under `WHERE version = :expected`.

    On a version conflict the order is reloaded and the mutation is
    re-validated against the fresh state, a bounded number of times.
    Domain events are published only after the write committed.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        event_bus: EventBus,
        max_attempts: int = MAX_CAS_ATTEMPTS,
    ) -> None:
        self._session_factory = session_factory
        self._event_bus = event_bus
        self._max_attempts = max_attempts

    async def load(self, order_number: str) -> Order:
        """Read an order.

        Raises:
            OrderNotFound: No such order
        """
        async with create_uow(self._session_factory) as uow:
            order = await uow.orders.find_by_number(order_number)
        if order is None:
            raise OrderNotFound(order_number)
        return order

    async def apply(self, order_number: str, mutate: OrderMutation) -> Order:
        """Apply `mutate` to the latest version of the order.

        Args:
            order_number: Order to change
            mutate: Callable changing the aggregate in place; domain errors
                it raises propagate unchanged

        Returns:
            The order as written (or as read, for a no-op)

        Raises:
            OrderNotFound: No such order
            InvalidTransition: Conflicts persisted beyond the retry budget
        """
        for attempt in range(1, self._max_attempts + 1):
            async with create_uow(self._session_factory) as uow:
                order = await uow.orders.find_by_number(order_number)
                if order is None:
                    raise OrderNotFound(order_number)

                expected_version = order.version
                if mutate(order) is False:
                    return order

                if await uow.orders.compare_and_set(order, expected_version):
                    await uow.commit()
                    await self._publish(order)
                    return order

            logger.info(
                f"Version conflict on order {order_number} "
                f"(attempt {attempt}/{self._max_attempts}), reloading"
            )

        raise InvalidTransition(
            f"Order {order_number} was modified concurrently; please retry."
        )

    async def _publish(self, order: Order) -> None:
        events = order.get_domain_events()
        order.clear_domain_events()
        if events:
            await self._event_bus.publish_all(events)
