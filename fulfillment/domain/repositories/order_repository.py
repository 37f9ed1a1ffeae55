"""Repository interface for the Order aggregate."""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from ..entities.order import Order
from ..enums import OrderStatus


class OrderRepository(ABC):
    """Abstract repository for Order aggregate persistence."""

    @abstractmethod
    async def add(self, order: Order) -> None:
        """Insert a newly placed order.

        Args:
            order: Order aggregate to persist
        """
        pass

    @abstractmethod
    async def find_by_number(self, order_number: str) -> Optional[Order]:
        """Retrieve order by order number.

        Args:
            order_number: Order number string

        Returns:
            Order if found, None otherwise
        """
        pass

    @abstractmethod
    async def find_all(
        self,
        status: Optional[OrderStatus] = None,
        customer_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> List[Order]:
        """List orders newest first with optional filters."""
        pass

    @abstractmethod
    async def count(
        self,
        status: Optional[OrderStatus] = None,
        customer_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> int:
        """Count orders matching the same filters as find_all."""
        pass

    @abstractmethod
    async def compare_and_set(self, order: Order, expected_version: int) -> bool:
        """Write the order's mutable state if its stored version still matches.

        Args:
            order: Order carrying the new state
            expected_version: Version the caller read

        Returns:
            True if the write applied, False if another writer got there first
        """
        pass

    @abstractmethod
    async def reserve_refund(self, order_number: str, amount: Decimal) -> bool:
        """Atomically add to total_refunded while it stays within the total.

        Returns:
            True if the amount was reserved
        """
        pass

    @abstractmethod
    async def release_refund(self, order_number: str, amount: Decimal) -> None:
        """Undo a refund reservation after a gateway failure."""
        pass
