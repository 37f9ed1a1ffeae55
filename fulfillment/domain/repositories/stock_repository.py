"""Repository interface for per-variant stock entries."""

from abc import ABC, abstractmethod
from typing import Optional


class StockRepository(ABC):
    """Storage primitives behind the stock ledger.

    Every mutation is a single conditional statement so concurrent
    callers on the same variant are serialized by the store.
    """

    @abstractmethod
    async def get_quantity(self, product_id: str, variant: str) -> Optional[int]:
        """Current quantity, or None if the variant has no entry."""
        pass

    @abstractmethod
    async def decrement_if_available(self, product_id: str, variant: str, quantity: int) -> bool:
        """Decrement only if the current quantity covers the request.

        Returns:
            True if the row was updated
        """
        pass

    @abstractmethod
    async def increment(self, product_id: str, variant: str, quantity: int) -> None:
        """Increment the quantity, creating the entry if needed."""
        pass
