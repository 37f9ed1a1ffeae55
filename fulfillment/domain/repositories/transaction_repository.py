"""Repository interface for payment transactions."""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from ..entities.transaction import Transaction
from ..enums import TransactionStatus


class TransactionRepository(ABC):
    """Append-only payment transaction log."""

    @abstractmethod
    async def add(self, transaction: Transaction) -> Transaction:
        """Append a transaction record and return it with its id."""
        pass

    @abstractmethod
    async def find_by_id(self, transaction_id: int) -> Optional[Transaction]:
        pass

    @abstractmethod
    async def find_by_gateway_id(self, gateway_transaction_id: str) -> Optional[Transaction]:
        """Look up a transaction by its (encrypted) gateway identifier."""
        pass

    @abstractmethod
    async def find_by_order(
        self, order_number: str, status: Optional[TransactionStatus] = None
    ) -> List[Transaction]:
        """All transactions of an order, oldest first."""
        pass

    @abstractmethod
    async def attach_gateway_id(
        self,
        transaction_id: int,
        gateway: str,
        gateway_transaction_id: str,
        receipt_url: Optional[str],
        metadata: Dict[str, Any],
    ) -> bool:
        """Set the gateway identifier on a placeholder that has none yet."""
        pass

    @abstractmethod
    async def transition_status(
        self,
        transaction_id: int,
        target: TransactionStatus,
        sources: Iterable[TransactionStatus],
    ) -> bool:
        """Compare-and-set the status.

        Returns:
            True if the transaction was in one of `sources` and now is `target`
        """
        pass

    @abstractmethod
    async def add_refund(self, transaction_id: int, amount: Decimal) -> bool:
        """Increment the refunded accumulator within the captured amount."""
        pass

    @abstractmethod
    async def total_refunded(self, order_number: str) -> Decimal:
        """Sum of refunded amounts across an order's transactions."""
        pass
