"""Payment transaction entity."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from ..enums import PaymentMethod, TransactionStatus
from ..value_objects import Money

MASK = "****"

# Allowed status moves for a payment attempt.
_TRANSACTION_TRANSITIONS = {
    TransactionStatus.PENDING: {TransactionStatus.COMPLETED, TransactionStatus.FAILED},
    TransactionStatus.FAILED: {TransactionStatus.COMPLETED},
    TransactionStatus.COMPLETED: {TransactionStatus.REFUNDED},
    TransactionStatus.REFUNDED: set(),
}


def mask_identifier(value: Optional[str], visible: int = 4) -> Optional[str]:
    """Return the first few characters of a sensitive value followed by a mask."""
    if not value:
        return None
    return f"{value[:visible]}{MASK}"


@dataclass
class Transaction:
    """
    A single payment attempt against an order.

    The gateway identifier and receipt URL are sensitive. They are
    encrypted by the storage layer and only leave the service masked.
    """
    order_number: str
    payment_method: PaymentMethod
    amount: Money
    status: TransactionStatus = TransactionStatus.PENDING
    gateway: Optional[str] = None
    gateway_transaction_id: Optional[str] = None
    receipt_url: Optional[str] = None
    refunded_amount: Decimal = Decimal("0.00")
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def masked_gateway_transaction_id(self) -> Optional[str]:
        return mask_identifier(self.gateway_transaction_id)

    @property
    def masked_receipt_url(self) -> Optional[str]:
        return mask_identifier(self.receipt_url)

    @property
    def is_captured(self) -> bool:
        return self.status == TransactionStatus.COMPLETED and self.gateway_transaction_id is not None

    @property
    def remaining_amount(self) -> Decimal:
        return self.amount.amount - self.refunded_amount

    def can_move_to(self, target: TransactionStatus) -> bool:
        return target in _TRANSACTION_TRANSITIONS[self.status]

    @staticmethod
    def sources_for(target: TransactionStatus) -> set:
        """Statuses from which a transaction may move to `target`."""
        return {
            source
            for source, targets in _TRANSACTION_TRANSITIONS.items()
            if target in targets
        }

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)
