"""Payment gateway port and its result contract."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from fulfillment.domain.entities.order import Order
from fulfillment.domain.errors import ValidationError


class ChargeStatus(str, Enum):
    """Normalized outcome of a charge attempt."""

    SUCCEEDED = "succeeded"
    PENDING = "pending"
    FAILED = "failed"


class GatewayEventType(str, Enum):
    """Webhook outcomes the reconciler understands."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


@dataclass(frozen=True)
class ChargeResult:
    status: ChargeStatus
    gateway_transaction_id: Optional[str]
    receipt_url: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RefundResult:
    success: bool
    refund_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class GatewayEvent:
    """A verified, parsed webhook event."""

    gateway: str
    event_type: GatewayEventType
    gateway_transaction_id: str
    event_id: Optional[str] = None
    amount: Optional[Decimal] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gateway": self.gateway,
            "event_type": self.event_type.value,
            "gateway_transaction_id": self.gateway_transaction_id,
            "event_id": self.event_id,
            "amount": str(self.amount) if self.amount is not None else None,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GatewayEvent":
        amount = data.get("amount")
        return cls(
            gateway=data["gateway"],
            event_type=GatewayEventType(data["event_type"]),
            gateway_transaction_id=data["gateway_transaction_id"],
            event_id=data.get("event_id"),
            amount=Decimal(str(amount)) if amount is not None else None,
            metadata=dict(data.get("metadata") or {}),
        )


class IPaymentGateway(ABC):
    """
    Uniform contract over an external payment processor.

    Implementations never mutate orders or transactions; they only talk
    to the processor and normalize its answers.
    """

    name: str = "gateway"

    @property
    def supports_webhooks(self) -> bool:
        return True

    @abstractmethod
    async def charge(self, order: Order, payment_details: Dict[str, Any]) -> ChargeResult:
        """
        Start a charge for the order total.

        Raises:
            PaymentGatewayError: Transport or server failure after retries
        """
        pass

    @abstractmethod
    async def refund(
        self,
        gateway_transaction_id: str,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
    ) -> RefundResult:
        """
        Refund part or all of a captured payment.

        Raises:
            PaymentGatewayError: Transport or server failure after retries
        """
        pass

    async def confirm(
        self, gateway_transaction_id: str, confirmation: Dict[str, Any]
    ) -> ChargeResult:
        """
        Settle a charge the customer completed on the processor's own page.

        Raises:
            ValidationError: The gateway has no client confirmation step, or
                the confirmation does not belong to this charge
            PaymentGatewayError: Transport or server failure after retries
        """
        raise ValidationError(f"Gateway {self.name} does not take client confirmations.")

    @abstractmethod
    async def verify_signature(self, payload: bytes, headers: Mapping[str, str]) -> bool:
        pass

    @abstractmethod
    def parse_event(self, payload: bytes) -> Optional[GatewayEvent]:
        """Parse a verified payload; None for event types this service ignores."""
        pass
