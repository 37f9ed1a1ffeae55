"""Domain value objects - pure Python immutable types."""

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

CENT = Decimal("0.01")


def quantize_amount(amount: Decimal) -> Decimal:
    """Round a monetary amount to cents (half-up)."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Money:
    """
    Immutable monetary value with currency.

    CRITICAL: Always use Decimal, never float!
    """
    amount: Decimal
    currency: str = "USD"

    def __post_init__(self):
        # Convert to Decimal if needed
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))

        # Validate currency code (3 letters)
        if not isinstance(self.currency, str) or len(self.currency) != 3:
            raise ValueError(
                f"Currency must be 3-letter ISO code, got: {self.currency}"
            )

    @classmethod
    def zero(cls, currency: str = "USD") -> "Money":
        return cls(amount=Decimal("0.00"), currency=currency)

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"

    def __add__(self, other: 'Money') -> 'Money':
        """Add two Money objects (must have same currency)."""
        self._check_currency(other, "add")
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        """Subtract two Money objects (must have same currency)."""
        self._check_currency(other, "subtract")
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def times(self, quantity: int) -> 'Money':
        """Multiply by an item quantity."""
        return Money(amount=self.amount * quantity, currency=self.currency)

    def quantized(self) -> 'Money':
        return Money(amount=quantize_amount(self.amount), currency=self.currency)

    def is_negative(self) -> bool:
        """Check if amount is negative."""
        return self.amount < 0

    def is_zero(self) -> bool:
        """Check if amount is zero."""
        return self.amount == 0

    def _check_currency(self, other: 'Money', operation: str) -> None:
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot {operation} different currencies: {self.currency} vs {other.currency}"
            )


@dataclass(frozen=True)
class Address:
    """Address snapshot copied onto an order at checkout."""

    full_name: str
    line1: str
    city: str
    postal_code: str
    country: str
    line2: Optional[str] = None
    state: Optional[str] = None
    phone: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Address":
        return cls(**data)


@dataclass(frozen=True)
class ExecutionID:
    """Unique identifier for request and job tracing."""

    value: UUID

    @classmethod
    def generate(cls) -> "ExecutionID":
        """Generate a new ExecutionID."""
        return cls(value=uuid4())

    def __str__(self) -> str:
        """Return string representation."""
        return str(self.value)
