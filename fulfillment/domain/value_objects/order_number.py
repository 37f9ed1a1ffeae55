"""Order number value object."""
import re
import secrets
import time
from dataclasses import dataclass

_ORDER_NUMBER_RE = re.compile(r"^ORD-\d{13}-\d{6}$")


@dataclass(frozen=True)
class OrderNumber:
    """
    Human-readable order identifier.

    Format: ORD-<epoch millis>-<6 random digits>
    Example: ORD-1735689600123-048213
    """
    value: str

    def __post_init__(self):
        if not self.value:
            raise ValueError("Order number cannot be empty")

        if not _ORDER_NUMBER_RE.match(self.value):
            raise ValueError(f"Invalid order number format: {self.value}")

    @classmethod
    def generate(cls) -> "OrderNumber":
        """Generate a new order number from the clock and a random suffix."""
        millis = int(time.time() * 1000)
        suffix = secrets.randbelow(1_000_000)
        return cls(value=f"ORD-{millis}-{suffix:06d}")

    def __str__(self) -> str:
        return self.value
