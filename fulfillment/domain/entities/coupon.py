"""Coupon entity."""
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from ..enums import DiscountType
from ..errors import CouponExhausted, CouponExpired, CouponInvalid, ValidationError
from ..value_objects import Money, quantize_amount

MAX_CODE_LENGTH = 15
REVISABLE_FIELDS = frozenset({"discount_type", "discount_value", "max_uses", "expires_at"})


def normalize_code(code: str) -> str:
    return code.strip().upper()


@dataclass
class Coupon:
    """Discount code with an optional usage cap and expiration."""
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    max_uses: Optional[int] = None
    used_count: int = 0
    is_active: bool = True
    expires_at: Optional[datetime] = None
    id: Optional[int] = None

    def __post_init__(self):
        self.code = normalize_code(self.code)
        if not self.code or len(self.code) > MAX_CODE_LENGTH:
            raise ValidationError(
                f"Coupon code must be 1 to {MAX_CODE_LENGTH} characters."
            )
        self._check_terms()

    def _check_terms(self) -> None:
        if not isinstance(self.discount_value, Decimal):
            self.discount_value = Decimal(str(self.discount_value))
        if self.discount_value < 0:
            raise ValidationError("Coupon discount cannot be negative.")
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValidationError("Percentage discount cannot exceed 100.")
        if self.max_uses is not None and self.max_uses < 1:
            raise ValidationError("Coupon max uses must be at least 1.")

    def revise(self, **changes: Any) -> None:
        """
        Change the discount terms of an existing coupon.

        Accepts discount_type, discount_value, max_uses and expires_at. The
        usage counter is never edited; a cap below it is rejected.
        """
        unknown = set(changes) - REVISABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot change coupon field(s): {', '.join(sorted(unknown))}")
        for name, value in changes.items():
            setattr(self, name, value)
        self._check_terms()
        if self.max_uses is not None and self.max_uses < self.used_count:
            raise ValidationError(
                f"Coupon max uses cannot be below its {self.used_count} recorded uses."
            )
        if self.is_exhausted:
            self.is_active = False

    def activate(self) -> None:
        if self.is_exhausted:
            raise CouponExhausted("Coupon has reached its maximum number of uses")
        self.is_active = True

    def deactivate(self) -> None:
        self.is_active = False

    @property
    def is_exhausted(self) -> bool:
        return self.max_uses is not None and self.used_count >= self.max_uses

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= now

    def ensure_usable(self, now: Optional[datetime] = None) -> None:
        """
        Raise the specific coupon error if this coupon cannot be applied.

        Exhaustion is checked before the active flag because reaching the
        cap deactivates the coupon.
        """
        if self.is_exhausted:
            raise CouponExhausted("Coupon has reached its maximum number of uses")
        if not self.is_active:
            raise CouponInvalid("Coupon is not active")
        if self.is_expired(now):
            raise CouponExpired("Coupon has expired")

    def discount_for(self, subtotal: Money) -> Money:
        """
        Compute the discount for a subtotal.

        The result is rounded to cents and never exceeds the subtotal.
        """
        if self.discount_type == DiscountType.PERCENTAGE:
            raw = subtotal.amount * self.discount_value / Decimal("100")
        else:
            raw = self.discount_value
        amount = min(quantize_amount(raw), quantize_amount(subtotal.amount))
        return Money(amount=amount, currency=subtotal.currency)
