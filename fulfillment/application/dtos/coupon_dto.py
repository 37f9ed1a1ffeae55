"""Application DTOs for coupons."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from fulfillment.domain.entities.coupon import MAX_CODE_LENGTH, Coupon
from fulfillment.domain.enums import DiscountType


class CreateCouponRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=MAX_CODE_LENGTH)
    discount_type: DiscountType
    discount_value: Decimal = Field(..., ge=0)
    max_uses: Optional[int] = Field(None, ge=1, description="Null means unlimited")
    expires_at: Optional[datetime] = Field(None, description="Null means no expiry")
    is_active: bool = True

    model_config = {"frozen": True}


class CouponDTO(BaseModel):
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    max_uses: Optional[int] = None
    used_count: int
    is_active: bool
    expires_at: Optional[datetime] = None

    model_config = {"frozen": True}

    @classmethod
    def from_coupon(cls, coupon: Coupon) -> "CouponDTO":
        return cls(
            code=coupon.code,
            discount_type=coupon.discount_type,
            discount_value=coupon.discount_value,
            max_uses=coupon.max_uses,
            used_count=coupon.used_count,
            is_active=coupon.is_active,
            expires_at=coupon.expires_at,
        )


class UpdateCouponRequest(BaseModel):
    """Partial update; only the fields present in the request change."""

    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, ge=0)
    max_uses: Optional[int] = Field(None, ge=1, description="Send null to remove the cap")
    expires_at: Optional[datetime] = Field(None, description="Send null to remove the expiry")

    model_config = {"frozen": True}

    def changes(self) -> dict:
        changes = self.model_dump(include=self.model_fields_set)
        for required in ("discount_type", "discount_value"):
            if changes.get(required, ...) is None:
                changes.pop(required)
        return changes
