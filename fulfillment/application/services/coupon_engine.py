"""Coupon engine - validation, discount computation and redemption."""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from fulfillment.application.dtos.coupon_dto import (
    CouponDTO,
    CreateCouponRequest,
    UpdateCouponRequest,
)
from fulfillment.data.uow import UnitOfWork, create_uow
from fulfillment.domain.entities.coupon import Coupon, normalize_code
from fulfillment.domain.errors import (
    CouponExhausted,
    CouponInvalid,
    CouponNotFound,
    ValidationError,
)
from fulfillment.domain.value_objects import Money

logger = logging.getLogger(__name__)

MAX_UPDATE_ATTEMPTS = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CouponEngine:
    """
    Coupon lookups, discount maths and the usage counter.

    Redemption happens only inside the unit of work that inserts the
    order, so a failed checkout never consumes a use.
    """

    def __init__(self, session_factory: async_sessionmaker) -> None:
        self._session_factory = session_factory

    async def validate(self, code: str, now: Optional[datetime] = None) -> Coupon:
        """Return a usable coupon.

        Raises:
            CouponInvalid: Unknown or inactive code
            CouponExpired: Past its expiration date
            CouponExhausted: Usage cap reached
        """
        async with create_uow(self._session_factory) as uow:
            coupon = await uow.coupons.find_by_code(code)
        if coupon is None:
            raise CouponInvalid("Invalid coupon code")
        coupon.ensure_usable(now or _utcnow())
        return coupon

    def apply(self, coupon: Coupon, subtotal: Money) -> Money:
        """Discount for a subtotal, rounded half-up to cents and capped at the subtotal."""
        return coupon.discount_for(subtotal)

    async def redeem(self, uow: UnitOfWork, code: str, now: Optional[datetime] = None) -> None:
        """Consume one use inside the caller's unit of work.

        Raises:
            CouponExhausted / CouponExpired / CouponInvalid: A concurrent
                redemption or the clock won the race
        """
        now = now or _utcnow()
        if await uow.coupons.redeem(code, now):
            return

        coupon = await uow.coupons.find_by_code(code)
        if coupon is None:
            raise CouponInvalid("Invalid coupon code")
        coupon.ensure_usable(now)
        raise CouponExhausted("Coupon has reached its maximum number of uses")

    async def create_coupon(self, request: CreateCouponRequest) -> CouponDTO:
        coupon = Coupon(
            code=request.code,
            discount_type=request.discount_type,
            discount_value=request.discount_value,
            max_uses=request.max_uses,
            is_active=request.is_active,
            expires_at=request.expires_at,
        )
        async with create_uow(self._session_factory) as uow:
            if await uow.coupons.find_by_code(coupon.code) is not None:
                raise ValidationError("Coupon code already exists")
            try:
                await uow.coupons.add(coupon)
                await uow.commit()
            except IntegrityError as e:
                raise ValidationError("Coupon code already exists") from e

        logger.info(f"Created coupon {coupon.code} ({coupon.discount_type.value} {coupon.discount_value})")
        return CouponDTO.from_coupon(coupon)

    async def get_coupon(self, code: str) -> CouponDTO:
        async with create_uow(self._session_factory) as uow:
            coupon = await uow.coupons.find_by_code(code)
        if coupon is None:
            raise CouponNotFound(normalize_code(code))
        return CouponDTO.from_coupon(coupon)

    async def list_coupons(self, active_only: bool = False) -> List[CouponDTO]:
        async with create_uow(self._session_factory) as uow:
            coupons = await uow.coupons.find_all(active_only=active_only)
        return [CouponDTO.from_coupon(coupon) for coupon in coupons]

    async def update_coupon(self, code: str, request: UpdateCouponRequest) -> CouponDTO:
        """Change discount terms; fields missing from the request keep their value.

        Raises:
            CouponNotFound: Unknown code
            ValidationError: New terms are invalid or below recorded uses
        """
        changes = request.changes()
        coupon = await self._modify(code, lambda coupon: coupon.revise(**changes))
        logger.info(f"Updated coupon {coupon.code}: {', '.join(sorted(changes)) or 'no changes'}")
        return CouponDTO.from_coupon(coupon)

    async def set_active(self, code: str, active: bool) -> CouponDTO:
        """Activate or deactivate a coupon.

        Raises:
            CouponNotFound: Unknown code
            CouponExhausted: Activating a coupon whose cap is reached
        """
        coupon = await self._modify(
            code, (lambda coupon: coupon.activate()) if active else (lambda coupon: coupon.deactivate())
        )
        logger.info(f"Coupon {coupon.code} {'activated' if active else 'deactivated'}")
        return CouponDTO.from_coupon(coupon)

    async def _modify(self, code: str, change: Callable[[Coupon], None]) -> Coupon:
        # Redemptions only touch used_count/is_active; retry if one lands in between.
        for _ in range(MAX_UPDATE_ATTEMPTS):
            async with create_uow(self._session_factory) as uow:
                coupon = await uow.coupons.find_by_code(code)
                if coupon is None:
                    raise CouponNotFound(normalize_code(code))
                loaded_uses = coupon.used_count
                change(coupon)
                if await uow.coupons.update_terms(coupon, loaded_uses):
                    await uow.commit()
                    return coupon
        raise ValidationError(f"Coupon {normalize_code(code)} is being redeemed; try again.")
