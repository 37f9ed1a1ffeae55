"""SQLAlchemy implementation of CouponRepository."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, case, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.domain.entities.coupon import Coupon, normalize_code
from fulfillment.domain.repositories.coupon_repository import CouponRepository

from ..mappers import CouponMapper, as_utc
from ..models.coupon_model import CouponModel


class SqlAlchemyCouponRepository(CouponRepository):

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, coupon: Coupon) -> Coupon:
        model = CouponMapper.to_persistence(coupon)
        self._session.add(model)
        await self._session.flush()
        coupon.id = model.id
        return coupon

    async def find_by_code(self, code: str) -> Optional[Coupon]:
        result = await self._session.execute(
            select(CouponModel)
            .where(CouponModel.code == normalize_code(code))
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return CouponMapper.to_domain(model) if model else None

    async def find_all(self, active_only: bool = False) -> List[Coupon]:
        statement = select(CouponModel).order_by(CouponModel.code)
        if active_only:
            statement = statement.where(CouponModel.is_active.is_(True))
        result = await self._session.execute(statement)
        return [CouponMapper.to_domain(model) for model in result.scalars().all()]

    async def update_terms(self, coupon: Coupon, expected_used_count: int) -> bool:
        result = await self._session.execute(
            update(CouponModel)
            .where(
                CouponModel.code == coupon.code,
                CouponModel.used_count == expected_used_count,
            )
            .values(
                discount_type=coupon.discount_type.value,
                discount_value=coupon.discount_value,
                max_uses=coupon.max_uses,
                expires_at=as_utc(coupon.expires_at),
                is_active=coupon.is_active,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def redeem(self, code: str, now: datetime) -> bool:
        reaches_cap = and_(
            CouponModel.max_uses.is_not(None),
            CouponModel.used_count + 1 >= CouponModel.max_uses,
        )
        result = await self._session.execute(
            update(CouponModel)
            .where(
                CouponModel.code == normalize_code(code),
                CouponModel.is_active.is_(True),
                or_(CouponModel.max_uses.is_(None), CouponModel.used_count < CouponModel.max_uses),
                or_(CouponModel.expires_at.is_(None), CouponModel.expires_at > as_utc(now)),
            )
            .values(
                used_count=CouponModel.used_count + 1,
                is_active=case((reaches_cap, False), else_=CouponModel.is_active),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
