"""SQLAlchemy implementation of OrderRepository."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.domain.entities.order import Order
from fulfillment.domain.enums import OrderStatus
from fulfillment.domain.enums.order_status import REFUNDABLE_STATUSES
from fulfillment.domain.repositories.order_repository import OrderRepository

from ..mappers import OrderMapper, as_utc
from ..models.order_model import OrderModel

# Amounts are whole cents; Numeric may be REAL-backed (SQLite).
HALF_CENT = Decimal("0.005")


class SqlAlchemyOrderRepository(OrderRepository):
    """Concrete implementation of OrderRepository using SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with SQLAlchemy session.

        Args:
            session: SQLAlchemy async session
        """
        self._session = session

    async def add(self, order: Order) -> None:
        self._session.add(OrderMapper.to_persistence(order))
        await self._session.flush()  # Propagate to DB without committing

    async def find_by_number(self, order_number: str) -> Optional[Order]:
        result = await self._session.execute(
            select(OrderModel)
            .where(OrderModel.order_number == order_number)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()

        if not model:
            return None

        return OrderMapper.to_domain(model)

    def _filtered(self, statement, status, customer_id, date_from, date_to):
        if status is not None:
            statement = statement.where(OrderModel.status == OrderStatus(status).value)
        if customer_id:
            statement = statement.where(OrderModel.customer_id == customer_id)
        if date_from is not None:
            statement = statement.where(OrderModel.created_at >= as_utc(date_from))
        if date_to is not None:
            statement = statement.where(OrderModel.created_at <= as_utc(date_to))
        return statement

    async def find_all(
        self,
        status: Optional[OrderStatus] = None,
        customer_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> List[Order]:
        statement = self._filtered(select(OrderModel), status, customer_id, date_from, date_to)
        statement = (
            statement.order_by(OrderModel.created_at.desc(), OrderModel.order_number.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self._session.execute(statement)
        return [OrderMapper.to_domain(model) for model in result.scalars().all()]

    async def count(
        self,
        status: Optional[OrderStatus] = None,
        customer_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> int:
        statement = self._filtered(
            select(func.count()).select_from(OrderModel), status, customer_id, date_from, date_to
        )
        result = await self._session.execute(statement)
        return int(result.scalar_one())

    async def compare_and_set(self, order: Order, expected_version: int) -> bool:
        result = await self._session.execute(
            update(OrderModel)
            .where(
                OrderModel.order_number == order.order_number.value,
                OrderModel.version == expected_version,
            )
            .values(version=expected_version + 1, **OrderMapper.mutable_values(order))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        order.version = expected_version + 1
        return True

    async def reserve_refund(self, order_number: str, amount: Decimal) -> bool:
        result = await self._session.execute(
            update(OrderModel)
            .where(
                OrderModel.order_number == order_number,
                OrderModel.status.in_([status.value for status in REFUNDABLE_STATUSES]),
                OrderModel.total_refunded + amount <= OrderModel.total + HALF_CENT,
            )
            .values(
                total_refunded=OrderModel.total_refunded + amount,
                version=OrderModel.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def release_refund(self, order_number: str, amount: Decimal) -> None:
        await self._session.execute(
            update(OrderModel)
            .where(
                OrderModel.order_number == order_number,
                OrderModel.total_refunded + HALF_CENT >= amount,
            )
            .values(
                total_refunded=OrderModel.total_refunded - amount,
                version=OrderModel.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
