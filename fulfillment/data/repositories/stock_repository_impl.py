"""SQLAlchemy implementation of StockRepository."""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.domain.repositories.stock_repository import StockRepository

from ..models.stock_model import StockEntryModel

logger = logging.getLogger(__name__)


class SqlAlchemyStockRepository(StockRepository):
    """
    Stock entries mutated by single conditional statements.

    `increment` may roll back the session to recover from a concurrent
    insert of the same entry, so it must run in its own unit of work.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_quantity(self, product_id: str, variant: str) -> Optional[int]:
        result = await self._session.execute(
            select(StockEntryModel.quantity).where(
                StockEntryModel.product_id == product_id,
                StockEntryModel.variant == variant,
            )
        )
        return result.scalar_one_or_none()

    async def decrement_if_available(self, product_id: str, variant: str, quantity: int) -> bool:
        result = await self._session.execute(
            update(StockEntryModel)
            .where(
                StockEntryModel.product_id == product_id,
                StockEntryModel.variant == variant,
                StockEntryModel.quantity >= quantity,
            )
            .values(
                quantity=StockEntryModel.quantity - quantity,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _increment_existing(self, product_id: str, variant: str, quantity: int) -> bool:
        result = await self._session.execute(
            update(StockEntryModel)
            .where(
                StockEntryModel.product_id == product_id,
                StockEntryModel.variant == variant,
            )
            .values(
                quantity=StockEntryModel.quantity + quantity,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def increment(self, product_id: str, variant: str, quantity: int) -> None:
        if await self._increment_existing(product_id, variant, quantity):
            return

        try:
            self._session.add(
                StockEntryModel(product_id=product_id, variant=variant, quantity=quantity)
            )
            await self._session.flush()
        except IntegrityError:
            # Another writer created the entry between our UPDATE and INSERT.
            logger.info(f"Stock entry {product_id}/{variant} created concurrently, retrying increment")
            await self._session.rollback()
            if not await self._increment_existing(product_id, variant, quantity):
                raise
