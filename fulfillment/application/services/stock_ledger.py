"""Stock ledger - per-variant quantity on hand."""

import logging

from sqlalchemy.ext.asyncio import async_sessionmaker

from fulfillment.data.uow import create_uow
from fulfillment.domain.errors import InsufficientStock, ValidationError

logger = logging.getLogger(__name__)


class StockLedger:
    """
    Atomic check / deduct / restore of stock entries.

    Every mutation runs in its own unit of work and commits on its own:
    a deduction is a single conditional UPDATE, so concurrent callers on
    the same variant are serialized by the database and the quantity can
    never go negative.
    """

    def __init__(self, session_factory: async_sessionmaker) -> None:
        """Initialize stock ledger.

        Args:
            session_factory: SQLAlchemy async session factory
        """
        self._session_factory = session_factory

    async def quantity(self, product_id: str, variant: str) -> int:
        """Current quantity; a variant without an entry has none."""
        async with create_uow(self._session_factory) as uow:
            quantity = await uow.stock.get_quantity(product_id, variant)
        return quantity or 0

    async def reserve_check(self, product_id: str, variant: str, quantity: int) -> bool:
        """Read-only sufficiency check. Never mutates stock."""
        return await self.quantity(product_id, variant) >= quantity

    async def deduct(self, product_id: str, variant: str, quantity: int) -> None:
        """Deduct stock if enough is available.

        Args:
            product_id: Catalog product ID
            variant: Variant size
            quantity: Units to take (positive)

        Raises:
            InsufficientStock: Fewer than `quantity` units were available
        """
        self._check_quantity(quantity)
        async with create_uow(self._session_factory) as uow:
            applied = await uow.stock.decrement_if_available(product_id, variant, quantity)
            if not applied:
                raise InsufficientStock(product_id, variant)
            await uow.commit()
        logger.info(f"Deducted {quantity} x {product_id}/{variant}")

    async def restore(self, product_id: str, variant: str, quantity: int) -> None:
        """Return units to stock, creating the entry if missing.

        Also used for restocking.
        """
        self._check_quantity(quantity)
        async with create_uow(self._session_factory) as uow:
            await uow.stock.increment(product_id, variant, quantity)
            await uow.commit()
        logger.info(f"Restored {quantity} x {product_id}/{variant}")

    @staticmethod
    def _check_quantity(quantity: int) -> None:
        if quantity < 1:
            raise ValidationError("Stock quantity must be at least 1.")
