"""Deduct-then-accept, shared by the synchronous and webhook confirmation paths."""

import logging
from typing import List

from fulfillment.domain.entities.order import Order, OrderItem
from fulfillment.domain.enums import OrderStatus
from fulfillment.domain.errors import InsufficientStock, InvalidTransition
from fulfillment.settings.modules.job_settings import JobSettings

from .compensation import CompensationScheduler
from .order_updates import OrderUpdater
from .stock_ledger import StockLedger

logger = logging.getLogger(__name__)

PENDING_ONLY = "Only orders with 'pending' status can be accepted."


class OrderAcceptance:
    """
    Moves a pending order to processing after deducting its stock.

    Each line item is deducted by its own atomic ledger call. If any
    deduction fails, or the order leaves `pending` before the version
    check, every applied deduction is restored. Restores that fail are
    queued as background jobs.
    """

    def __init__(
        self,
        updater: OrderUpdater,
        stock_ledger: StockLedger,
        compensation: CompensationScheduler,
        settings: JobSettings,
    ) -> None:
        self._updater = updater
        self._ledger = stock_ledger
        self._compensation = compensation
        self._inline_attempts = max(1, settings.compensation_attempts)

    async def accept(self, order_number: str) -> Order:
        """Deduct stock for every item and transition to processing.

        Raises:
            OrderNotFound: No such order
            InvalidTransition: Order is not (or no longer) pending
            InsufficientStock: A line item is short; nothing stays deducted
        """
        order = await self._updater.load(order_number)
        if order.status != OrderStatus.PENDING:
            raise InvalidTransition(PENDING_ONLY)

        applied = await self._deduct_all(order)
        try:
            accepted = await self._updater.apply(order_number, self._accept)
        except Exception:
            logger.warning(f"Order {order_number} left pending during acceptance, compensating")
            await self.compensate(order_number, applied)
            raise

        logger.info(f"Order {order_number} accepted, stock deducted for {len(applied)} item(s)")
        return accepted

    @staticmethod
    def _accept(order: Order) -> None:
        order.accept()

    async def _deduct_all(self, order: Order) -> List[OrderItem]:
        order_number = order.order_number.value
        applied: List[OrderItem] = []
        for item in order.items:
            try:
                await self._ledger.deduct(item.product_id, item.variant, item.quantity)
            except InsufficientStock as e:
                logger.info(
                    f"Order {order_number}: insufficient stock for "
                    f"{item.product_id}/{item.variant}, rolling back {len(applied)} deduction(s)"
                )
                await self.compensate(order_number, applied)
                raise InsufficientStock(item.product_title, item.variant) from e
            except Exception:
                await self.compensate(order_number, applied)
                raise
            applied.append(item)
        return applied

    async def compensate(self, order_number: str, items: List[OrderItem]) -> None:
        """Restore deducted items; failures are handed to the job queue."""
        for item in items:
            if await self._restore_inline(order_number, item):
                continue
            await self._compensation.schedule_restore(
                order_number, item.product_id, item.variant, item.quantity
            )

    async def _restore_inline(self, order_number: str, item: OrderItem) -> bool:
        for attempt in range(1, self._inline_attempts + 1):
            try:
                await self._ledger.restore(item.product_id, item.variant, item.quantity)
                return True
            except Exception as e:
                logger.error(
                    f"Order {order_number}: restoring {item.quantity} x "
                    f"{item.product_id}/{item.variant} failed "
                    f"(attempt {attempt}/{self._inline_attempts}): {e}",
                    exc_info=True,
                )
        return False
