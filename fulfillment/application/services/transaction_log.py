"""Transaction log - audit view over an order's payment attempts."""

from decimal import Decimal
from typing import List

from sqlalchemy.ext.asyncio import async_sessionmaker

from fulfillment.application.dtos.payment_dto import TransactionDTO
from fulfillment.data.uow import create_uow
from fulfillment.domain.errors import OrderNotFound


class TransactionLog:
    """Read side of the append-only transaction table."""

    def __init__(self, session_factory: async_sessionmaker) -> None:
        self._session_factory = session_factory

    async def history(self, order_number: str) -> List[TransactionDTO]:
        """All payment attempts for an order, oldest first, with masked gateway fields."""
        async with create_uow(self._session_factory) as uow:
            if await uow.orders.find_by_number(order_number) is None:
                raise OrderNotFound(order_number)
            transactions = await uow.transactions.find_by_order(order_number)
        return [TransactionDTO.from_transaction(t) for t in transactions]

    async def refunded_total(self, order_number: str) -> Decimal:
        async with create_uow(self._session_factory) as uow:
            return await uow.transactions.total_refunded(order_number)

    async def refundable_remainder(self, order_number: str) -> Decimal:
        """`order.total − order.total_refunded`."""
        async with create_uow(self._session_factory) as uow:
            order = await uow.orders.find_by_number(order_number)
        if order is None:
            raise OrderNotFound(order_number)
        return order.refundable.amount
