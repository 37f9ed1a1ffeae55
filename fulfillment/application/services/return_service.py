"""Customer returns: request, approve (refund and restock) or reject."""

import logging
from dataclasses import replace
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from fulfillment.application.dtos.return_dto import CreateReturnRequest, ReturnDTO
from fulfillment.data.uow import create_uow
from fulfillment.domain.entities.order import Order, OrderItem
from fulfillment.domain.entities.return_request import ReturnRequest
from fulfillment.domain.enums import PaymentStatus, ReturnStatus
from fulfillment.domain.errors import (
    InvalidTransition,
    OrderNotFound,
    ReturnNotFound,
)
from fulfillment.domain.value_objects import Money

from .order_acceptance import OrderAcceptance
from .order_updates import MAX_CAS_ATTEMPTS, OrderUpdater
from .refund_processor import RefundProcessor

logger = logging.getLogger(__name__)


class ReturnService:
    """
    Return requests against delivered orders.

    Filing a return bumps the order version in the same transaction, so
    two concurrent returns of one order cannot both claim the last units.
    Approval first claims the request (requested -> approved), then
    refunds with the idempotency key `return-<id>` and restores the
    returned units. A refused refund puts the request back to requested;
    approving it again reuses the same key.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        updater: OrderUpdater,
        refunds: RefundProcessor,
        acceptance: OrderAcceptance,
    ) -> None:
        self._session_factory = session_factory
        self._updater = updater
        self._refunds = refunds
        self._acceptance = acceptance

    async def request_return(self, order_number: str, request: CreateReturnRequest) -> ReturnDTO:
        """File a return for delivered units.

        Raises:
            OrderNotFound: No such order
            InvalidTransition: Order is not delivered
            ValidationError: Unknown lines or more units than are left to return
        """
        lines = [(line.product_id, line.variant, line.quantity) for line in request.items]
        for attempt in range(1, MAX_CAS_ATTEMPTS + 1):
            async with create_uow(self._session_factory) as uow:
                order = await uow.orders.find_by_number(order_number)
                if order is None:
                    raise OrderNotFound(order_number)
                earlier = await uow.returns.find_by_order(order_number)
                created = ReturnRequest.open(order, lines, request.reason, earlier)
                await uow.returns.add(created)
                if await uow.orders.compare_and_set(order, order.version):
                    await uow.commit()
                    logger.info(
                        f"Return {created.id} requested on order {order_number} "
                        f"({len(created.items)} line(s), value {created.refund_amount})"
                    )
                    return ReturnDTO.from_return(created)

            logger.info(
                f"Order {order_number} changed while filing a return "
                f"(attempt {attempt}/{MAX_CAS_ATTEMPTS}), reloading"
            )

        raise InvalidTransition(f"Order {order_number} was modified concurrently; please retry.")

    async def approve_return(
        self, order_number: str, return_id: int, note: Optional[str] = None
    ) -> ReturnDTO:
        """Approve a return, refund its value and restock the units.

        Orders that were never paid through a gateway (cash on delivery)
        are approved without a gateway refund.

        Raises:
            ReturnNotFound: No such return on the order
            InvalidTransition: Return is already decided
            RefundProcessingFailed: Gateway refused; the return stays requested
        """
        pending = await self._load(order_number, return_id)
        pending.ensure_open()
        order = await self._updater.load(order_number)

        amount = Decimal("0.00")
        if order.payment_status == PaymentStatus.PAID:
            amount = min(pending.refund_amount.amount, order.refundable.amount)
        approved = replace(pending)
        approved.approve(Money(amount, pending.refund_amount.currency), note=note)
        if not await self._save(approved, ReturnStatus.REQUESTED):
            raise InvalidTransition(f"Return {return_id} was decided concurrently.")

        if amount > 0:
            try:
                record = await self._refunds.refund(
                    order_number,
                    amount,
                    reason=pending.reason or f"Return {return_id}",
                    idempotency_key=f"return-{return_id}",
                )
            except Exception:
                await self._save(pending, ReturnStatus.APPROVED)
                logger.error(f"Refund for return {return_id} on order {order_number} failed; reopened")
                raise
            approved.refund_id = record.refund_id
            await self._save(approved, ReturnStatus.APPROVED)

        if order.stock_deducted:
            await self._acceptance.compensate(order_number, _returned_lines(order, approved))

        logger.info(
            f"Return {return_id} on order {order_number} approved "
            f"(refunded {approved.refunded_amount}, restocked: {order.stock_deducted})"
        )
        return ReturnDTO.from_return(approved)

    async def reject_return(
        self, order_number: str, return_id: int, note: Optional[str] = None
    ) -> ReturnDTO:
        """Reject a return; its units become returnable again.

        Raises:
            ReturnNotFound: No such return on the order
            InvalidTransition: Return is already decided
        """
        rejected = await self._load(order_number, return_id)
        rejected.reject(note)
        if not await self._save(rejected, ReturnStatus.REQUESTED):
            raise InvalidTransition(f"Return {return_id} was decided concurrently.")
        logger.info(f"Return {return_id} on order {order_number} rejected")
        return ReturnDTO.from_return(rejected)

    async def get_return(self, order_number: str, return_id: int) -> ReturnDTO:
        return ReturnDTO.from_return(await self._load(order_number, return_id))

    async def list_returns(self, order_number: str) -> List[ReturnDTO]:
        async with create_uow(self._session_factory) as uow:
            if await uow.orders.find_by_number(order_number) is None:
                raise OrderNotFound(order_number)
            returns = await uow.returns.find_by_order(order_number)
        return [ReturnDTO.from_return(item) for item in returns]

    async def _load(self, order_number: str, return_id: int) -> ReturnRequest:
        async with create_uow(self._session_factory) as uow:
            found = await uow.returns.find_by_id(order_number, return_id)
        if found is None:
            raise ReturnNotFound(order_number, return_id)
        return found

    async def _save(self, request: ReturnRequest, expected: ReturnStatus) -> bool:
        async with create_uow(self._session_factory) as uow:
            saved = await uow.returns.save_decision(request, expected)
            await uow.commit()
        return saved


def _returned_lines(order: Order, request: ReturnRequest) -> List[OrderItem]:
    lines = []
    for item in request.items:
        line = next(
            line for line in order.items
            if line.product_id == item.product_id and line.variant == item.variant
        )
        lines.append(replace(line, quantity=item.quantity))
    return lines
