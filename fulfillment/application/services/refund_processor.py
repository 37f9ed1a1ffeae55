"""Refund processor - partial and full refunds through the gateway."""

import logging
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import uuid4

from sqlalchemy.ext.asyncio import async_sessionmaker

from fulfillment.application.dtos.payment_dto import RefundRecordDTO
from fulfillment.application.interfaces import IPaymentGateway, RefundResult
from fulfillment.data.uow import create_uow
from fulfillment.domain.entities.order import Order
from fulfillment.domain.entities.transaction import Transaction
from fulfillment.domain.enums import TransactionStatus
from fulfillment.domain.errors import (
    InvalidTransition,
    PaymentGatewayError,
    RefundExceedsLimit,
    RefundProcessingFailed,
)
from fulfillment.domain.value_objects import Money, quantize_amount
from fulfillment.infrastructure.adapters.gateways.registry import PaymentGatewayRegistry

from .alert_service import AlertService
from .order_updates import OrderUpdater

logger = logging.getLogger(__name__)


class RefundProcessor:
    """
    Drives refunds while keeping `Σ refunds ≤ order.total`.

    The amount is reserved on the order row with a conditional increment
    before the gateway is called, and released again if the gateway
    refuses, so concurrent refunds can never overshoot the total.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        updater: OrderUpdater,
        gateways: PaymentGatewayRegistry,
        alerts: AlertService,
    ) -> None:
        self._session_factory = session_factory
        self._updater = updater
        self._gateways = gateways
        self._alerts = alerts

    async def refund(
        self,
        order_number: str,
        amount: Decimal,
        reason: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> RefundRecordDTO:
        """Refund part or all of a shipped or delivered order.

        Args:
            order_number: Order to refund
            amount: Amount to return to the customer
            reason: Free-text reason recorded on the status change
            idempotency_key: Gateway idempotency key; reuse it when retrying

        Returns:
            RefundRecordDTO describing the applied refund

        Raises:
            InvalidTransition: Order is not shipped/delivered or has no captured payment
            RefundExceedsLimit: Amount exceeds the refundable remainder
            RefundProcessingFailed: Gateway refused; nothing changed
        """
        order = await self._updater.load(order_number)
        money = Money(quantize_amount(Decimal(str(amount))), order.total.currency)
        order.check_refund(money)

        captured = await self._captured_transaction(order_number, money.amount)
        gateway = self._gateway_for(captured)

        if not await self._reserve(order_number, money.amount):
            fresh = await self._updater.load(order_number)
            fresh.check_refund(money)
            raise RefundExceedsLimit(money.amount, fresh.refundable.amount)

        key = idempotency_key or f"refund-{order_number}-{uuid4().hex}"
        try:
            result = await gateway.refund(
                captured.gateway_transaction_id, money.amount, money.currency, key
            )
        except PaymentGatewayError as e:
            result = RefundResult(success=False, error=e.message)

        if not result.success:
            await self._release(order_number, money.amount)
            logger.error(f"Refund of {money} for order {order_number} failed: {result.error}")
            raise RefundProcessingFailed(
                f"Refund for order {order_number} failed: {result.error}",
                idempotency_key=key,
            )

        await self._record_on_transaction(captured, money.amount)

        outcome: Dict[str, bool] = {}

        def settle(current: Order) -> None:
            outcome["fully_refunded"] = current.complete_refund(money, reason)

        try:
            order = await self._updater.apply(order_number, settle)
        except Exception as e:
            await self._alerts.raise_alert(
                "refund_settlement_failed",
                order_number,
                {"amount": money.amount, "refund_id": result.refund_id, "error": str(e)},
            )
            raise

        if outcome.get("fully_refunded"):
            await self._mark_transaction_refunded(captured.id)

        logger.info(
            f"Refunded {money} on order {order_number} "
            f"(total refunded {order.total_refunded.amount}, status {order.status.value})"
        )
        return RefundRecordDTO(
            order_number=order_number,
            amount=money.amount,
            refund_id=result.refund_id,
            total_refunded=order.total_refunded.amount,
            refundable=order.refundable.amount,
            order_status=order.status,
            payment_status=order.payment_status,
            fully_refunded=bool(outcome.get("fully_refunded")),
            reason=reason,
        )

    async def reverse_captured_payments(self, order_number: str) -> int:
        """Refund whatever is still captured on a cancelled order.

        Each transaction uses a stable idempotency key, so repeated runs
        never refund twice.

        Returns:
            Number of transactions reversed

        Raises:
            PaymentGatewayError: A reversal failed (the job will retry)
        """
        reversed_count = 0
        for transaction in await self._completed_transactions(order_number):
            remaining = transaction.remaining_amount
            if remaining > 0 and transaction.gateway_transaction_id:
                gateway = self._gateway_for(transaction)
                result = await gateway.refund(
                    transaction.gateway_transaction_id,
                    remaining,
                    transaction.amount.currency,
                    f"reversal-{transaction.id}",
                )
                if not result.success:
                    raise PaymentGatewayError(
                        f"Reversal of transaction {transaction.id} failed: {result.error}"
                    )
                await self._record_on_transaction(transaction, remaining)
            await self._mark_transaction_refunded(transaction.id)
            reversed_count += 1
            logger.info(f"Reversed transaction {transaction.id} ({remaining}) for order {order_number}")
        return reversed_count

    async def _completed_transactions(self, order_number: str) -> List[Transaction]:
        async with create_uow(self._session_factory) as uow:
            return await uow.transactions.find_by_order(order_number, TransactionStatus.COMPLETED)

    async def _captured_transaction(self, order_number: str, amount: Decimal) -> Transaction:
        captured = [t for t in await self._completed_transactions(order_number) if t.is_captured]
        if not captured:
            raise InvalidTransition(f"Order {order_number} has no captured payment to refund.")
        for transaction in captured:
            if transaction.remaining_amount >= amount:
                return transaction
        raise RefundExceedsLimit(amount, max(t.remaining_amount for t in captured))

    def _gateway_for(self, transaction: Transaction) -> IPaymentGateway:
        gateway = self._gateways.get(transaction.gateway)
        if gateway is None:
            raise PaymentGatewayError(
                f"No gateway '{transaction.gateway}' configured for transaction {transaction.id}"
            )
        return gateway

    async def _reserve(self, order_number: str, amount: Decimal) -> bool:
        async with create_uow(self._session_factory) as uow:
            reserved = await uow.orders.reserve_refund(order_number, amount)
            await uow.commit()
        return reserved

    async def _release(self, order_number: str, amount: Decimal) -> None:
        async with create_uow(self._session_factory) as uow:
            await uow.orders.release_refund(order_number, amount)
            await uow.commit()

    async def _record_on_transaction(self, transaction: Transaction, amount: Decimal) -> None:
        async with create_uow(self._session_factory) as uow:
            recorded = await uow.transactions.add_refund(transaction.id, amount)
            await uow.commit()
        if not recorded:
            await self._alerts.raise_alert(
                "transaction_refund_mismatch",
                transaction.order_number,
                {"transaction_id": transaction.id, "amount": amount},
            )

    async def _mark_transaction_refunded(self, transaction_id: int) -> None:
        async with create_uow(self._session_factory) as uow:
            await uow.transactions.transition_status(
                transaction_id,
                TransactionStatus.REFUNDED,
                Transaction.sources_for(TransactionStatus.REFUNDED),
            )
            await uow.commit()
