"""Payment service - starts a charge and records the attempt."""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from fulfillment.application.dtos.payment_dto import PaymentOutcomeDTO, TransactionDTO
from fulfillment.application.interfaces import (
    ChargeResult,
    ChargeStatus,
    GatewayEventType,
    IPaymentGateway,
)
from fulfillment.data.uow import create_uow
from fulfillment.domain.entities.order import Order
from fulfillment.domain.entities.transaction import Transaction
from fulfillment.domain.enums import OrderStatus, PaymentStatus, TransactionStatus
from fulfillment.domain.errors import InvalidTransition
from fulfillment.infrastructure.adapters.gateways.registry import PaymentGatewayRegistry

from .order_updates import OrderUpdater
from .webhook_reconciler import WebhookReconciler

logger = logging.getLogger(__name__)


class PaymentService:
    """
    Synchronous, client-confirmed payment flow.

    The gateway result is recorded on the order's transaction placeholder.
    An immediate success or failure is applied through the webhook
    reconciler, so a later webhook for the same charge is a duplicate.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        updater: OrderUpdater,
        gateways: PaymentGatewayRegistry,
        reconciler: WebhookReconciler,
    ) -> None:
        self._session_factory = session_factory
        self._updater = updater
        self._gateways = gateways
        self._reconciler = reconciler

    async def charge(self, order_number: str, payment_details: Dict[str, Any]) -> PaymentOutcomeDTO:
        """
        Charge the order total through the gateway serving its payment method.

        Raises:
            OrderNotFound: No such order
            InvalidTransition: Order is not awaiting payment
            ValidationError: No gateway serves the payment method
            PaymentGatewayError: Gateway unreachable after retries
        """
        order = await self._updater.load(order_number)
        if order.status != OrderStatus.PENDING or order.payment_status == PaymentStatus.PAID:
            raise InvalidTransition(f"Order {order_number} is not awaiting payment.")

        gateway = self._gateways.for_method(order.payment_method)
        if not gateway.supports_webhooks:
            open_attempt = await self._open_attempt(order_number, gateway.name)
            if open_attempt is not None:
                logger.info(
                    f"Order {order_number} already has a pending {gateway.name} attempt"
                )
                return await self._outcome(order_number, ChargeStatus.PENDING, open_attempt.id)

        result = await gateway.charge(order, payment_details)
        logger.info(
            f"Charge for order {order_number} via {gateway.name}: {result.status.value}"
        )

        transaction = await self._record_attempt(order, gateway, result)

        if transaction.gateway_transaction_id:
            await self._apply_result(transaction, result)
        elif result.status == ChargeStatus.FAILED:
            await self._reconciler.apply_failure(order_number)

        next_action = dict(result.metadata) if result.status == ChargeStatus.PENDING else {}
        return await self._outcome(order_number, result.status, transaction.id, next_action)

    async def confirm(self, order_number: str, confirmation: Dict[str, Any]) -> PaymentOutcomeDTO:
        """
        Settle a pending charge the customer completed on the processor's page.

        The confirmation goes through the same reconciler path as a
        webhook, so whichever of the two arrives second is a duplicate.

        Raises:
            OrderNotFound: No such order
            InvalidTransition: Order is not awaiting payment or has no pending charge
            ValidationError: Gateway has no confirmation step or the data does not match
            PaymentGatewayError: Gateway unreachable after retries
        """
        order = await self._updater.load(order_number)
        if order.status != OrderStatus.PENDING or order.payment_status == PaymentStatus.PAID:
            raise InvalidTransition(f"Order {order_number} is not awaiting payment.")

        gateway = self._gateways.for_method(order.payment_method)
        attempt = await self._open_attempt(order_number, gateway.name)
        if attempt is None:
            raise InvalidTransition(f"Order {order_number} has no payment awaiting confirmation.")

        result = await gateway.confirm(attempt.gateway_transaction_id, confirmation)
        logger.info(
            f"Confirmation for order {order_number} via {gateway.name}: {result.status.value}"
        )
        await self._apply_result(attempt, result)
        return await self._outcome(order_number, result.status, attempt.id)

    async def _apply_result(self, transaction: Transaction, result: ChargeResult) -> None:
        if result.status == ChargeStatus.SUCCEEDED:
            await self._reconciler.apply_outcome(transaction, GatewayEventType.SUCCEEDED)
        elif result.status == ChargeStatus.FAILED:
            await self._reconciler.apply_outcome(transaction, GatewayEventType.FAILED)

    async def _outcome(
        self,
        order_number: str,
        status: ChargeStatus,
        transaction_id: int,
        next_action: Optional[Dict[str, Any]] = None,
    ) -> PaymentOutcomeDTO:
        order = await self._updater.load(order_number)
        async with create_uow(self._session_factory) as uow:
            transaction = await uow.transactions.find_by_id(transaction_id)
        return PaymentOutcomeDTO(
            outcome=status,
            order_status=order.status,
            payment_status=order.payment_status,
            transaction=TransactionDTO.from_transaction(transaction),
            next_action=next_action or {},
        )

    async def _record_attempt(
        self, order: Order, gateway: IPaymentGateway, result: ChargeResult
    ) -> Transaction:
        order_number = order.order_number.value
        async with create_uow(self._session_factory) as uow:
            placeholder = await self._placeholder(uow, order_number)

            if result.gateway_transaction_id and placeholder is not None:
                attached = await uow.transactions.attach_gateway_id(
                    placeholder.id,
                    gateway.name,
                    result.gateway_transaction_id,
                    result.receipt_url,
                    dict(result.metadata),
                )
                if attached:
                    await uow.commit()
                    return await uow.transactions.find_by_id(placeholder.id)

            # A further attempt gets its own record.
            transaction = await uow.transactions.add(
                Transaction(
                    order_number=order_number,
                    payment_method=order.payment_method,
                    amount=order.total,
                    status=(
                        TransactionStatus.FAILED
                        if result.gateway_transaction_id is None
                        and result.status == ChargeStatus.FAILED
                        else TransactionStatus.PENDING
                    ),
                    gateway=gateway.name,
                    gateway_transaction_id=result.gateway_transaction_id,
                    receipt_url=result.receipt_url,
                    metadata=dict(result.metadata),
                )
            )
            await uow.commit()
            return transaction

    @staticmethod
    async def _placeholder(uow, order_number: str) -> Optional[Transaction]:
        for transaction in await uow.transactions.find_by_order(order_number, TransactionStatus.PENDING):
            if transaction.gateway_transaction_id is None:
                return transaction
        return None

    async def _open_attempt(self, order_number: str, gateway_name: str) -> Optional[Transaction]:
        """The latest pending attempt the gateway has already accepted."""
        async with create_uow(self._session_factory) as uow:
            pending = await uow.transactions.find_by_order(order_number, TransactionStatus.PENDING)
        for transaction in reversed(pending):
            if transaction.gateway == gateway_name and transaction.gateway_transaction_id:
                return transaction
        return None
