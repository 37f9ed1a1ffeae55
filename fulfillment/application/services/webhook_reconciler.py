"""Webhook reconciler - maps gateway outcomes onto transactions and orders."""

import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, FrozenSet

from sqlalchemy.ext.asyncio import async_sessionmaker

from fulfillment.application.interfaces import GatewayEvent, GatewayEventType
from fulfillment.data.uow import create_uow
from fulfillment.domain.entities.order import Order
from fulfillment.domain.entities.transaction import Transaction
from fulfillment.domain.enums import OrderStatus, TERMINAL_STATUSES, TransactionStatus
from fulfillment.domain.errors import InsufficientStock, InvalidTransition
from orchestration import Job, JobContext, JobRunner, RetryPolicy

from .alert_service import AlertService
from .compensation import CompensationScheduler
from .order_acceptance import OrderAcceptance
from .order_updates import OrderUpdater

logger = logging.getLogger(__name__)

SETTLE_PAYMENT_JOB = "settle_payment"

_TARGET_STATUS: Dict[GatewayEventType, TransactionStatus] = {
    GatewayEventType.SUCCEEDED: TransactionStatus.COMPLETED,
    GatewayEventType.FAILED: TransactionStatus.FAILED,
    GatewayEventType.REFUNDED: TransactionStatus.REFUNDED,
}

# Transaction statuses after which an event of the given type changes nothing.
_ALREADY_APPLIED: Dict[GatewayEventType, FrozenSet[TransactionStatus]] = {
    GatewayEventType.SUCCEEDED: frozenset({TransactionStatus.COMPLETED, TransactionStatus.REFUNDED}),
    GatewayEventType.FAILED: frozenset({TransactionStatus.COMPLETED, TransactionStatus.REFUNDED}),
    GatewayEventType.REFUNDED: frozenset({TransactionStatus.REFUNDED}),
}


def _covers_transaction(event: GatewayEvent, transaction: Transaction) -> bool:
    """True when the refund reported so far covers the whole captured amount."""
    refunded = transaction.refunded_amount
    if event.amount is not None:
        refunded = max(refunded, event.amount)
    return refunded >= transaction.amount.amount


class ReconcileOutcome(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    UNKNOWN_TRANSACTION = "unknown_transaction"


class WebhookReconciler:
    """
    Applies verified gateway events idempotently.

    The transaction status change is a compare-and-set and acts as the
    gate: only the caller that moves the transaction goes on to touch the
    order. Order-side effects after the gate are themselves idempotent
    and run under the job runner, so a transient failure is retried and
    a persistent one becomes an operator alert.

    The synchronous charge path calls `apply_outcome` directly, so both
    confirmation paths share the same deduction logic.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        updater: OrderUpdater,
        acceptance: OrderAcceptance,
        compensation: CompensationScheduler,
        alerts: AlertService,
        runner: JobRunner,
        settlement_policy: RetryPolicy,
    ) -> None:
        self._session_factory = session_factory
        self._updater = updater
        self._acceptance = acceptance
        self._compensation = compensation
        self._alerts = alerts
        self._runner = runner
        self._settlement_policy = settlement_policy

    async def reconcile(self, event: GatewayEvent) -> ReconcileOutcome:
        """Apply one webhook event.

        Unknown transactions are logged and discarded; events whose
        outcome is already recorded are discarded silently.
        """
        async with create_uow(self._session_factory) as uow:
            transaction = await uow.transactions.find_by_gateway_id(event.gateway_transaction_id)

        if transaction is None:
            logger.warning(
                f"Discarding {event.gateway} {event.event_type.value} event {event.event_id}: "
                f"no matching transaction"
            )
            return ReconcileOutcome.UNKNOWN_TRANSACTION

        if transaction.status in _ALREADY_APPLIED[event.event_type]:
            logger.debug(
                f"Duplicate {event.event_type.value} event for transaction {transaction.id} "
                f"(status {transaction.status.value})"
            )
            return ReconcileOutcome.DUPLICATE

        if event.event_type == GatewayEventType.REFUNDED and not _covers_transaction(event, transaction):
            logger.info(
                f"Partial refund reported for transaction {transaction.id} "
                f"({event.amount} of {transaction.amount.amount}); keeping it captured"
            )
            return ReconcileOutcome.DUPLICATE

        if await self.apply_outcome(transaction, event.event_type):
            return ReconcileOutcome.APPLIED
        return ReconcileOutcome.DUPLICATE

    async def apply_outcome(self, transaction: Transaction, event_type: GatewayEventType) -> bool:
        """Move the transaction and, if this call moved it, settle the order.

        Returns:
            False if another delivery already applied the outcome
        """
        target = _TARGET_STATUS[event_type]
        async with create_uow(self._session_factory) as uow:
            moved = await uow.transactions.transition_status(
                transaction.id, target, Transaction.sources_for(target)
            )
            await uow.commit()

        if not moved:
            return False

        order_number = transaction.order_number
        logger.info(
            f"Transaction {transaction.id} for order {order_number} is now {target.value}"
        )

        if event_type == GatewayEventType.SUCCEEDED:
            await self._settle(order_number, self.apply_success)
        elif event_type == GatewayEventType.FAILED:
            await self._settle(order_number, self.apply_failure)
        else:
            logger.info(
                f"Gateway reported a refund of transaction {transaction.id} for order {order_number}"
            )
        return True

    async def apply_success(self, order_number: str) -> None:
        """Record the payment and accept the order if nothing has yet."""

        def mark_paid(order: Order) -> bool:
            if order.status in TERMINAL_STATUSES:
                return False
            return order.mark_paid()

        order = await self._updater.apply(order_number, mark_paid)

        if order.status == OrderStatus.CANCELLED:
            await self._alerts.raise_alert(
                "payment_after_cancellation",
                order_number,
                {"total": order.total.amount, "currency": order.total.currency},
            )
            await self._compensation.schedule_reversal(
                order_number, "Payment confirmed after cancellation"
            )
            return
        if order.status != OrderStatus.PENDING:
            return

        try:
            await self._acceptance.accept(order_number)
        except InsufficientStock as e:
            await self._alerts.raise_alert(
                "paid_order_out_of_stock", order_number, {"error": e.message}
            )
        except InvalidTransition as e:
            logger.info(f"Order {order_number} left pending before acceptance: {e.message}")

    async def apply_failure(self, order_number: str) -> None:
        """Reflect a failed payment on an unpaid pending order."""

        def mark_failed(order: Order) -> bool:
            return order.mark_payment_failed()

        await self._updater.apply(order_number, mark_failed)

    async def _settle(self, order_number: str, step: Callable[[str], Awaitable[None]]) -> None:
        async def activity(ctx: JobContext) -> None:
            await step(order_number)

        await self._runner.run(
            Job(
                name=SETTLE_PAYMENT_JOB,
                activity=activity,
                payload={"step": step.__name__},
                retry_policy=self._settlement_policy,
                order_number=order_number,
            )
        )
