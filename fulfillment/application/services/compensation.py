"""Background compensation jobs (stock restores, payment reversals, refund retries)."""

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from fulfillment.settings.modules.job_settings import JobSettings
from orchestration import BackgroundJobQueue, Job, JobContext, RetryPolicy

from .stock_ledger import StockLedger

if TYPE_CHECKING:
    from .refund_processor import RefundProcessor

logger = logging.getLogger(__name__)

RESTORE_STOCK_JOB = "restore_stock"
REVERSE_PAYMENT_JOB = "reverse_payment"
RETRY_REFUND_JOB = "retry_refund"


class CompensationScheduler:
    """
    Queues compensating work that could not complete inline.

    Jobs run with the configured retry policy; when one exhausts its
    attempts the runner emits `job.exhausted`, which the alert service
    turns into an operator alert.
    """

    def __init__(
        self,
        job_queue: BackgroundJobQueue,
        settings: JobSettings,
        stock_ledger: StockLedger,
        refund_processor: "RefundProcessor",
    ) -> None:
        self._queue = job_queue
        self._settings = settings
        self._ledger = stock_ledger
        self._refunds = refund_processor

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self._settings.max_attempts,
            backoff_seconds=self._settings.backoff_seconds,
            multiplier=self._settings.backoff_multiplier,
            max_backoff_seconds=self._settings.max_backoff_seconds,
        )

    async def schedule_restore(
        self, order_number: str, product_id: str, variant: str, quantity: int
    ) -> None:
        async def restore(ctx: JobContext) -> None:
            await self._ledger.restore(product_id, variant, quantity)

        await self._queue.enqueue(
            Job(
                name=RESTORE_STOCK_JOB,
                activity=restore,
                payload={"product_id": product_id, "variant": variant, "quantity": quantity},
                retry_policy=self.retry_policy,
                order_number=order_number,
            )
        )

    async def schedule_reversal(self, order_number: str, reason: str) -> None:
        async def reverse(ctx: JobContext) -> object:
            return await self._refunds.reverse_captured_payments(order_number)

        await self._queue.enqueue(
            Job(
                name=REVERSE_PAYMENT_JOB,
                activity=reverse,
                payload={"reason": reason},
                retry_policy=self.retry_policy,
                order_number=order_number,
            )
        )

    async def schedule_refund_retry(
        self,
        order_number: str,
        amount: Decimal,
        reason: Optional[str],
        idempotency_key: str,
    ) -> None:
        async def retry(ctx: JobContext) -> object:
            return await self._refunds.refund(
                order_number, amount, reason, idempotency_key=idempotency_key
            )

        await self._queue.enqueue(
            Job(
                name=RETRY_REFUND_JOB,
                activity=retry,
                payload={"amount": str(amount), "idempotency_key": idempotency_key},
                retry_policy=self.retry_policy,
                order_number=order_number,
            )
        )
