"""Webhook worker - drains the webhook queue into the reconciler."""

import asyncio
import logging
from typing import Optional

from fulfillment.application.interfaces import IWebhookQueue, QueuedWebhook

from .alert_service import AlertService
from .webhook_reconciler import ReconcileOutcome, WebhookReconciler

logger = logging.getLogger(__name__)

WEBHOOK_DEAD_LETTER = "webhook_dead_letter"


class WebhookWorker:
    """
    Consumes queued webhook events.

    A message is acknowledged only after the reconciler handled it. A
    failing message is returned to the queue until it has been delivered
    `max_deliveries` times, then it is acknowledged and escalated.
    An event for a transaction that is not known yet is returned the same
    way, since the charge that attaches its gateway id may still be in
    flight; after the last delivery it is logged and discarded.
    """

    def __init__(
        self,
        queue: IWebhookQueue,
        reconciler: WebhookReconciler,
        alerts: AlertService,
        max_deliveries: int = 5,
        idle_sleep_seconds: float = 1.0,
    ) -> None:
        self._queue = queue
        self._reconciler = reconciler
        self._alerts = alerts
        self._max_deliveries = max(1, max_deliveries)
        self._idle_sleep = idle_sleep_seconds
        self._task: Optional[asyncio.Task] = None
        self._deferred = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="webhook-worker")
        logger.info("Webhook worker started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info("Webhook worker stopped")

    async def process_batch(self, batch_size: int = 10, block_ms: int = 1000) -> int:
        """Handle one batch of messages and return how many were received."""
        messages = await self._queue.receive(batch_size=batch_size, block_ms=block_ms)
        self._deferred = 0
        for message in messages:
            if not await self._handle(message):
                self._deferred += 1
        return len(messages)

    async def drain(self) -> None:
        """Process messages until the queue has nothing left to deliver."""
        while await self.process_batch(block_ms=10):
            pass

    async def _handle(self, message: QueuedWebhook) -> bool:
        """Process one message. Returns False if it was put back for later."""
        event = message.event
        try:
            outcome = await self._reconciler.reconcile(event)
        except Exception as e:
            logger.error(
                f"Webhook {message.message_id} ({event.gateway} {event.event_type.value}) failed "
                f"on delivery {message.deliveries}/{self._max_deliveries}: {e}",
                exc_info=True,
            )
            if message.deliveries >= self._max_deliveries:
                await self._alerts.raise_alert(
                    WEBHOOK_DEAD_LETTER,
                    None,
                    {"message_id": message.message_id, "event": event.to_dict(), "error": str(e)},
                )
                await self._queue.ack(message.message_id)
                return True
            await self._queue.retry_later(message)
            return False

        if (
            outcome == ReconcileOutcome.UNKNOWN_TRANSACTION
            and message.deliveries < self._max_deliveries
        ):
            await self._queue.retry_later(message)
            return False

        await self._queue.ack(message.message_id)
        logger.info(
            f"Webhook {message.message_id} ({event.gateway} {event.event_type.value}): {outcome.value}"
        )
        return True

    async def _run(self) -> None:
        while True:
            try:
                received = await self.process_batch()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Webhook worker loop error: {e}", exc_info=True)
                await asyncio.sleep(self._idle_sleep)
                continue
            if not received:
                await asyncio.sleep(0)
            elif self._deferred == received:
                await asyncio.sleep(self._idle_sleep)
