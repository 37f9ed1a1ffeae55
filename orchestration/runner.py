"""JobRunner - runs background jobs with bounded retries and lifecycle events."""

import asyncio
import logging
from datetime import datetime, timezone

from fulfillment.domain.value_objects import ExecutionID

from .bus import EventBusProtocol
from .events import (
    JOB_ATTEMPT_FAILED,
    JOB_EXHAUSTED,
    JOB_STARTED,
    JOB_SUCCEEDED,
    Event,
    EventMetadata,
)
from .models import JobContext, JobResult
from .workflow import Job

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class JobRunner:
    """Runs a job until it succeeds or its retry policy is exhausted.

    Exhaustion is reported as a `job.exhausted` event; subscribers turn
    it into an operator alert.
    """

    def __init__(self, event_bus: EventBusProtocol, service: str = "fulfillment") -> None:
        """Initialize job runner.

        Args:
            event_bus: EventBusProtocol for publishing job lifecycle events
            service: Service name stamped on event metadata
        """
        self._event_bus = event_bus
        self._service = service

    async def run(self, job: Job) -> JobResult:
        """Execute a job with retry logic.

        Args:
            job: Job to execute

        Returns:
            JobResult with execution details
        """
        started_at = _utc_now()
        execution_id = ExecutionID.generate()
        policy = job.retry_policy

        await self._publish_event(JOB_STARTED, execution_id, job, {"job_name": job.name})

        attempts = 0
        last_error: Exception | None = None

        # Retry loop
        for attempt in range(1, policy.max_attempts + 1):
            attempts = attempt
            ctx = JobContext(
                execution_id=execution_id,
                job_name=job.name,
                attempt=attempt,
                started_at=started_at,
                payload=job.payload,
                order_number=job.order_number,
            )
            try:
                output = await job.activity(ctx)

                await self._publish_event(
                    JOB_SUCCEEDED,
                    execution_id,
                    job,
                    {"job_name": job.name, "attempts": attempts},
                )
                return JobResult(
                    name=job.name,
                    success=True,
                    attempts=attempts,
                    duration_ms=self._elapsed_ms(started_at),
                    output=output,
                )

            except Exception as exc:
                last_error = exc
                logger.warning(
                    f"[{execution_id}] Job {job.name} attempt {attempt}/{policy.max_attempts} "
                    f"failed: {exc}"
                )
                await self._publish_event(
                    JOB_ATTEMPT_FAILED,
                    execution_id,
                    job,
                    {"job_name": job.name, "attempt": attempt, "error": str(exc)},
                )

                # If we have more attempts, wait before retry
                if attempt < policy.max_attempts:
                    delay = policy.delay_for(attempt)
                    if delay > 0:
                        await asyncio.sleep(delay)

        # All attempts failed
        error_str = str(last_error) if last_error else "Unknown error"
        logger.error(
            f"[{execution_id}] Job {job.name} exhausted after {attempts} attempt(s): {error_str}",
            exc_info=last_error,
        )
        await self._publish_event(
            JOB_EXHAUSTED,
            execution_id,
            job,
            {
                "job_name": job.name,
                "order_number": job.order_number,
                "attempts": attempts,
                "error": error_str,
                "job_payload": dict(job.payload),
            },
        )

        return JobResult(
            name=job.name,
            success=False,
            attempts=attempts,
            duration_ms=self._elapsed_ms(started_at),
            error=error_str,
        )

    @staticmethod
    def _elapsed_ms(started_at: datetime) -> int:
        return int((_utc_now() - started_at).total_seconds() * 1000)

    async def _publish_event(
        self, name: str, execution_id: ExecutionID, job: Job, payload: dict[str, object]
    ) -> None:
        metadata = EventMetadata(
            execution_id=str(execution_id),
            service=self._service,
            operation=job.name,
            timestamp=_utc_now(),
        )
        await self._event_bus.publish(Event(name=name, payload=payload, metadata=metadata))
