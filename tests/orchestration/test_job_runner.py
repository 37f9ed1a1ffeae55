"""Tests for JobRunner - retry and exhaustion."""

import pytest

from orchestration.events import JOB_ATTEMPT_FAILED, JOB_EXHAUSTED, JOB_STARTED, JOB_SUCCEEDED
from orchestration.models import JobContext
from orchestration.runner import JobRunner
from orchestration.workflow import Job, RetryPolicy


class FakeEventBus:
    """Fake EventBus for testing."""

    def __init__(self) -> None:
        self.events: list[object] = []

    async def publish(self, event: object) -> None:
        """Store event."""
        self.events.append(event)

    def subscribe(self, event_name: str, handler: object) -> None:
        pass

    def names(self) -> list[str]:
        return [event.name for event in self.events]


@pytest.mark.asyncio
async def test_job_succeeds_after_transient_failures():
    """A job that fails twice then succeeds reports three attempts."""
    bus = FakeEventBus()
    runner = JobRunner(event_bus=bus, service="test")
    counter = {"n": 0}

    async def flaky(ctx: JobContext) -> str:
        counter["n"] += 1
        assert ctx.attempt == counter["n"]
        if counter["n"] < 3:
            raise ValueError("temporary error")
        return "ok"

    result = await runner.run(
        Job(name="flaky", activity=flaky, retry_policy=RetryPolicy(max_attempts=3, backoff_seconds=0.0))
    )

    assert result.success is True
    assert result.attempts == 3
    assert result.output == "ok"
    assert bus.names() == [JOB_STARTED, JOB_ATTEMPT_FAILED, JOB_ATTEMPT_FAILED, JOB_SUCCEEDED]


@pytest.mark.asyncio
async def test_job_exhaustion_publishes_event():
    """A job failing on every attempt publishes job.exhausted with its context."""
    bus = FakeEventBus()
    runner = JobRunner(event_bus=bus)
    counter = {"n": 0}

    async def failing(ctx: JobContext) -> None:
        counter["n"] += 1
        raise RuntimeError("always fails")

    result = await runner.run(
        Job(
            name="restore_stock",
            activity=failing,
            payload={"product_id": "oil-1"},
            retry_policy=RetryPolicy(max_attempts=2, backoff_seconds=0.0),
            order_number="ORD-1700000000000-000001",
        )
    )

    assert counter["n"] == 2
    assert result.success is False
    assert result.error == "always fails"

    exhausted = bus.events[-1]
    assert exhausted.name == JOB_EXHAUSTED
    assert exhausted.payload["job_name"] == "restore_stock"
    assert exhausted.payload["order_number"] == "ORD-1700000000000-000001"
    assert exhausted.payload["attempts"] == 2
    assert exhausted.payload["job_payload"] == {"product_id": "oil-1"}
    assert exhausted.metadata.operation == "restore_stock"


def test_retry_policy_backoff_is_capped():
    policy = RetryPolicy(max_attempts=5, backoff_seconds=1.0, multiplier=2.0, max_backoff_seconds=3.0)

    assert [policy.delay_for(attempt) for attempt in range(1, 5)] == [1.0, 2.0, 3.0, 3.0]
    assert RetryPolicy(backoff_seconds=0).delay_for(3) == 0.0
