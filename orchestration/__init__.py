"""Orchestration layer - background jobs with bounded retries and lifecycle events."""

from .bus import EventBusProtocol, InMemoryEventBus
from .events import JOB_EXHAUSTED, Event, EventMetadata
from .models import JobContext, JobResult
from .queue import BackgroundJobQueue
from .runner import JobRunner
from .workflow import Activity, Job, RetryPolicy

__all__ = [
    "Activity",
    "BackgroundJobQueue",
    "Event",
    "EventBusProtocol",
    "EventMetadata",
    "InMemoryEventBus",
    "JOB_EXHAUSTED",
    "Job",
    "JobContext",
    "JobResult",
    "JobRunner",
    "RetryPolicy",
    "create_job_queue",
]


def create_job_queue(event_bus: EventBusProtocol | None = None) -> BackgroundJobQueue:
    """Create a job queue backed by a runner on the given (or a new in-memory) bus.

    Args:
        event_bus: Bus receiving job lifecycle events

    Returns:
        BackgroundJobQueue instance
    """
    bus = event_bus or InMemoryEventBus()
    return BackgroundJobQueue(JobRunner(event_bus=bus))
