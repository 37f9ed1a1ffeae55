"""Orchestration events - Event, EventMetadata."""

from dataclasses import dataclass
from datetime import datetime

JOB_STARTED = "job.started"
JOB_SUCCEEDED = "job.succeeded"
JOB_ATTEMPT_FAILED = "job.attempt_failed"
JOB_EXHAUSTED = "job.exhausted"


@dataclass
class EventMetadata:
    """Metadata for an event."""

    execution_id: str
    service: str
    operation: str | None
    timestamp: datetime


@dataclass
class Event:
    """Job lifecycle event."""

    name: str
    payload: dict[str, object]
    metadata: EventMetadata
