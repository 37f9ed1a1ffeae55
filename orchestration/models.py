"""Orchestration models - JobContext, JobResult."""

from dataclasses import dataclass, field
from datetime import datetime

from fulfillment.domain.value_objects import ExecutionID


@dataclass
class JobContext:
    """Context object handed to a job activity on every attempt."""

    execution_id: ExecutionID
    job_name: str
    attempt: int
    started_at: datetime
    payload: dict[str, object] = field(default_factory=dict)
    order_number: str | None = None


@dataclass
class JobResult:
    """Result of a job run across all of its attempts."""

    name: str
    success: bool
    attempts: int
    duration_ms: int
    error: str | None = None
    output: object = None
