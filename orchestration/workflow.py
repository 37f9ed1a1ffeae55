"""Job definitions - Activity, RetryPolicy, Job."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from .models import JobContext

# Type alias for job activities
Activity = Callable[[JobContext], Awaitable[object]]


@dataclass
class RetryPolicy:
    """Retry policy for background jobs (exponential backoff)."""

    max_attempts: int = 3
    backoff_seconds: float = 0.0
    multiplier: float = 2.0
    max_backoff_seconds: float = 3600.0

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given failed attempt (1-based)."""
        if self.backoff_seconds <= 0:
            return 0.0
        delay = self.backoff_seconds * (self.multiplier ** (attempt - 1))
        return min(delay, self.max_backoff_seconds)


@dataclass
class Job:
    """A unit of background work run by the JobRunner."""

    name: str
    activity: Activity
    payload: dict[str, object] = field(default_factory=dict)
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    order_number: str | None = None
