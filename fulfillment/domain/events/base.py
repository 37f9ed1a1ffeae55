"""
Base Domain Event.

All domain events inherit from this base class.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional
import uuid

_BASE_FIELDS = (
    'event_id', 'event_type', 'aggregate_id', 'execution_id', 'occurred_at'
)


@dataclass
class DomainEvent:
    """
    Base class for all domain events.

    Events are immutable records of things that have happened.
    They are collected on aggregates and published after commit.
    """

    # Event metadata
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str = field(init=False)

    # Aggregate information
    aggregate_id: str = field(default="")

    # Execution context
    execution_id: Optional[str] = None

    # Timestamp
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        """Set event type from class name."""
        object.__setattr__(self, 'event_type', self.__class__.__name__)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert event to dictionary for serialization.

        Returns:
            Dictionary representation of event
        """
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "aggregate_id": self.aggregate_id,
            "execution_id": self.execution_id,
            "occurred_at": self.occurred_at.isoformat(),
            "data": self._get_event_data(),
        }

    def _get_event_data(self) -> Dict[str, Any]:
        """Event-specific payload with JSON-friendly values."""
        data = {}

        for key, value in self.__dict__.items():
            if key in _BASE_FIELDS:
                continue
            if isinstance(value, Decimal):
                data[key] = str(value)
            elif isinstance(value, Enum):
                data[key] = value.value
            elif isinstance(value, datetime):
                data[key] = value.isoformat()
            else:
                data[key] = value

        return data
