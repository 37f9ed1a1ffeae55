"""Operator alert entity."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


@dataclass
class OperatorAlert:
    """
    Escalation raised when automatic handling gave up.

    Written when compensation or a background job exhausts its retries,
    or when a payment event cannot be applied to the order automatically.
    """
    kind: str
    order_number: Optional[str]
    detail: Dict[str, Any] = field(default_factory=dict)
    resolved: bool = False
    id: Optional[int] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
