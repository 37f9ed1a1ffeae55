"""Application DTOs for stock and operator alerts."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from fulfillment.domain.entities.alert import OperatorAlert


class StockLevelDTO(BaseModel):
    product_id: str
    variant: str
    quantity: int

    model_config = {"frozen": True}


class RestockRequest(BaseModel):
    quantity: int = Field(..., gt=0)

    model_config = {"frozen": True}


class OperatorAlertDTO(BaseModel):
    id: int
    kind: str
    order_number: Optional[str] = None
    detail: Dict[str, Any] = Field(default_factory=dict)
    resolved: bool
    created_at: datetime

    model_config = {"frozen": True}

    @classmethod
    def from_alert(cls, alert: OperatorAlert) -> "OperatorAlertDTO":
        return cls(
            id=alert.id,
            kind=alert.kind,
            order_number=alert.order_number,
            detail=alert.detail,
            resolved=alert.resolved,
            created_at=alert.created_at,
        )
