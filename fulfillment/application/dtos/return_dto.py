"""Application DTOs for customer returns."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from fulfillment.domain.entities.return_request import ReturnRequest
from fulfillment.domain.enums import ReturnStatus


class ReturnLineRequest(BaseModel):
    product_id: str = Field(..., min_length=1)
    variant: Optional[str] = Field(None, description="Required when the order holds several variants")
    quantity: int = Field(..., gt=0)

    model_config = {"frozen": True}


class CreateReturnRequest(BaseModel):
    items: List[ReturnLineRequest] = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=1000)

    model_config = {"frozen": True}


class ReturnDecisionRequest(BaseModel):
    note: Optional[str] = Field(None, max_length=1000)

    model_config = {"frozen": True}


class ReturnItemDTO(BaseModel):
    product_id: str
    variant: str
    quantity: int

    model_config = {"frozen": True}


class ReturnDTO(BaseModel):
    """Return request with its refund, once decided."""

    id: int
    order_number: str
    status: ReturnStatus
    items: List[ReturnItemDTO]
    refund_amount: Decimal = Field(..., description="Value of the returned units after discount")
    refunded_amount: Optional[Decimal] = None
    currency: str
    refund_id: Optional[str] = None
    reason: Optional[str] = None
    decision_note: Optional[str] = None
    created_at: datetime
    decided_at: Optional[datetime] = None

    model_config = {"frozen": True}

    @classmethod
    def from_return(cls, request: ReturnRequest) -> "ReturnDTO":
        return cls(
            id=request.id,
            order_number=request.order_number,
            status=request.status,
            items=[
                ReturnItemDTO(product_id=item.product_id, variant=item.variant, quantity=item.quantity)
                for item in request.items
            ],
            refund_amount=request.refund_amount.amount,
            refunded_amount=request.refunded_amount.amount if request.refunded_amount else None,
            currency=request.refund_amount.currency,
            refund_id=request.refund_id,
            reason=request.reason,
            decision_note=request.decision_note,
            created_at=request.created_at,
            decided_at=request.decided_at,
        )
