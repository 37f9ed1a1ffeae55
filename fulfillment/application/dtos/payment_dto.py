"""Application DTOs for payments, transactions and refunds."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from fulfillment.application.interfaces import ChargeStatus
from fulfillment.domain.entities.transaction import Transaction
from fulfillment.domain.enums import OrderStatus, PaymentMethod, PaymentStatus, TransactionStatus


class TransactionDTO(BaseModel):
    """Transaction as exposed outside the service; gateway fields are masked."""

    id: int
    order_number: str
    payment_method: PaymentMethod
    gateway: Optional[str] = None
    amount: Decimal
    currency: str
    status: TransactionStatus
    gateway_transaction_id: Optional[str] = Field(None, description="Masked gateway identifier")
    receipt_url: Optional[str] = Field(None, description="Masked receipt URL")
    refunded_amount: Decimal
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"frozen": True}

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> "TransactionDTO":
        return cls(
            id=transaction.id,
            order_number=transaction.order_number,
            payment_method=transaction.payment_method,
            gateway=transaction.gateway,
            amount=transaction.amount.amount,
            currency=transaction.amount.currency,
            status=transaction.status,
            gateway_transaction_id=transaction.masked_gateway_transaction_id,
            receipt_url=transaction.masked_receipt_url,
            refunded_amount=transaction.refunded_amount,
            created_at=transaction.created_at,
            updated_at=transaction.updated_at,
        )


class ChargeRequest(BaseModel):
    """Gateway-specific payment details (e.g. a Stripe payment_method id)."""

    payment_details: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


class ConfirmPaymentRequest(BaseModel):
    """What the client got back from the processor's checkout page."""

    confirmation: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


class PaymentOutcomeDTO(BaseModel):
    outcome: ChargeStatus
    order_status: OrderStatus
    payment_status: PaymentStatus
    transaction: TransactionDTO
    next_action: Dict[str, Any] = Field(
        default_factory=dict,
        description="Values the client needs to finish a pending payment (approval URL, checkout ids)",
    )

    model_config = {"frozen": True}


class RefundRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    reason: Optional[str] = Field(None, max_length=1000)

    model_config = {"frozen": True}


class RefundRecordDTO(BaseModel):
    order_number: str
    amount: Decimal
    refund_id: Optional[str] = None
    total_refunded: Decimal
    refundable: Decimal
    order_status: OrderStatus
    payment_status: PaymentStatus
    fully_refunded: bool
    reason: Optional[str] = None

    model_config = {"frozen": True}
