"""Order endpoints for REST API."""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query

from apps.api.deps import get_order_service, get_payment_service, get_transaction_log
from fulfillment.application.dtos import (
    CancelOrderRequest,
    ChargeRequest,
    ConfirmPaymentRequest,
    CreateOrderRequest,
    OrderDTO,
    OrderListDTO,
    PaymentOutcomeDTO,
    RefundRecordDTO,
    RefundRequest,
    TransactionDTO,
    UpdateStatusRequest,
)
from fulfillment.application.services import (
    OrderApplicationService,
    PaymentService,
    TransactionLog,
)
from fulfillment.domain.enums import OrderStatus

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderDTO, status_code=201)
async def create_order(
    request: CreateOrderRequest,
    service: OrderApplicationService = Depends(get_order_service),
) -> OrderDTO:
    """Create a new order.

    Args:
        request: CreateOrderRequest DTO
        service: OrderApplicationService instance

    Returns:
        OrderDTO with created order details
    """
    return await service.create_order(request)


@router.get("", response_model=OrderListDTO)
async def list_orders(
    status: Optional[OrderStatus] = Query(None, description="Filter by status"),
    customer_id: Optional[str] = Query(None, description="Filter by customer"),
    date_from: Optional[datetime] = Query(None, description="Created at or after"),
    date_to: Optional[datetime] = Query(None, description="Created at or before"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100, description="Maximum number of orders"),
    service: OrderApplicationService = Depends(get_order_service),
) -> OrderListDTO:
    """List orders newest first."""
    return await service.list_orders(
        status=status,
        customer_id=customer_id,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )


@router.get("/{order_number}", response_model=OrderDTO)
async def get_order(
    order_number: str,
    service: OrderApplicationService = Depends(get_order_service),
) -> OrderDTO:
    return await service.get_order(order_number)


@router.post("/{order_number}/accept", response_model=OrderDTO)
async def accept_order(
    order_number: str,
    service: OrderApplicationService = Depends(get_order_service),
) -> OrderDTO:
    """Deduct stock and move the order to processing."""
    return await service.accept_order(order_number)


@router.put("/{order_number}/status", response_model=OrderDTO)
async def update_status(
    order_number: str,
    request: UpdateStatusRequest,
    service: OrderApplicationService = Depends(get_order_service),
) -> OrderDTO:
    return await service.transition_status(order_number, request.status, request.tracking_number)


@router.post("/{order_number}/cancel", response_model=OrderDTO)
async def cancel_order(
    order_number: str,
    request: Optional[CancelOrderRequest] = Body(None),
    service: OrderApplicationService = Depends(get_order_service),
) -> OrderDTO:
    return await service.cancel_order(order_number, request.reason if request else None)


@router.post("/{order_number}/refund", response_model=RefundRecordDTO)
async def refund_order(
    order_number: str,
    request: RefundRequest,
    service: OrderApplicationService = Depends(get_order_service),
) -> RefundRecordDTO:
    """Refund part or all of a shipped or delivered order."""
    return await service.refund_order(order_number, request.amount, request.reason)


@router.post("/{order_number}/payments", response_model=PaymentOutcomeDTO)
async def charge_order(
    order_number: str,
    request: Optional[ChargeRequest] = Body(None),
    service: PaymentService = Depends(get_payment_service),
) -> PaymentOutcomeDTO:
    """Start a charge for the order total."""
    details = request.payment_details if request else {}
    return await service.charge(order_number, details)


@router.post("/{order_number}/payments/confirm", response_model=PaymentOutcomeDTO)
async def confirm_payment(
    order_number: str,
    request: ConfirmPaymentRequest,
    service: PaymentService = Depends(get_payment_service),
) -> PaymentOutcomeDTO:
    """Complete a charge the customer approved on the processor's checkout page."""
    return await service.confirm(order_number, request.confirmation)


@router.get("/{order_number}/transactions", response_model=List[TransactionDTO])
async def list_transactions(
    order_number: str,
    log: TransactionLog = Depends(get_transaction_log),
) -> List[TransactionDTO]:
    return await log.history(order_number)
