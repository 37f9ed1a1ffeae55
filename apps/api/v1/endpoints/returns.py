"""Return endpoints, nested under their order."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends

from apps.api.deps import get_return_service
from fulfillment.application.dtos import CreateReturnRequest, ReturnDecisionRequest, ReturnDTO
from fulfillment.application.services import ReturnService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders/{order_number}/returns", tags=["returns"])


@router.post("", response_model=ReturnDTO, status_code=201)
async def request_return(
    order_number: str,
    request: CreateReturnRequest,
    service: ReturnService = Depends(get_return_service),
) -> ReturnDTO:
    """Ask to send back delivered units.

    Args:
        order_number: Delivered order
        request: Lines being returned and the customer's reason

    Returns:
        The return request, awaiting a decision
    """
    return await service.request_return(order_number, request)


@router.get("", response_model=List[ReturnDTO])
async def list_returns(
    order_number: str,
    service: ReturnService = Depends(get_return_service),
) -> List[ReturnDTO]:
    return await service.list_returns(order_number)


@router.get("/{return_id}", response_model=ReturnDTO)
async def get_return(
    order_number: str,
    return_id: int,
    service: ReturnService = Depends(get_return_service),
) -> ReturnDTO:
    return await service.get_return(order_number, return_id)


@router.post("/{return_id}/approve", response_model=ReturnDTO)
async def approve_return(
    order_number: str,
    return_id: int,
    request: Optional[ReturnDecisionRequest] = Body(None),
    service: ReturnService = Depends(get_return_service),
) -> ReturnDTO:
    """Refund the returned units and put them back in stock."""
    return await service.approve_return(order_number, return_id, request.note if request else None)


@router.post("/{return_id}/reject", response_model=ReturnDTO)
async def reject_return(
    order_number: str,
    return_id: int,
    request: Optional[ReturnDecisionRequest] = Body(None),
    service: ReturnService = Depends(get_return_service),
) -> ReturnDTO:
    return await service.reject_return(order_number, return_id, request.note if request else None)
