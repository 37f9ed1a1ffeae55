"""Stock level endpoints."""

import logging

from fastapi import APIRouter, Depends

from apps.api.deps import get_stock_ledger
from fulfillment.application.dtos import RestockRequest, StockLevelDTO
from fulfillment.application.services import StockLedger

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/stock", tags=["stock"])


@router.get("/{product_id}/{variant}", response_model=StockLevelDTO)
async def get_stock(
    product_id: str,
    variant: str,
    ledger: StockLedger = Depends(get_stock_ledger),
) -> StockLevelDTO:
    quantity = await ledger.quantity(product_id, variant)
    return StockLevelDTO(product_id=product_id, variant=variant, quantity=quantity)


@router.post("/{product_id}/{variant}/restock", response_model=StockLevelDTO)
async def restock(
    product_id: str,
    variant: str,
    request: RestockRequest,
    ledger: StockLedger = Depends(get_stock_ledger),
) -> StockLevelDTO:
    """Add units to a variant, creating its entry if needed."""
    await ledger.restore(product_id, variant, request.quantity)
    logger.info(f"Restocked {request.quantity} x {product_id}/{variant}")
    quantity = await ledger.quantity(product_id, variant)
    return StockLevelDTO(product_id=product_id, variant=variant, quantity=quantity)
