"""Coupon endpoints."""

from typing import List

from fastapi import APIRouter, Depends, Query

from apps.api.deps import get_coupon_engine
from fulfillment.application.dtos import CouponDTO, CreateCouponRequest, UpdateCouponRequest
from fulfillment.application.services import CouponEngine

router = APIRouter(prefix="/coupons", tags=["coupons"])


@router.post("", response_model=CouponDTO, status_code=201)
async def create_coupon(
    request: CreateCouponRequest,
    coupons: CouponEngine = Depends(get_coupon_engine),
) -> CouponDTO:
    return await coupons.create_coupon(request)


@router.get("", response_model=List[CouponDTO])
async def list_coupons(
    active_only: bool = Query(False),
    coupons: CouponEngine = Depends(get_coupon_engine),
) -> List[CouponDTO]:
    return await coupons.list_coupons(active_only=active_only)


@router.get("/{code}", response_model=CouponDTO)
async def get_coupon(
    code: str,
    coupons: CouponEngine = Depends(get_coupon_engine),
) -> CouponDTO:
    return await coupons.get_coupon(code)


@router.put("/{code}", response_model=CouponDTO)
async def update_coupon(
    code: str,
    request: UpdateCouponRequest,
    coupons: CouponEngine = Depends(get_coupon_engine),
) -> CouponDTO:
    """Change discount terms; omitted fields are left as they are."""
    return await coupons.update_coupon(code, request)


@router.post("/{code}/activate", response_model=CouponDTO)
async def activate_coupon(
    code: str,
    coupons: CouponEngine = Depends(get_coupon_engine),
) -> CouponDTO:
    return await coupons.set_active(code, True)


@router.post("/{code}/deactivate", response_model=CouponDTO)
async def deactivate_coupon(
    code: str,
    coupons: CouponEngine = Depends(get_coupon_engine),
) -> CouponDTO:
    return await coupons.set_active(code, False)
