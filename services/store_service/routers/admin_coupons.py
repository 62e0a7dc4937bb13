"""Admin coupon management router."""

import uuid

from fastapi import APIRouter, Depends, Query, status
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.schemas import (
    CouponCreate,
    CouponListResponse,
    CouponResponse,
    CouponUpdate,
    CouponUsageResponse,
)
from services.store_service.services import coupon_service
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/coupons", tags=["admin-store"])


@router.get("", response_model=CouponListResponse)
async def list_coupons(
    only_usable: bool = False,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    coupons, total = await coupon_service.list_coupons(
        db, only_usable=only_usable, skip=skip, limit=limit
    )
    return CouponListResponse(items=coupons, total=total)


@router.post("", response_model=CouponResponse, status_code=status.HTTP_201_CREATED)
async def create_coupon(
    data: CouponCreate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await coupon_service.create_coupon(db, **data.model_dump())


@router.get("/{coupon_id}", response_model=CouponResponse)
async def get_coupon(
    coupon_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await coupon_service.get_coupon(db, coupon_id)


@router.get("/{coupon_id}/usage", response_model=CouponUsageResponse)
async def get_coupon_usage(
    coupon_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    in_use = await coupon_service.is_coupon_in_use(db, coupon_id)
    return CouponUsageResponse(coupon_id=coupon_id, in_use=in_use)


@router.patch("/{coupon_id}", response_model=CouponResponse)
async def update_coupon(
    coupon_id: uuid.UUID,
    data: CouponUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await coupon_service.update_coupon(
        db, coupon_id, **data.model_dump(exclude_unset=True)
    )


@router.delete("/{coupon_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_coupon(
    coupon_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    await coupon_service.soft_delete_coupon(db, coupon_id)
