"""Store checkout router: sessions, shipping address and coupons."""

import uuid

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.schemas import (
    ApplyCouponRequest,
    BindAddressRequest,
    CheckoutSessionResponse,
    CheckoutSummaryResponse,
    ShippingAddressResponse,
)
from services.store_service.services import checkout_service, coupon_service
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/checkout", tags=["store"])


@router.post("/sessions", response_model=CheckoutSessionResponse)
async def start_checkout(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Return the pending checkout session, snapshotting the cart if there is none."""
    return await checkout_service.get_or_create_session(db, user_id=current_user.user_id)


@router.get("/sessions/{session_id}", response_model=CheckoutSummaryResponse)
async def get_checkout_summary(
    session_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    session, address = await checkout_service.get_session_summary(
        db, user_id=current_user.user_id, session_id=session_id
    )
    summary = CheckoutSummaryResponse.model_validate(session)
    if address:
        summary.shipping_address = ShippingAddressResponse.model_validate(address)
    return summary


@router.put("/sessions/{session_id}/address", response_model=ShippingAddressResponse)
async def bind_shipping_address(
    session_id: uuid.UUID,
    data: BindAddressRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await checkout_service.bind_address(
        db,
        user_id=current_user.user_id,
        session_id=session_id,
        address_id=data.address_id,
        new_address=data.new_address.model_dump() if data.new_address else None,
    )


@router.post("/sessions/{session_id}/coupon", response_model=CheckoutSessionResponse)
async def apply_coupon(
    session_id: uuid.UUID,
    data: ApplyCouponRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await coupon_service.apply_coupon(
        db, user_id=current_user.user_id, session_id=session_id, code=data.code
    )


@router.delete("/sessions/{session_id}/coupon", response_model=CheckoutSessionResponse)
async def remove_coupon(
    session_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await coupon_service.remove_coupon(
        db, user_id=current_user.user_id, session_id=session_id
    )


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def abandon_checkout(
    session_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    await checkout_service.abandon_session(
        db, user_id=current_user.user_id, session_id=session_id
    )
