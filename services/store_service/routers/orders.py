"""Store orders router: place, view and cancel orders, and request returns."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.models import OrderStatus
from services.store_service.schemas import (
    OrderListResponse,
    OrderResponse,
    PlaceOrderRequest,
    ReturnListResponse,
    ReturnRequestCreate,
    ReturnResponse,
)
from services.store_service.services import order_service, return_service
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])


# ============================================================================
# ORDERS
# ============================================================================


@router.post("/orders", response_model=OrderResponse, status_code=201)
async def place_order(
    data: PlaceOrderRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Finalize a checkout session into an order."""
    return await order_service.create_order(
        db,
        user_id=current_user.user_id,
        session_id=data.session_id,
        payment_method=data.payment_method,
    )


@router.get("/orders", response_model=OrderListResponse)
async def list_my_orders(
    status: Optional[OrderStatus] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    orders, total = await order_service.list_orders(
        db, user_id=current_user.user_id, status=status, skip=skip, limit=limit
    )
    return OrderListResponse(items=orders, total=total)


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_my_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await order_service.get_order(db, order_id, user_id=current_user.user_id)


@router.post("/orders/{order_id}/cancel", response_model=OrderResponse)
async def cancel_my_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await order_service.cancel_order(
        db, order_id=order_id, user_id=current_user.user_id
    )


# ============================================================================
# RETURNS
# ============================================================================


@router.post("/orders/{order_id}/return", response_model=ReturnResponse, status_code=201)
async def request_return(
    order_id: uuid.UUID,
    data: ReturnRequestCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await return_service.request_return(
        db, user_id=current_user.user_id, order_id=order_id, reason=data.reason
    )


@router.get("/orders/{order_id}/return", response_model=ReturnResponse)
async def get_my_return(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await return_service.get_return_for_order(
        db, order_id=order_id, user_id=current_user.user_id
    )


@router.get("/returns", response_model=ReturnListResponse)
async def list_my_returns(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    returns, total = await return_service.list_returns(
        db, user_id=current_user.user_id, skip=skip, limit=limit
    )
    return ReturnListResponse(items=returns, total=total)
