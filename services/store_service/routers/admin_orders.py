"""Admin order and return management router."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.models import OrderStatus, ReturnStatus
from services.store_service.schemas import (
    DeliveryStatusUpdate,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    ReturnListResponse,
    ReturnResponse,
    ReturnReview,
)
from services.store_service.services import order_service, return_service
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["admin-store"])


# ============================================================================
# ORDERS
# ============================================================================


@router.get("/orders", response_model=OrderListResponse)
async def list_orders(
    status: Optional[OrderStatus] = None,
    user_id: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    orders, total = await order_service.list_orders(
        db, user_id=user_id, status=status, skip=skip, limit=limit
    )
    return OrderListResponse(items=orders, total=total)


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await order_service.get_order(db, order_id)


@router.patch("/orders/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: uuid.UUID,
    data: OrderStatusUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await order_service.update_order_status(db, order_id, data.status)


@router.patch("/orders/{order_id}/delivery", response_model=OrderResponse)
async def update_delivery_status(
    order_id: uuid.UUID,
    data: DeliveryStatusUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await order_service.update_delivery_status(
        db, order_id, data.delivery_status
    )


@router.post("/orders/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Cancel without the customer cancellation window."""
    return await order_service.cancel_order(db, order_id=order_id)


# ============================================================================
# RETURNS
# ============================================================================


@router.get("/returns", response_model=ReturnListResponse)
async def list_returns(
    status: Optional[ReturnStatus] = ReturnStatus.REQUESTED,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Returns awaiting review by default; pass another status to filter."""
    returns, total = await return_service.list_returns(
        db, status=status, skip=skip, limit=limit
    )
    return ReturnListResponse(items=returns, total=total)


@router.get("/returns/{return_id}", response_model=ReturnResponse)
async def get_return(
    return_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await return_service.get_return(db, return_id)


@router.post("/returns/{return_id}/review", response_model=ReturnResponse)
async def review_return(
    return_id: uuid.UUID,
    data: ReturnReview,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await return_service.review_return(db, return_id, approve=data.approve)


@router.post("/returns/{return_id}/received", response_model=ReturnResponse)
async def mark_returned_to_seller(
    return_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await return_service.mark_returned_to_seller(db, return_id)


@router.post("/returns/{return_id}/restock", response_model=ReturnResponse)
async def restock_return(
    return_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Restock the items, then credit the refund to the customer's wallet."""
    return await return_service.restock_return(db, return_id)


@router.post("/returns/{return_id}/refund", response_model=ReturnResponse)
async def initiate_return_refund(
    return_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Retry the wallet refund for a restocked return."""
    return await return_service.initiate_return_refund(db, return_id)


@router.post("/returns/{return_id}/complete", response_model=ReturnResponse)
async def complete_return_refund(
    return_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await return_service.complete_return_refund(db, return_id)
