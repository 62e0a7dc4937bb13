"""Admin payment endpoints."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.payments_service.models import PaymentStatus
from services.payments_service.schemas import PaymentListResponse, PaymentResponse
from services.payments_service.services import payment_ops
from services.wallet_service.services import wallet_ops
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/admin/payments", tags=["admin-payments"])


@router.get("", response_model=PaymentListResponse)
async def list_payments(
    status: Optional[PaymentStatus] = None,
    user_id: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    payments, total = await payment_ops.list_payments(
        db, user_id=user_id, status=status, skip=skip, limit=limit
    )
    return PaymentListResponse(items=payments, total=total)


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await payment_ops.get_payment(db, payment_id)


@router.post("/{payment_id}/refund", response_model=PaymentResponse)
async def refund_payment(
    payment_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Refund a captured payment to the payer's wallet."""
    await wallet_ops.initiate_refund(db, payment_id, initiated_by=current_user.user_id)
    return await payment_ops.get_payment(db, payment_id)
