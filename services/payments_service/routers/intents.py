"""Member payment endpoints: gateway intents and checkout callback verification."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.currency import rupees_to_paise
from libs.db.session import get_async_db
from services.payments_service.models import PaymentStatus
from services.payments_service.razorpay_client import RazorpayClient, get_gateway_client
from services.payments_service.schemas import (
    CreatePaymentIntentRequest,
    PaymentIntentResponse,
    PaymentListResponse,
    PaymentResponse,
    VerifyPaymentRequest,
)
from services.payments_service.services import payment_ops
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/intents", response_model=PaymentIntentResponse)
async def create_payment_intent(
    payload: CreatePaymentIntentRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    gateway: RazorpayClient = Depends(get_gateway_client),
):
    """Create (or reuse) the gateway order for an online order awaiting payment."""
    payment = await payment_ops.create_payment_intent(
        db, gateway, user_id=current_user.user_id, order_id=payload.order_id
    )
    return PaymentIntentResponse(
        payment_id=payment.id,
        order_id=payment.order_id,
        gateway_order_id=payment.gateway_order_id,
        key_id=gateway.config.key_id,
        amount=rupees_to_paise(payment.amount),
        currency=payment.currency,
        expires_at=payment.expires_at,
    )


@router.post("/verify", response_model=PaymentResponse)
async def verify_payment(
    payload: VerifyPaymentRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    gateway: RazorpayClient = Depends(get_gateway_client),
):
    """Confirm a payment from the signed checkout callback. Safe to retry."""
    return await payment_ops.verify_payment(
        db,
        gateway,
        gateway_order_id=payload.gateway_order_id,
        gateway_payment_id=payload.gateway_payment_id,
        signature=payload.signature,
        user_id=current_user.user_id,
    )


@router.get("/me", response_model=PaymentListResponse)
async def list_my_payments(
    status: Optional[PaymentStatus] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    payments, total = await payment_ops.list_payments(
        db, user_id=current_user.user_id, status=status, skip=skip, limit=limit
    )
    return PaymentListResponse(items=payments, total=total)


@router.get("/orders/{order_id}", response_model=list[PaymentResponse])
async def list_order_payments(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await payment_ops.get_payments_for_order(
        db, order_id, user_id=current_user.user_id
    )
