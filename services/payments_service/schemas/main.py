import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.payments_service.models import PaymentStatus
from services.store_service.models import PaymentMethod


class CreatePaymentIntentRequest(BaseModel):
    order_id: uuid.UUID


class PaymentIntentResponse(BaseModel):
    """Everything the client needs to open the gateway checkout."""

    payment_id: uuid.UUID
    order_id: uuid.UUID
    gateway_order_id: str
    key_id: str
    amount: int  # in paise
    currency: str
    expires_at: datetime


class VerifyPaymentRequest(BaseModel):
    gateway_order_id: str = Field(..., min_length=1, max_length=64)
    gateway_payment_id: str = Field(..., min_length=1, max_length=64)
    signature: str = Field(..., min_length=1, max_length=128)


class PaymentResponse(BaseModel):
    id: uuid.UUID
    order_id: uuid.UUID
    user_id: str
    amount: Decimal
    currency: str
    payment_method: PaymentMethod
    status: PaymentStatus
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    expires_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentListResponse(BaseModel):
    items: list[PaymentResponse]
    total: int
