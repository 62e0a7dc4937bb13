"""Payments Service schemas package."""

from services.payments_service.schemas.main import (
    CreatePaymentIntentRequest,
    PaymentIntentResponse,
    PaymentListResponse,
    PaymentResponse,
    VerifyPaymentRequest,
)

__all__ = [
    "CreatePaymentIntentRequest",
    "PaymentIntentResponse",
    "PaymentListResponse",
    "PaymentResponse",
    "VerifyPaymentRequest",
]
