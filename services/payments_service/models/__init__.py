"""Payments Service models package."""

from services.payments_service.models.core import Payment
from services.payments_service.models.enums import PAYMENT_TRANSITIONS, PaymentStatus

__all__ = [
    "PAYMENT_TRANSITIONS",
    "Payment",
    "PaymentStatus",
]
