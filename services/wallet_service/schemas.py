"""Pydantic schemas for wallet service."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.wallet_service.models import TransactionDirection, TransactionType


class WalletResponse(BaseModel):
    id: uuid.UUID
    user_id: str
    balance: Decimal
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionResponse(BaseModel):
    id: uuid.UUID
    transaction_type: TransactionType
    direction: TransactionDirection
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    description: str
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    initiated_by: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse]
    total: int
    skip: int
    limit: int


class AdjustBalanceRequest(BaseModel):
    amount: Decimal = Field(..., description="Positive to credit, negative to debit")
    reason: str = Field(..., min_length=5)
    idempotency_key: Optional[str] = Field(None, max_length=255)


class BalanceReplayResponse(BaseModel):
    user_id: str
    balance: Decimal
    replayed_balance: Decimal
    consistent: bool
