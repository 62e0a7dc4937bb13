"""Admin wallet management endpoints."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.errors import ValidationFailed
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.wallet_service.models import TransactionType
from services.wallet_service.schemas import (
    AdjustBalanceRequest,
    BalanceReplayResponse,
    TransactionListResponse,
    WalletResponse,
)
from services.wallet_service.services.wallet_ops import (
    credit_wallet,
    debit_wallet,
    get_wallet,
    list_transactions,
    replay_balance,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/admin/wallet", tags=["admin-wallet"])


@router.get("/users/{user_id}", response_model=WalletResponse)
async def get_user_wallet(
    user_id: str,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await get_wallet(db, user_id)


@router.get("/users/{user_id}/transactions", response_model=TransactionListResponse)
async def get_user_transactions(
    user_id: str,
    transaction_type: Optional[TransactionType] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    rows, total = await list_transactions(
        db, user_id, transaction_type=transaction_type, skip=skip, limit=limit
    )
    return TransactionListResponse(
        transactions=rows, total=total, skip=skip, limit=limit
    )


@router.post("/users/{user_id}/adjust", response_model=WalletResponse)
async def adjust_balance(
    user_id: str,
    body: AdjustBalanceRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Manual credit/debit adjustment."""
    if body.amount == 0:
        raise ValidationFailed("Amount cannot be zero")

    entry = dict(
        user_id=user_id,
        amount=abs(body.amount),
        idempotency_key=body.idempotency_key
        or f"admin-adjust-{user_id}-{uuid.uuid4().hex}",
        transaction_type=TransactionType.ADJUSTMENT,
        reference_type="admin_adjustment",
        initiated_by=admin.user_id,
    )
    if body.amount > 0:
        await credit_wallet(
            db, description=f"Adjustment credited by admin: {body.reason}", **entry
        )
    else:
        await debit_wallet(
            db, description=f"Adjustment debited by admin: {body.reason}", **entry
        )

    logger.info(
        "Admin %s adjusted wallet of %s by %s: %s",
        admin.user_id,
        user_id,
        body.amount,
        body.reason,
    )
    return await get_wallet(db, user_id)


@router.get("/users/{user_id}/replay", response_model=BalanceReplayResponse)
async def replay_user_balance(
    user_id: str,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Compare the cached balance with the sum of the ledger."""
    wallet = await get_wallet(db, user_id)
    replayed = await replay_balance(db, user_id)
    if replayed != wallet.balance:
        logger.error(
            "Wallet %s balance %s does not match ledger total %s",
            wallet.id,
            wallet.balance,
            replayed,
        )
    return BalanceReplayResponse(
        user_id=user_id,
        balance=wallet.balance,
        replayed_balance=replayed,
        consistent=replayed == wallet.balance,
    )
