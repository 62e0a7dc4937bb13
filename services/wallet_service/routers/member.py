"""Member wallet endpoints."""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.wallet_service.models import TransactionType
from services.wallet_service.schemas import TransactionListResponse, WalletResponse
from services.wallet_service.services.wallet_ops import (
    get_or_create_wallet,
    list_transactions,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/wallet", tags=["wallet"])


@router.get("/me", response_model=WalletResponse)
async def get_my_wallet(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Get the current user's wallet, creating an empty one on first access."""
    wallet = await get_or_create_wallet(db, current_user.user_id)
    await db.commit()
    return wallet


@router.get("/me/transactions", response_model=TransactionListResponse)
async def get_my_transactions(
    transaction_type: Optional[TransactionType] = None,
    sort_by: Literal["created_at", "amount"] = "created_at",
    order: Literal["asc", "desc"] = "desc",
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Paginated ledger for the current user."""
    rows, total = await list_transactions(
        db,
        current_user.user_id,
        transaction_type=transaction_type,
        sort_by=sort_by,
        descending=order == "desc",
        skip=skip,
        limit=limit,
    )
    return TransactionListResponse(
        transactions=rows, total=total, skip=skip, limit=limit
    )
