"""Core wallet operations: ledger entries with idempotency and row-level locking.

``credit_and_log`` / ``debit_and_log`` only flush, so they can join a larger
saga transaction (order cancellation, return refund). The ``credit_wallet`` /
``debit_wallet`` wrappers commit on their own.
"""

import uuid
from decimal import Decimal
from typing import Optional

from libs.common.currency import ZERO, quantize_money
from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    InsufficientWalletBalance,
    NotRefundable,
    PaymentNotFound,
    ValidationFailed,
    WalletNotFound,
)
from libs.common.logging import get_logger
from libs.common.status import ensure_transition
from services.payments_service.models import (
    PAYMENT_TRANSITIONS,
    Payment,
    PaymentStatus,
)
from services.store_service.models import Order, RefundStatus
from services.wallet_service.models import (
    TransactionDirection,
    TransactionType,
    Wallet,
    WalletTransaction,
)
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Wallet lookup / creation
# ---------------------------------------------------------------------------


async def get_wallet(db: AsyncSession, user_id: str) -> Wallet:
    """Get wallet by user ID. Raises WalletNotFound."""
    result = await db.execute(select(Wallet).where(Wallet.user_id == user_id))
    wallet = result.scalar_one_or_none()
    if not wallet:
        raise WalletNotFound()
    return wallet


async def get_or_create_wallet(
    db: AsyncSession, user_id: str, *, lock: bool = False
) -> Wallet:
    """Return the user's wallet, creating an empty one if needed (flush only)."""
    query = select(Wallet).where(Wallet.user_id == user_id)
    if lock:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(query)
    wallet = result.scalar_one_or_none()
    if wallet:
        return wallet

    wallet = Wallet(user_id=user_id, balance=ZERO)
    db.add(wallet)
    await db.flush()
    logger.info("Created wallet %s for user %s", wallet.id, user_id)
    return wallet


async def get_balance(db: AsyncSession, user_id: str) -> Decimal:
    wallet = await get_or_create_wallet(db, user_id)
    await db.commit()
    return wallet.balance


# ---------------------------------------------------------------------------
# Ledger entries (flush only)
# ---------------------------------------------------------------------------


async def _append_entry(
    db: AsyncSession,
    *,
    user_id: str,
    amount: Decimal,
    direction: TransactionDirection,
    idempotency_key: str,
    transaction_type: TransactionType,
    description: str,
    reference_type: Optional[str],
    reference_id: Optional[str],
    initiated_by: Optional[str],
) -> WalletTransaction:
    """Lock the wallet, append one ledger row and move the cached balance.

    1. Idempotency check: return the existing transaction if the key exists
    2. SELECT FOR UPDATE on the wallet row (created on first use)
    3. Insert the transaction with balance snapshots
    4. Update the cached balance
    """
    amount = quantize_money(amount)
    if amount <= 0:
        raise ValidationFailed("Amount must be positive")

    result = await db.execute(
        select(WalletTransaction).where(
            WalletTransaction.idempotency_key == idempotency_key
        )
    )
    existing = result.scalar_one_or_none()
    if existing:
        logger.info(
            "Idempotent replay for key=%s -> txn=%s", idempotency_key, existing.id
        )
        return existing

    wallet = await get_or_create_wallet(db, user_id, lock=True)

    signed = amount if direction == TransactionDirection.CREDIT else -amount
    balance_before = wallet.balance
    balance_after = balance_before + signed
    if balance_after < 0:
        raise InsufficientWalletBalance(
            f"Wallet balance {balance_before} is below debit {amount}"
        )

    txn = WalletTransaction(
        wallet_id=wallet.id,
        user_id=user_id,
        idempotency_key=idempotency_key,
        transaction_type=transaction_type,
        direction=direction,
        amount=signed,
        balance_before=balance_before,
        balance_after=balance_after,
        description=description,
        reference_type=reference_type,
        reference_id=reference_id,
        initiated_by=initiated_by,
    )
    db.add(txn)

    wallet.balance = balance_after
    wallet.updated_at = utc_now()
    await db.flush()

    logger.info(
        "%s %s on wallet %s (key=%s), balance %s->%s",
        direction.value.capitalize(),
        amount,
        wallet.id,
        idempotency_key,
        balance_before,
        balance_after,
    )
    return txn


async def credit_and_log(
    db: AsyncSession,
    *,
    user_id: str,
    amount: Decimal,
    idempotency_key: str,
    transaction_type: TransactionType = TransactionType.REFUND,
    description: str,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    initiated_by: Optional[str] = None,
) -> WalletTransaction:
    """Credit the wallet and append the ledger row in the caller's transaction."""
    return await _append_entry(
        db,
        user_id=user_id,
        amount=amount,
        direction=TransactionDirection.CREDIT,
        idempotency_key=idempotency_key,
        transaction_type=transaction_type,
        description=description,
        reference_type=reference_type,
        reference_id=reference_id,
        initiated_by=initiated_by,
    )


async def debit_and_log(
    db: AsyncSession,
    *,
    user_id: str,
    amount: Decimal,
    idempotency_key: str,
    transaction_type: TransactionType = TransactionType.PURCHASE,
    description: str,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    initiated_by: Optional[str] = None,
) -> WalletTransaction:
    """Debit the wallet; the balance may never go negative."""
    return await _append_entry(
        db,
        user_id=user_id,
        amount=amount,
        direction=TransactionDirection.DEBIT,
        idempotency_key=idempotency_key,
        transaction_type=transaction_type,
        description=description,
        reference_type=reference_type,
        reference_id=reference_id,
        initiated_by=initiated_by,
    )


# ---------------------------------------------------------------------------
# Committing wrappers
# ---------------------------------------------------------------------------


async def credit_wallet(db: AsyncSession, **kwargs) -> WalletTransaction:
    """Atomically credit a wallet (own transaction)."""
    try:
        txn = await credit_and_log(db, **kwargs)
        await db.commit()
    except BaseException:
        await db.rollback()
        raise
    return txn


async def debit_wallet(db: AsyncSession, **kwargs) -> WalletTransaction:
    """Atomically debit a wallet (own transaction)."""
    try:
        txn = await debit_and_log(db, **kwargs)
        await db.commit()
    except BaseException:
        await db.rollback()
        raise
    return txn


# ---------------------------------------------------------------------------
# Refunds
# ---------------------------------------------------------------------------


async def refund_payment_to_wallet(
    db: AsyncSession,
    payment: Payment,
    *,
    description: str,
    reference_type: str = "payment",
    reference_id: Optional[str] = None,
    initiated_by: Optional[str] = None,
) -> WalletTransaction:
    """Credit a paid payment's amount to its owner and mark it refunded.

    Flush only. The payment row must already be locked by the caller; the
    ``paid -> refunded`` guard is what prevents a second refund.
    """
    if payment.status != PaymentStatus.PAID:
        raise NotRefundable(
            f"Payment {payment.id} is {payment.status.value}, only paid payments refund"
        )
    ensure_transition(
        "payment", PAYMENT_TRANSITIONS, payment.status, PaymentStatus.REFUNDED
    )

    txn = await credit_and_log(
        db,
        user_id=payment.user_id,
        amount=payment.amount,
        idempotency_key=f"refund-payment-{payment.id}",
        transaction_type=TransactionType.REFUND,
        description=description,
        reference_type=reference_type,
        reference_id=reference_id or str(payment.order_id),
        initiated_by=initiated_by,
    )
    payment.status = PaymentStatus.REFUNDED
    payment.refunded_at = utc_now()
    await db.flush()
    return txn


async def initiate_refund(
    db: AsyncSession,
    payment_id: uuid.UUID,
    *,
    initiated_by: Optional[str] = None,
) -> WalletTransaction:
    """Refund a paid payment to the wallet in one transaction.

    Raises NotRefundable when the payment is not ``paid`` (including a
    payment that has already been refunded); the wallet is left untouched.
    """
    try:
        order_id = (
            await db.execute(select(Payment.order_id).where(Payment.id == payment_id))
        ).scalar_one_or_none()
        if order_id is None:
            raise PaymentNotFound()

        # Order before payment.
        order = (
            await db.execute(
                select(Order)
                .where(Order.id == order_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        payment = (
            await db.execute(
                select(Payment)
                .where(Payment.id == payment_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one()

        txn = await refund_payment_to_wallet(
            db,
            payment,
            description=f"Refund for order {payment.order_id}",
            initiated_by=initiated_by,
        )
        if order is not None:
            order.refund_status = RefundStatus.COMPLETED

        await db.commit()
    except BaseException:
        await db.rollback()
        raise

    logger.info(
        "Refunded payment %s (%s) to wallet of %s",
        payment.id,
        payment.amount,
        payment.user_id,
    )
    return txn


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

SORTABLE_FIELDS = {
    "created_at": WalletTransaction.created_at,
    "amount": WalletTransaction.amount,
}


async def list_transactions(
    db: AsyncSession,
    user_id: str,
    *,
    transaction_type: Optional[TransactionType] = None,
    sort_by: str = "created_at",
    descending: bool = True,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[WalletTransaction], int]:
    """Paginated ledger for a user, newest first by default."""
    if sort_by not in SORTABLE_FIELDS:
        raise ValidationFailed(f"Cannot sort transactions by '{sort_by}'")

    query = select(WalletTransaction).where(WalletTransaction.user_id == user_id)
    count_query = (
        select(func.count())
        .select_from(WalletTransaction)
        .where(WalletTransaction.user_id == user_id)
    )
    if transaction_type:
        query = query.where(WalletTransaction.transaction_type == transaction_type)
        count_query = count_query.where(
            WalletTransaction.transaction_type == transaction_type
        )

    column = SORTABLE_FIELDS[sort_by]
    query = query.order_by(column.desc() if descending else column.asc())
    query = query.offset(skip).limit(limit)

    total = (await db.execute(count_query)).scalar_one()
    rows = (await db.execute(query)).scalars().all()
    return list(rows), total


async def replay_balance(db: AsyncSession, user_id: str) -> Decimal:
    """Recompute a balance from the ledger alone."""
    result = await db.execute(
        select(WalletTransaction.amount).where(WalletTransaction.user_id == user_id)
    )
    return quantize_money(sum((amount for amount in result.scalars()), ZERO))
