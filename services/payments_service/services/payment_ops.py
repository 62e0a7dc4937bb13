"""Payment gateway adapter: intents and callback verification for online orders.

The gateway is called with no row locks held. Verification is idempotent:
replaying a callback for an already-captured payment changes nothing.
"""

import uuid
from datetime import datetime, timedelta
from typing import Optional

from libs.common.config import get_settings
from libs.common.currency import rupees_to_paise
from libs.common.datetime_utils import ensure_utc, utc_now
from libs.common.errors import (
    ConflictError,
    PaymentNotFound,
    PaymentNotPayable,
    SignatureMismatch,
    UnauthorizedError,
    ValidationFailed,
)
from libs.common.logging import get_logger
from libs.common.status import ensure_transition
from services.payments_service.models import PAYMENT_TRANSITIONS, Payment, PaymentStatus
from services.payments_service.razorpay_client import RazorpayClient
from services.store_service.models import (
    ORDER_TRANSITIONS,
    Order,
    OrderStatus,
    PaymentMethod,
)
from services.store_service.services.order_service import get_order, lock_order
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


def _is_live(payment: Payment, now: datetime) -> bool:
    return (
        payment.status == PaymentStatus.CREATED
        and payment.gateway_order_id is not None
        and payment.expires_at is not None
        and ensure_utc(payment.expires_at) > now
    )


def _ensure_payable(order: Order) -> None:
    if order.payment_method != PaymentMethod.ONLINE:
        raise ValidationFailed("Only online orders are paid through the gateway")
    if order.order_status != OrderStatus.PENDING_PAYMENT:
        raise PaymentNotPayable(
            f"Order is '{order.order_status.value}', not awaiting payment"
        )


async def _payments_for_order(
    db: AsyncSession, order_id: uuid.UUID, *, for_update: bool = False
) -> list[Payment]:
    query = (
        select(Payment).where(Payment.order_id == order_id).order_by(Payment.created_at)
    )
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    return list((await db.execute(query)).scalars().all())


# ============================================================================
# INTENTS
# ============================================================================


async def create_payment_intent(
    db: AsyncSession,
    gateway: RazorpayClient,
    *,
    user_id: str,
    order_id: uuid.UUID,
) -> Payment:
    """Return a live gateway intent for the order, creating one if needed.

    An unexpired intent is reused. Otherwise a new gateway order is created
    and any stale ``created`` intents are failed.
    """
    settings = get_settings()
    now = utc_now()

    order = await get_order(db, order_id, user_id=user_id)
    _ensure_payable(order)
    for payment in await _payments_for_order(db, order.id):
        if _is_live(payment, now):
            logger.info("Reusing payment intent %s for order %s", payment.id, order.id)
            return payment
    amount = order.final_amount
    # End the read transaction before the network call.
    await db.commit()

    gateway_order = await gateway.create_order(
        rupees_to_paise(amount), receipt=str(order.id), currency=settings.PAYMENT_CURRENCY
    )

    try:
        order = await lock_order(db, order_id)
        _ensure_payable(order)
        if order.final_amount != amount:
            raise ConflictError("Order total changed while creating the payment")

        for payment in await _payments_for_order(db, order.id, for_update=True):
            if payment.status == PaymentStatus.CREATED:
                payment.status = PaymentStatus.FAILED
                payment.failure_reason = "Superseded by a new payment intent"

        payment = Payment(
            order_id=order.id,
            user_id=user_id,
            amount=amount,
            currency=settings.PAYMENT_CURRENCY,
            payment_method=PaymentMethod.ONLINE,
            status=PaymentStatus.CREATED,
            gateway_order_id=gateway_order.id,
            expires_at=utc_now() + timedelta(minutes=settings.PAYMENT_INTENT_TTL_MINUTES),
        )
        db.add(payment)
        await db.commit()
    except BaseException:
        await db.rollback()
        raise

    logger.info(
        "Created payment intent %s (gateway order %s) for order %s, amount=%s",
        payment.id,
        payment.gateway_order_id,
        order.id,
        payment.amount,
    )
    return payment


# ============================================================================
# VERIFICATION
# ============================================================================


async def _find_by_gateway_order(db: AsyncSession, gateway_order_id: str) -> Payment:
    result = await db.execute(
        select(Payment).where(Payment.gateway_order_id == gateway_order_id)
    )
    payment = result.scalar_one_or_none()
    if not payment:
        raise PaymentNotFound()
    return payment


def _replay_outcome(payment: Payment, gateway_payment_id: str) -> Optional[Payment]:
    """Settled payments: return it for a harmless replay, raise otherwise.

    A failed intent is not settled: the customer may still have paid on its
    gateway order, and the order status decides whether that is accepted.
    """
    if payment.status in (PaymentStatus.PAID, PaymentStatus.REFUNDED):
        if payment.gateway_payment_id == gateway_payment_id:
            return payment
        raise ConflictError("Payment was already captured with a different payment id")
    return None


async def verify_payment(
    db: AsyncSession,
    gateway: RazorpayClient,
    *,
    gateway_order_id: str,
    gateway_payment_id: str,
    signature: str,
    user_id: Optional[str] = None,
) -> Payment:
    """Capture a payment from a signed checkout callback.

    A bad signature changes nothing. On success the payment becomes
    ``paid``, the order moves to ``processing`` and any sibling intents are
    failed, in one transaction.
    """
    if not gateway.verify_signature(gateway_order_id, gateway_payment_id, signature):
        logger.warning("Signature mismatch for gateway order %s", gateway_order_id)
        raise SignatureMismatch()

    payment = await _find_by_gateway_order(db, gateway_order_id)
    if user_id is not None and payment.user_id != user_id:
        raise UnauthorizedError("Payment belongs to another user")
    replay = _replay_outcome(payment, gateway_payment_id)
    if replay is not None:
        logger.info("Payment %s already settled; ignoring replay", payment.id)
        return replay

    try:
        # Order first, then payments.
        order = await lock_order(db, payment.order_id)
        payments = await _payments_for_order(db, order.id, for_update=True)
        payment = next(p for p in payments if p.gateway_order_id == gateway_order_id)

        replay = _replay_outcome(payment, gateway_payment_id)
        if replay is not None:
            await db.commit()
            return replay
        if order.order_status != OrderStatus.PENDING_PAYMENT:
            raise PaymentNotPayable(
                f"Order is '{order.order_status.value}', not awaiting payment"
            )
        if payment.status == PaymentStatus.FAILED:
            logger.warning(
                "Accepting capture on superseded payment %s (%s) for order %s",
                payment.id,
                payment.failure_reason,
                order.id,
            )

        now = utc_now()
        payment.status = ensure_transition(
            "payment", PAYMENT_TRANSITIONS, payment.status, PaymentStatus.PAID
        )
        payment.gateway_payment_id = gateway_payment_id
        payment.gateway_signature = signature
        payment.paid_at = now
        payment.failure_reason = None

        for sibling in payments:
            if sibling.id != payment.id and sibling.status == PaymentStatus.CREATED:
                sibling.status = PaymentStatus.FAILED
                sibling.failure_reason = "Superseded by a captured payment"

        order.order_status = ensure_transition(
            "order", ORDER_TRANSITIONS, order.order_status, OrderStatus.PROCESSING
        )
        await db.commit()
    except BaseException:
        await db.rollback()
        raise

    logger.info(
        "Captured payment %s (%s) for order %s",
        payment.id,
        gateway_payment_id,
        order.id,
    )
    return payment


# ============================================================================
# QUERIES
# ============================================================================


async def get_payment(
    db: AsyncSession, payment_id: uuid.UUID, *, user_id: Optional[str] = None
) -> Payment:
    payment = await db.get(Payment, payment_id)
    if not payment:
        raise PaymentNotFound()
    if user_id is not None and payment.user_id != user_id:
        raise UnauthorizedError("Payment belongs to another user")
    return payment


async def get_payments_for_order(
    db: AsyncSession, order_id: uuid.UUID, *, user_id: Optional[str] = None
) -> list[Payment]:
    order = await get_order(db, order_id, user_id=user_id)
    return await _payments_for_order(db, order.id)


async def list_payments(
    db: AsyncSession,
    *,
    user_id: Optional[str] = None,
    status: Optional[PaymentStatus] = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Payment], int]:
    query = select(Payment)
    count_query = select(func.count()).select_from(Payment)
    if user_id is not None:
        query = query.where(Payment.user_id == user_id)
        count_query = count_query.where(Payment.user_id == user_id)
    if status is not None:
        query = query.where(Payment.status == status)
        count_query = count_query.where(Payment.status == status)

    total = (await db.execute(count_query)).scalar_one()
    rows = (
        await db.execute(
            query.order_by(Payment.created_at.desc()).offset(skip).limit(limit)
        )
    ).scalars()
    return list(rows), total
