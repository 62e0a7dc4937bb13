"""Coupon evaluation against checkout sessions, plus coupon administration."""

import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from libs.common.config import get_settings
from libs.common.currency import quantize_money
from libs.common.datetime_utils import ensure_utc, utc_now
from libs.common.errors import (
    CouponAlreadyDeleted,
    CouponExpired,
    CouponInactive,
    CouponInUse,
    CouponNotFound,
    DuplicateCouponCode,
    EmptyCheckout,
    MinOrderNotMet,
    NoCouponApplied,
    ValidationFailed,
)
from libs.common.logging import get_logger
from services.store_service.models import CheckoutSession, CheckoutStatus, Coupon
from services.store_service.services.checkout_service import (
    get_owned_session,
    recalculate,
)
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


# ============================================================================
# EVALUATION
# ============================================================================


async def find_usable_coupon(
    db: AsyncSession, code: str, now: Optional[datetime] = None
) -> Coupon:
    """Resolve ``code`` to a coupon that can be applied right now.

    Checked in order: exists and not deleted, active, not expired.
    """
    result = await db.execute(
        select(Coupon).where(
            Coupon.code == normalize_code(code), Coupon.is_deleted.is_(False)
        )
    )
    coupon = result.scalar_one_or_none()
    if not coupon:
        raise CouponNotFound()
    if not coupon.is_active:
        raise CouponInactive()
    if coupon.is_expired(now):
        raise CouponExpired()
    return coupon


async def apply_coupon(
    db: AsyncSession, *, user_id: str, session_id: uuid.UUID, code: str
) -> CheckoutSession:
    """Apply (or replace) the session's coupon and recalculate totals.

    Any failure leaves the session exactly as it was.
    """
    try:
        session = await get_owned_session(
            db,
            user_id=user_id,
            session_id=session_id,
            for_update=True,
            require_pending=True,
        )
        if not session.items:
            raise EmptyCheckout()

        coupon = await find_usable_coupon(db, code)
        if session.total_amount < coupon.min_order_amount:
            raise MinOrderNotMet(
                f"Order total {session.total_amount} is below the coupon "
                f"minimum of {coupon.min_order_amount}"
            )

        replaced = session.coupon_code
        session.coupon_code = coupon.code
        session.coupon_applied = True
        recalculate(session, coupon.discount_percentage)
        await db.commit()
    except BaseException:
        await db.rollback()
        raise

    if replaced and replaced != coupon.code:
        logger.info(
            "Replaced coupon %s with %s on checkout session %s",
            replaced,
            coupon.code,
            session.id,
        )
    logger.info(
        "Applied coupon %s to checkout session %s (discount=%s)",
        coupon.code,
        session.id,
        session.discount_amount,
    )
    return session


async def remove_coupon(
    db: AsyncSession, *, user_id: str, session_id: uuid.UUID
) -> CheckoutSession:
    try:
        session = await get_owned_session(
            db,
            user_id=user_id,
            session_id=session_id,
            for_update=True,
            require_pending=True,
        )
        if not session.coupon_applied:
            raise NoCouponApplied()

        session.coupon_code = None
        session.coupon_applied = False
        recalculate(session)
        await db.commit()
    except BaseException:
        await db.rollback()
        raise

    logger.info("Removed coupon from checkout session %s", session.id)
    return session


async def is_coupon_in_use(
    db: AsyncSession,
    coupon_id: uuid.UUID,
    lookback_days: Optional[int] = None,
) -> bool:
    """True if a non-deleted session created in the lookback window uses the code."""
    coupon = await db.get(Coupon, coupon_id)
    if not coupon:
        raise CouponNotFound()
    return await _code_in_use(db, coupon.code, lookback_days)


async def _code_in_use(
    db: AsyncSession, code: str, lookback_days: Optional[int] = None
) -> bool:
    if lookback_days is None:
        lookback_days = get_settings().COUPON_IN_USE_LOOKBACK_DAYS
    cutoff = utc_now() - timedelta(days=lookback_days)
    result = await db.execute(
        select(func.count())
        .select_from(CheckoutSession)
        .where(
            CheckoutSession.coupon_code == code,
            CheckoutSession.created_at >= cutoff,
            CheckoutSession.status != CheckoutStatus.DELETED,
        )
    )
    return result.scalar_one() > 0


# ============================================================================
# ADMINISTRATION
# ============================================================================


def _validate_terms(
    discount_percentage: Optional[Decimal],
    min_order_amount: Optional[Decimal],
    expires_at: Optional[datetime],
) -> None:
    if discount_percentage is not None and not (0 < discount_percentage <= 100):
        raise ValidationFailed("discount_percentage must be in (0, 100]")
    if min_order_amount is not None and min_order_amount < 0:
        raise ValidationFailed("min_order_amount cannot be negative")
    if expires_at is not None and ensure_utc(expires_at) <= utc_now():
        raise ValidationFailed("expires_at must be in the future")


async def _code_taken(db: AsyncSession, code: str) -> bool:
    result = await db.execute(select(Coupon.id).where(Coupon.code == code))
    return result.first() is not None


async def create_coupon(
    db: AsyncSession,
    *,
    code: str,
    discount_percentage: Decimal,
    min_order_amount: Decimal,
    expires_at: datetime,
    is_active: bool = True,
) -> Coupon:
    code = normalize_code(code)
    if not code:
        raise ValidationFailed("Coupon code is required")
    _validate_terms(discount_percentage, min_order_amount, expires_at)
    if await _code_taken(db, code):
        raise DuplicateCouponCode()

    coupon = Coupon(
        code=code,
        discount_percentage=quantize_money(discount_percentage),
        min_order_amount=quantize_money(min_order_amount),
        expires_at=ensure_utc(expires_at),
        is_active=is_active,
        is_deleted=False,
    )
    db.add(coupon)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateCouponCode()

    logger.info("Created coupon %s (%s%%)", coupon.code, coupon.discount_percentage)
    return coupon


async def get_coupon(db: AsyncSession, coupon_id: uuid.UUID) -> Coupon:
    coupon = await db.get(Coupon, coupon_id)
    if not coupon or coupon.is_deleted:
        raise CouponNotFound()
    return coupon


async def list_coupons(
    db: AsyncSession,
    *,
    only_usable: bool = False,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[Coupon], int]:
    query = select(Coupon).where(Coupon.is_deleted.is_(False))
    count_query = (
        select(func.count()).select_from(Coupon).where(Coupon.is_deleted.is_(False))
    )
    if only_usable:
        usable = (Coupon.is_active.is_(True), Coupon.expires_at > utc_now())
        query = query.where(*usable)
        count_query = count_query.where(*usable)

    total = (await db.execute(count_query)).scalar_one()
    rows = (
        await db.execute(
            query.order_by(Coupon.created_at.desc()).offset(skip).limit(limit)
        )
    ).scalars()
    return list(rows), total


async def update_coupon(
    db: AsyncSession,
    coupon_id: uuid.UUID,
    *,
    code: Optional[str] = None,
    discount_percentage: Optional[Decimal] = None,
    min_order_amount: Optional[Decimal] = None,
    expires_at: Optional[datetime] = None,
    is_active: Optional[bool] = None,
) -> Coupon:
    """Edit a coupon. Renaming or deactivating is refused while it is in use."""
    coupon = await get_coupon(db, coupon_id)
    _validate_terms(discount_percentage, min_order_amount, expires_at)

    new_code = normalize_code(code) if code is not None else coupon.code
    if not new_code:
        raise ValidationFailed("Coupon code is required")
    renaming = new_code != coupon.code
    deactivating = is_active is False and coupon.is_active

    if (renaming or deactivating) and await _code_in_use(db, coupon.code):
        raise CouponInUse()
    if renaming and await _code_taken(db, new_code):
        raise DuplicateCouponCode()

    coupon.code = new_code
    if discount_percentage is not None:
        coupon.discount_percentage = quantize_money(discount_percentage)
    if min_order_amount is not None:
        coupon.min_order_amount = quantize_money(min_order_amount)
    if expires_at is not None:
        coupon.expires_at = ensure_utc(expires_at)
    if is_active is not None:
        coupon.is_active = is_active

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateCouponCode()

    logger.info("Updated coupon %s", coupon.id)
    return coupon


async def soft_delete_coupon(db: AsyncSession, coupon_id: uuid.UUID) -> Coupon:
    coupon = await db.get(Coupon, coupon_id)
    if not coupon:
        raise CouponNotFound()
    if coupon.is_deleted:
        raise CouponAlreadyDeleted()
    if await _code_in_use(db, coupon.code):
        raise CouponInUse()

    coupon.is_deleted = True
    coupon.is_active = False
    coupon.deleted_at = utc_now()
    await db.commit()

    logger.info("Soft-deleted coupon %s", coupon.code)
    return coupon
