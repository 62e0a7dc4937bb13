"""Checkout session manager: cart snapshots, address binding and totals."""

import uuid
from decimal import Decimal
from typing import Any, Mapping, Optional

from libs.common.config import get_settings
from libs.common.currency import ZERO, percentage_of, quantize_money
from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    AddressNotFound,
    CheckoutSessionNotFound,
    ConflictError,
    EmptyCart,
    InsufficientStock,
    SessionNotPending,
    UnauthorizedError,
    ValidationFailed,
)
from libs.common.logging import get_logger
from libs.common.status import ensure_transition
from services.store_service.models import (
    CHECKOUT_TRANSITIONS,
    CartItem,
    CheckoutItem,
    CheckoutSession,
    CheckoutStatus,
    Product,
    ShippingAddress,
    UserAddress,
)
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

ADDRESS_FIELDS = (
    "address_line1",
    "address_line2",
    "city",
    "state",
    "landmark",
    "pincode",
    "phone_number",
)


# ============================================================================
# TOTALS
# ============================================================================


def compute_discount(
    total: Decimal, percentage: Optional[Decimal], max_discount: Decimal
) -> Decimal:
    """``total`` x ``percentage``%, rounded to paise and capped at ``max_discount``."""
    if not percentage:
        return ZERO
    return min(percentage_of(total, percentage), quantize_money(max_discount))


def recalculate(
    session: CheckoutSession,
    discount_percentage: Optional[Decimal] = None,
    max_discount: Optional[Decimal] = None,
) -> CheckoutSession:
    """Recompute totals from the frozen items and the applied coupon's percentage."""
    if max_discount is None:
        max_discount = get_settings().COUPON_MAX_DISCOUNT_AMOUNT

    total = quantize_money(sum((item.subtotal for item in session.items), ZERO))
    discount = ZERO
    if session.coupon_applied:
        discount = compute_discount(total, discount_percentage, max_discount)

    session.total_amount = total
    session.discount_amount = discount
    session.final_amount = total - discount
    session.item_count = sum(item.quantity for item in session.items)
    return session


# ============================================================================
# LOOKUPS
# ============================================================================


async def get_owned_session(
    db: AsyncSession,
    *,
    user_id: str,
    session_id: uuid.UUID,
    for_update: bool = False,
    require_pending: bool = False,
) -> CheckoutSession:
    """Load a session, checking it belongs to ``user_id``."""
    query = select(CheckoutSession).where(CheckoutSession.id == session_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    session = (await db.execute(query)).scalar_one_or_none()
    if not session:
        raise CheckoutSessionNotFound()
    if session.user_id != user_id:
        raise UnauthorizedError("Checkout session belongs to another user")
    if require_pending and session.status != CheckoutStatus.PENDING:
        raise SessionNotPending()
    return session


async def get_pending_session(
    db: AsyncSession, user_id: str
) -> Optional[CheckoutSession]:
    result = await db.execute(
        select(CheckoutSession).where(
            CheckoutSession.user_id == user_id,
            CheckoutSession.status == CheckoutStatus.PENDING,
        )
    )
    return result.scalar_one_or_none()


# ============================================================================
# SESSION LIFECYCLE
# ============================================================================


async def get_or_create_session(db: AsyncSession, *, user_id: str) -> CheckoutSession:
    """Return the user's pending session, or snapshot the cart into a new one.

    Prices are frozen from the live catalog at this moment. An empty cart
    raises EmptyCart; a line above current stock raises InsufficientStock.
    """
    existing = await get_pending_session(db, user_id)
    if existing:
        return existing

    result = await db.execute(
        select(CartItem, Product)
        .join(Product, Product.id == CartItem.product_id)
        .where(CartItem.user_id == user_id)
        .order_by(CartItem.product_id)
    )
    rows = result.all()
    if not rows:
        raise EmptyCart()

    items = []
    for cart_item, product in rows:
        available = 0 if product.is_deleted else product.stock_quantity
        if available < cart_item.quantity:
            raise InsufficientStock(
                product.id,
                requested=cart_item.quantity,
                available=available,
                product_name=product.name,
            )
        price = quantize_money(product.price)
        items.append(
            CheckoutItem(
                product_id=product.id,
                product_name=product.name,
                quantity=cart_item.quantity,
                price=price,
                subtotal=quantize_money(price * cart_item.quantity),
            )
        )

    session = CheckoutSession(
        user_id=user_id,
        status=CheckoutStatus.PENDING,
        coupon_code=None,
        coupon_applied=False,
        items=items,
    )
    recalculate(session)
    db.add(session)

    try:
        await db.commit()
    except IntegrityError:
        # Lost the race against a concurrent request; use the winner's session.
        await db.rollback()
        existing = await get_pending_session(db, user_id)
        if existing:
            return existing
        raise ConflictError("Could not create checkout session, please retry")

    logger.info(
        "Created checkout session %s for user %s (%d items, total=%s)",
        session.id,
        user_id,
        session.item_count,
        session.total_amount,
    )
    return session


async def bind_address(
    db: AsyncSession,
    *,
    user_id: str,
    session_id: uuid.UUID,
    address_id: Optional[uuid.UUID] = None,
    new_address: Optional[Mapping[str, Any]] = None,
) -> ShippingAddress:
    """Bind a shipping address snapshot to a pending session.

    ``address_id`` must name one of the user's addresses; otherwise
    ``new_address`` fields are saved to the address book first. The snapshot
    is upserted by (user, address) so repeated checkouts reuse one row.
    """
    try:
        session = await get_owned_session(
            db,
            user_id=user_id,
            session_id=session_id,
            for_update=True,
            require_pending=True,
        )

        if address_id is not None:
            address = await db.get(UserAddress, address_id)
            if not address:
                raise AddressNotFound()
            if address.user_id != user_id:
                raise UnauthorizedError("Address belongs to another user")
        elif new_address:
            address = UserAddress(
                user_id=user_id,
                **{key: new_address.get(key) for key in ADDRESS_FIELDS},
            )
            db.add(address)
            await db.flush()
        else:
            raise ValidationFailed("Provide an address_id or a new address")

        result = await db.execute(
            select(ShippingAddress).where(
                ShippingAddress.user_id == user_id,
                ShippingAddress.address_id == address.id,
            )
        )
        snapshot = result.scalar_one_or_none()
        if snapshot is None:
            snapshot = ShippingAddress(user_id=user_id, address_id=address.id)
            db.add(snapshot)
        for key in ADDRESS_FIELDS:
            setattr(snapshot, key, getattr(address, key))
        await db.flush()

        session.shipping_address_id = snapshot.id
        await db.commit()
    except BaseException:
        await db.rollback()
        raise

    logger.info(
        "Bound shipping address %s to checkout session %s", snapshot.id, session.id
    )
    return snapshot


def complete_session(session: CheckoutSession) -> None:
    """Mark a session completed (caller owns the transaction)."""
    session.status = ensure_transition(
        "checkout session",
        CHECKOUT_TRANSITIONS,
        session.status,
        CheckoutStatus.COMPLETED,
    )
    session.completed_at = utc_now()


async def abandon_session(
    db: AsyncSession, *, user_id: str, session_id: uuid.UUID
) -> CheckoutSession:
    """Discard a pending session; it can never become pending again."""
    try:
        session = await get_owned_session(
            db, user_id=user_id, session_id=session_id, for_update=True
        )
        session.status = ensure_transition(
            "checkout session",
            CHECKOUT_TRANSITIONS,
            session.status,
            CheckoutStatus.DELETED,
        )
        await db.commit()
    except BaseException:
        await db.rollback()
        raise

    logger.info("Abandoned checkout session %s", session.id)
    return session


async def get_session_summary(
    db: AsyncSession, *, user_id: str, session_id: uuid.UUID
) -> tuple[CheckoutSession, Optional[ShippingAddress]]:
    session = await get_owned_session(db, user_id=user_id, session_id=session_id)
    address = None
    if session.shipping_address_id:
        address = await db.get(ShippingAddress, session.shipping_address_id)
    return session, address
