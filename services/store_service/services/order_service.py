"""Order finalizer and order lifecycle.

``create_order`` is the checkout saga: lock the session, reserve stock,
write the order from frozen prices, complete the session and clear the
cart, all in one transaction. Cancellation and unpaid-order expiry are its
compensations: restock, fail open payments, refund captured ones.
"""

import uuid
from datetime import datetime, timedelta
from typing import Optional

from libs.common.config import get_settings
from libs.common.currency import ZERO
from libs.common.datetime_utils import ensure_utc, utc_now
from libs.common.errors import (
    CODLimitExceeded,
    EmptyCheckout,
    OrderNotCancellable,
    OrderNotFound,
    ShippingAddressRequired,
    UnauthorizedError,
    ValidationFailed,
)
from libs.common.logging import get_logger
from libs.common.status import ensure_transition
from services.payments_service.models import (
    PAYMENT_TRANSITIONS,
    Payment,
    PaymentStatus,
)
from services.store_service.models import (
    CANCELLABLE_ORDER_STATUSES,
    ORDER_TRANSITIONS,
    CartItem,
    DeliveryStatus,
    InventoryMovementType,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    RefundStatus,
)
from services.store_service.services.checkout_service import (
    complete_session,
    get_owned_session,
)
from services.store_service.services.inventory_ops import (
    StockLine,
    decrement_stock,
    increment_stock,
)
from services.wallet_service.services.wallet_ops import refund_payment_to_wallet
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

# Statuses an admin may set directly; the rest belong to the return flow.
ADMIN_SETTABLE_STATUSES = frozenset(
    {
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    }
)


# ============================================================================
# CREATE
# ============================================================================


async def create_order(
    db: AsyncSession,
    *,
    user_id: str,
    session_id: uuid.UUID,
    payment_method: PaymentMethod,
) -> Order:
    """Turn a pending checkout session into an order, all or nothing.

    Online orders start in ``pending_payment`` with stock already reserved;
    COD orders start ``confirmed`` with an open COD payment row.
    """
    settings = get_settings()
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
        if not session.shipping_address_id:
            raise ShippingAddressRequired()
        if (
            payment_method == PaymentMethod.COD
            and session.final_amount > settings.COD_LIMIT
        ):
            raise CODLimitExceeded(
                f"Cash on delivery is limited to orders up to {settings.COD_LIMIT}"
            )

        order_id = uuid.uuid4()
        await decrement_stock(
            db,
            (
                StockLine(item.product_id, item.quantity, item.product_name)
                for item in session.items
            ),
            reference_type="order",
            reference_id=str(order_id),
        )

        nothing_to_pay = session.final_amount <= ZERO
        if nothing_to_pay:
            status = OrderStatus.PROCESSING
        elif payment_method == PaymentMethod.COD:
            status = OrderStatus.CONFIRMED
        else:
            status = OrderStatus.PENDING_PAYMENT

        order = Order(
            id=order_id,
            user_id=user_id,
            checkout_session_id=session.id,
            total_amount=session.total_amount,
            discount_amount=session.discount_amount,
            final_amount=session.final_amount,
            coupon_code=session.coupon_code,
            coupon_applied=session.coupon_applied,
            payment_method=payment_method,
            order_status=status,
            delivery_status=DeliveryStatus.PENDING,
            refund_status=RefundStatus.NOT_APPLICABLE,
            shipping_address_id=session.shipping_address_id,
            has_return_request=False,
            items=[
                OrderItem(
                    product_id=item.product_id,
                    product_name=item.product_name,
                    quantity=item.quantity,
                    price=item.price,
                    subtotal=item.subtotal,
                )
                for item in session.items
            ],
        )
        db.add(order)

        if payment_method == PaymentMethod.COD and not nothing_to_pay:
            db.add(
                Payment(
                    order_id=order.id,
                    user_id=user_id,
                    amount=order.final_amount,
                    currency=settings.PAYMENT_CURRENCY,
                    payment_method=PaymentMethod.COD,
                    status=PaymentStatus.CREATED,
                )
            )

        complete_session(session)
        await db.execute(
            delete(CartItem).where(
                CartItem.user_id == user_id,
                CartItem.product_id.in_([item.product_id for item in session.items]),
            )
        )
        await db.commit()
    except BaseException:
        await db.rollback()
        raise

    logger.info(
        "Created order %s from checkout session %s (%s, final=%s, status=%s)",
        order.id,
        session.id,
        payment_method.value,
        order.final_amount,
        order.order_status.value,
    )
    return order


# ============================================================================
# QUERIES
# ============================================================================


async def lock_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if not order:
        raise OrderNotFound()
    return order


async def get_order(
    db: AsyncSession, order_id: uuid.UUID, *, user_id: Optional[str] = None
) -> Order:
    """Load an order; with ``user_id``, also check ownership."""
    order = (
        await db.execute(select(Order).where(Order.id == order_id))
    ).scalar_one_or_none()
    if not order:
        raise OrderNotFound()
    if user_id is not None and order.user_id != user_id:
        raise UnauthorizedError("Order belongs to another user")
    return order


async def list_orders(
    db: AsyncSession,
    *,
    user_id: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Order], int]:
    query = select(Order)
    count_query = select(func.count()).select_from(Order)
    if user_id is not None:
        query = query.where(Order.user_id == user_id)
        count_query = count_query.where(Order.user_id == user_id)
    if status is not None:
        query = query.where(Order.order_status == status)
        count_query = count_query.where(Order.order_status == status)

    total = (await db.execute(count_query)).scalar_one()
    rows = (
        await db.execute(
            query.order_by(Order.created_at.desc()).offset(skip).limit(limit)
        )
    ).scalars()
    return list(rows), total


async def _lock_payments(db: AsyncSession, order_id: uuid.UUID) -> list[Payment]:
    result = await db.execute(
        select(Payment)
        .where(Payment.order_id == order_id)
        .order_by(Payment.created_at)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


def _stock_lines(order: Order) -> list[StockLine]:
    return [
        StockLine(item.product_id, item.quantity, item.product_name)
        for item in order.items
    ]


# ============================================================================
# STATUS TRANSITIONS
# ============================================================================


async def update_order_status(
    db: AsyncSession, order_id: uuid.UUID, new_status: OrderStatus
) -> Order:
    """Admin status change, guarded by the order transition table."""
    if new_status not in ADMIN_SETTABLE_STATUSES:
        raise ValidationFailed(f"Order status '{new_status.value}' cannot be set directly")
    if new_status == OrderStatus.CANCELLED:
        return await cancel_order(db, order_id=order_id)

    try:
        order = await lock_order(db, order_id)
        order.order_status = ensure_transition(
            "order", ORDER_TRANSITIONS, order.order_status, new_status
        )

        if new_status == OrderStatus.SHIPPED:
            order.delivery_status = DeliveryStatus.IN_TRANSIT
        elif new_status == OrderStatus.DELIVERED:
            order.delivery_status = DeliveryStatus.DELIVERED
            order.delivered_at = utc_now()
            if order.payment_method == PaymentMethod.COD:
                # Cash collected on delivery
                for payment in await _lock_payments(db, order.id):
                    if payment.status == PaymentStatus.CREATED:
                        payment.status = ensure_transition(
                            "payment",
                            PAYMENT_TRANSITIONS,
                            payment.status,
                            PaymentStatus.PAID,
                        )
                        payment.paid_at = order.delivered_at
        await db.commit()
    except BaseException:
        await db.rollback()
        raise

    logger.info("Order %s moved to %s", order.id, order.order_status.value)
    return order


async def update_delivery_status(
    db: AsyncSession, order_id: uuid.UUID, delivery_status: DeliveryStatus
) -> Order:
    """Track courier progress on a shipped order."""
    if delivery_status == DeliveryStatus.DELIVERED:
        return await update_order_status(db, order_id, OrderStatus.DELIVERED)

    try:
        order = await lock_order(db, order_id)
        if order.order_status != OrderStatus.SHIPPED:
            raise ValidationFailed("Delivery status can only change on shipped orders")
        order.delivery_status = delivery_status
        await db.commit()
    except BaseException:
        await db.rollback()
        raise
    return order


# ============================================================================
# COMPENSATIONS
# ============================================================================


async def cancel_order(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    user_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Order:
    """Cancel an order, restocking it and refunding any captured payment.

    With ``user_id`` the caller is the customer: ownership and the
    cancellation window apply. Without it the caller is an admin.
    """
    settings = get_settings()
    now = now or utc_now()
    try:
        order = await lock_order(db, order_id)
        if user_id is not None and order.user_id != user_id:
            raise UnauthorizedError("Order belongs to another user")
        if order.order_status == OrderStatus.CANCELLED:
            raise OrderNotCancellable("Order is already cancelled")
        if order.order_status not in CANCELLABLE_ORDER_STATUSES:
            raise OrderNotCancellable(
                f"Orders in '{order.order_status.value}' cannot be cancelled"
            )
        window = timedelta(hours=settings.CANCELLATION_WINDOW_HOURS)
        if user_id is not None and ensure_utc(order.created_at) + window < now:
            raise OrderNotCancellable("The cancellation window has passed")

        await increment_stock(
            db,
            _stock_lines(order),
            movement_type=InventoryMovementType.CANCELLATION,
            reference_type="order",
            reference_id=str(order.id),
        )

        for payment in await _lock_payments(db, order.id):
            if payment.status == PaymentStatus.CREATED:
                payment.status = PaymentStatus.FAILED
                payment.failure_reason = "Order cancelled"
            elif payment.status == PaymentStatus.PAID:
                await refund_payment_to_wallet(
                    db,
                    payment,
                    description=f"Refund for cancelled order {order.id}",
                    reference_type="order",
                    reference_id=str(order.id),
                    initiated_by=user_id or "admin",
                )
                order.refund_status = RefundStatus.COMPLETED

        order.order_status = ensure_transition(
            "order", ORDER_TRANSITIONS, order.order_status, OrderStatus.CANCELLED
        )
        order.cancelled_at = now
        await db.commit()
    except BaseException:
        await db.rollback()
        raise

    logger.info(
        "Cancelled order %s (refund_status=%s)", order.id, order.refund_status.value
    )
    return order


async def expire_unpaid_order(
    db: AsyncSession, order_id: uuid.UUID, *, now: Optional[datetime] = None
) -> bool:
    """Cancel an online order whose payment never arrived and release its stock.

    Returns False when the order is no longer awaiting payment or any of its
    payments has been captured.
    """
    now = now or utc_now()
    try:
        order = await lock_order(db, order_id)
        if order.order_status != OrderStatus.PENDING_PAYMENT:
            await db.rollback()
            return False

        payments = await _lock_payments(db, order.id)
        if any(p.status == PaymentStatus.PAID for p in payments):
            logger.warning(
                "Order %s is pending_payment but has a paid payment; not expiring",
                order.id,
            )
            await db.rollback()
            return False

        await increment_stock(
            db,
            _stock_lines(order),
            movement_type=InventoryMovementType.EXPIRY,
            reference_type="order",
            reference_id=str(order.id),
            notes="Payment window expired",
        )
        for payment in payments:
            if payment.status == PaymentStatus.CREATED:
                payment.status = PaymentStatus.FAILED
                payment.failure_reason = "Payment window expired"

        order.order_status = ensure_transition(
            "order", ORDER_TRANSITIONS, order.order_status, OrderStatus.CANCELLED
        )
        order.cancelled_at = now
        await db.commit()
    except BaseException:
        await db.rollback()
        raise

    logger.info("Expired unpaid order %s and released its stock", order.id)
    return True
