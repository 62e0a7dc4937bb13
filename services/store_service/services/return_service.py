"""Return / refund orchestrator.

requested -> approved | rejected
approved -> returned_to_seller -> stock_restocked -> refund_initiated -> refund_completed

Each step is its own transaction and is guarded by the previous state.
Restocking chains straight into the refund; if the refund step fails the
restock stays committed and ``initiate_return_refund`` can be re-run.
"""

import uuid
from datetime import datetime, timedelta
from typing import Optional

from libs.common.config import get_settings
from libs.common.currency import ZERO
from libs.common.datetime_utils import ensure_utc, utc_now
from libs.common.errors import (
    ReturnAlreadyProcessed,
    ReturnAlreadyRequested,
    ReturnNotAllowed,
    ReturnNotFound,
    ServiceError,
    UnauthorizedError,
    ValidationFailed,
)
from libs.common.logging import get_logger
from libs.common.status import ensure_transition
from services.payments_service.models import Payment, PaymentStatus
from services.store_service.models import (
    ORDER_TRANSITIONS,
    RETURN_TRANSITIONS,
    RETURNABLE_ORDER_STATUSES,
    InventoryMovementType,
    OrderStatus,
    RefundStatus,
    ReturnRequest,
    ReturnStatus,
)
from services.store_service.services.inventory_ops import StockLine, increment_stock
from services.store_service.services.order_service import lock_order
from services.wallet_service.services.wallet_ops import (
    credit_and_log,
    refund_payment_to_wallet,
)
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def _lock_return(db: AsyncSession, return_id: uuid.UUID) -> ReturnRequest:
    result = await db.execute(
        select(ReturnRequest)
        .where(ReturnRequest.id == return_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return_request = result.scalar_one_or_none()
    if not return_request:
        raise ReturnNotFound()
    return return_request


def _advance(return_request: ReturnRequest, target: ReturnStatus) -> None:
    return_request.status = ensure_transition(
        "return request", RETURN_TRANSITIONS, return_request.status, target
    )


# ============================================================================
# CUSTOMER
# ============================================================================


async def request_return(
    db: AsyncSession,
    *,
    user_id: str,
    order_id: uuid.UUID,
    reason: str,
    now: Optional[datetime] = None,
) -> ReturnRequest:
    """Open a return for a delivered order inside the return window."""
    reason = (reason or "").strip()
    if not reason:
        raise ValidationFailed("A reason is required to request a return")

    settings = get_settings()
    now = now or utc_now()
    try:
        order = await lock_order(db, order_id)
        if order.user_id != user_id:
            raise UnauthorizedError("Order belongs to another user")
        if order.order_status not in RETURNABLE_ORDER_STATUSES or not order.delivered_at:
            raise ReturnNotAllowed("Only delivered orders can be returned")
        window = timedelta(days=settings.RETURN_WINDOW_DAYS)
        if now > ensure_utc(order.delivered_at) + window:
            raise ReturnNotAllowed(
                f"Returns close {settings.RETURN_WINDOW_DAYS} days after delivery"
            )

        existing = await db.execute(
            select(ReturnRequest.id).where(ReturnRequest.order_id == order.id)
        )
        if order.has_return_request or existing.first() is not None:
            raise ReturnAlreadyRequested()

        return_request = ReturnRequest(
            order_id=order.id,
            user_id=user_id,
            reason=reason,
            status=ReturnStatus.REQUESTED,
            is_approved=False,
            requested_date=now,
        )
        db.add(return_request)
        order.has_return_request = True
        await db.commit()
    except BaseException:
        await db.rollback()
        raise

    logger.info("Return %s requested for order %s", return_request.id, order.id)
    return return_request


async def get_return(
    db: AsyncSession, return_id: uuid.UUID, *, user_id: Optional[str] = None
) -> ReturnRequest:
    return_request = await db.get(ReturnRequest, return_id)
    if not return_request:
        raise ReturnNotFound()
    if user_id is not None and return_request.user_id != user_id:
        raise UnauthorizedError("Return request belongs to another user")
    return return_request


async def get_return_for_order(
    db: AsyncSession, *, order_id: uuid.UUID, user_id: Optional[str] = None
) -> ReturnRequest:
    result = await db.execute(
        select(ReturnRequest).where(ReturnRequest.order_id == order_id)
    )
    return_request = result.scalar_one_or_none()
    if not return_request:
        raise ReturnNotFound()
    if user_id is not None and return_request.user_id != user_id:
        raise UnauthorizedError("Return request belongs to another user")
    return return_request


async def list_returns(
    db: AsyncSession,
    *,
    user_id: Optional[str] = None,
    status: Optional[ReturnStatus] = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[ReturnRequest], int]:
    query = select(ReturnRequest)
    count_query = select(func.count()).select_from(ReturnRequest)
    if user_id is not None:
        query = query.where(ReturnRequest.user_id == user_id)
        count_query = count_query.where(ReturnRequest.user_id == user_id)
    if status is not None:
        query = query.where(ReturnRequest.status == status)
        count_query = count_query.where(ReturnRequest.status == status)

    total = (await db.execute(count_query)).scalar_one()
    rows = (
        await db.execute(
            query.order_by(ReturnRequest.requested_date.desc()).offset(skip).limit(limit)
        )
    ).scalars()
    return list(rows), total


# ============================================================================
# ADMIN
# ============================================================================


async def review_return(
    db: AsyncSession, return_id: uuid.UUID, *, approve: bool
) -> ReturnRequest:
    """Approve or reject once; the outcome timestamp is never overwritten."""
    try:
        return_request = await _lock_return(db, return_id)
        if return_request.approved_at or return_request.rejected_at:
            raise ReturnAlreadyProcessed()

        now = utc_now()
        if approve:
            _advance(return_request, ReturnStatus.APPROVED)
            return_request.is_approved = True
            return_request.approved_at = now
            order = await lock_order(db, return_request.order_id)
            order.order_status = ensure_transition(
                "order", ORDER_TRANSITIONS, order.order_status, OrderStatus.RETURN_APPROVED
            )
        else:
            _advance(return_request, ReturnStatus.REJECTED)
            return_request.rejected_at = now
        await db.commit()
    except BaseException:
        await db.rollback()
        raise

    logger.info(
        "Return %s %s", return_request.id, "approved" if approve else "rejected"
    )
    return return_request


async def mark_returned_to_seller(
    db: AsyncSession, return_id: uuid.UUID
) -> ReturnRequest:
    try:
        return_request = await _lock_return(db, return_id)
        if not return_request.is_approved:
            raise ReturnNotAllowed("Return request has not been approved")
        _advance(return_request, ReturnStatus.RETURNED_TO_SELLER)
        return_request.order_returned_to_seller_at = utc_now()
        await db.commit()
    except BaseException:
        await db.rollback()
        raise

    logger.info("Return %s received back by seller", return_request.id)
    return return_request


async def restock_return(db: AsyncSession, return_id: uuid.UUID) -> ReturnRequest:
    """Put the returned items back in stock, then chain the wallet refund."""
    try:
        return_request = await _lock_return(db, return_id)
        if return_request.is_stock_updated:
            raise ReturnAlreadyProcessed("Stock has already been updated for this return")
        _advance(return_request, ReturnStatus.STOCK_RESTOCKED)

        order = await lock_order(db, return_request.order_id)
        await increment_stock(
            db,
            (
                StockLine(item.product_id, item.quantity, item.product_name)
                for item in order.items
            ),
            movement_type=InventoryMovementType.RETURN,
            reference_type="return",
            reference_id=str(return_request.id),
        )
        return_request.is_stock_updated = True
        await db.commit()
    except BaseException:
        await db.rollback()
        raise

    logger.info("Restocked items for return %s", return_request.id)

    try:
        return await initiate_return_refund(db, return_id)
    except ServiceError as exc:
        # Restock stays committed; the refund step can be re-run on its own.
        logger.error(
            "Refund after restock failed for return %s: %s", return_id, exc
        )
        await db.refresh(return_request)
        return return_request


async def initiate_return_refund(
    db: AsyncSession, return_id: uuid.UUID
) -> ReturnRequest:
    """Credit the order total to the customer's wallet.

    A captured payment is moved to ``refunded``; an order with no captured
    payment is credited directly.
    """
    try:
        return_request = await _lock_return(db, return_id)
        _advance(return_request, ReturnStatus.REFUND_INITIATED)

        order = await lock_order(db, return_request.order_id)
        result = await db.execute(
            select(Payment)
            .where(
                Payment.order_id == order.id,
                Payment.status == PaymentStatus.PAID,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        payment = result.scalars().first()
        description = f"Refund for returned order {order.id}"
        if payment is not None:
            await refund_payment_to_wallet(
                db,
                payment,
                description=description,
                reference_type="return",
                reference_id=str(return_request.id),
                initiated_by="admin",
            )
            refund_amount = payment.amount
        else:
            refund_amount = order.final_amount
            if refund_amount > ZERO:
                await credit_and_log(
                    db,
                    user_id=order.user_id,
                    amount=refund_amount,
                    idempotency_key=f"refund-return-{return_request.id}",
                    description=description,
                    reference_type="return",
                    reference_id=str(return_request.id),
                    initiated_by="admin",
                )
        return_request.refund_initiated = True
        return_request.refund_amount = refund_amount
        order.refund_status = RefundStatus.INITIATED
        await db.commit()
    except BaseException:
        await db.rollback()
        raise

    logger.info(
        "Refund of %s initiated for return %s",
        return_request.refund_amount,
        return_request.id,
    )
    return return_request


async def complete_return_refund(
    db: AsyncSession, return_id: uuid.UUID
) -> ReturnRequest:
    """Close out the refund. The wallet was credited at initiation."""
    try:
        return_request = await _lock_return(db, return_id)
        _advance(return_request, ReturnStatus.REFUND_COMPLETED)
        return_request.refund_completed = True
        return_request.refund_completed_at = utc_now()

        order = await lock_order(db, return_request.order_id)
        order.order_status = ensure_transition(
            "order", ORDER_TRANSITIONS, order.order_status, OrderStatus.REFUNDED
        )
        order.refund_status = RefundStatus.COMPLETED
        await db.commit()
    except BaseException:
        await db.rollback()
        raise

    logger.info("Refund completed for return %s", return_request.id)
    return return_request
