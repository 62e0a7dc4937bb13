"""Background tasks for the payments service."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.errors import GatewayError
from libs.common.logging import get_logger
from services.payments_service.models import Payment
from services.payments_service.razorpay_client import RazorpayClient
from services.store_service.models import Order, OrderStatus, PaymentMethod
from services.store_service.services.order_service import expire_unpaid_order
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

BATCH_SIZE = 200


async def _captured_at_gateway(
    db: AsyncSession, gateway: RazorpayClient, order_id: uuid.UUID
) -> bool | None:
    """True if any of the order's gateway orders reports ``paid``.

    Superseded (failed) intents are asked too: their gateway orders stay
    payable. None means the gateway could not be asked; the order is left
    for the next run.
    """
    result = await db.execute(
        select(Payment.gateway_order_id).where(
            Payment.order_id == order_id,
            Payment.gateway_order_id.is_not(None),
        )
    )
    for gateway_order_id in result.scalars().all():
        try:
            remote = await gateway.fetch_order(gateway_order_id)
        except GatewayError as exc:
            logger.warning(
                "Could not check gateway order %s for order %s: %s",
                gateway_order_id,
                order_id,
                exc,
            )
            return None
        if remote.status == "paid":
            return True
    return False


async def expire_unpaid_orders(
    db: AsyncSession, gateway: RazorpayClient, *, now: datetime | None = None
) -> int:
    """Cancel online orders left in pending_payment past the payment timeout.

    Orders the gateway reports as paid are skipped and logged for manual
    reconciliation. Returns the number of orders expired.
    """
    now = now or utc_now()
    cutoff = now - timedelta(minutes=get_settings().ORDER_PAYMENT_TIMEOUT_MINUTES)

    result = await db.execute(
        select(Order.id)
        .where(
            Order.order_status == OrderStatus.PENDING_PAYMENT,
            Order.payment_method == PaymentMethod.ONLINE,
            Order.created_at <= cutoff,
        )
        .order_by(Order.created_at.asc())
        .limit(BATCH_SIZE)
    )
    stale_ids = list(result.scalars().all())
    await db.commit()

    expired = 0
    for order_id in stale_ids:
        captured = await _captured_at_gateway(db, gateway, order_id)
        await db.commit()
        if captured is None:
            continue
        if captured:
            logger.warning(
                "Order %s is past its payment window but paid at the gateway; "
                "needs reconciliation",
                order_id,
            )
            continue
        if await expire_unpaid_order(db, order_id, now=now):
            expired += 1

    if expired:
        logger.info("Expired %d unpaid orders", expired)
    return expired
