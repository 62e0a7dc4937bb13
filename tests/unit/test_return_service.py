"""Unit tests for the return / refund orchestrator."""

from datetime import timedelta
from decimal import Decimal

import pytest
from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    InvalidStatusTransition,
    NotRefundable,
    ReturnAlreadyProcessed,
    ReturnAlreadyRequested,
    ReturnNotAllowed,
    UnauthorizedError,
    ValidationFailed,
)
from services.payments_service.models import Payment, PaymentStatus
from services.store_service.models import (
    InventoryMovement,
    InventoryMovementType,
    Order,
    OrderStatus,
    Product,
    RefundStatus,
    ReturnRequest,
    ReturnStatus,
)
from services.store_service.services import order_service, return_service
from services.wallet_service.models import WalletTransaction
from services.wallet_service.services import wallet_ops
from sqlalchemy import select
from tests.factories import seed_order, seed_paid_order

USER = "member-1"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _delivered_order(db, user_id=USER):
    order, payment, products = await seed_paid_order(db, user_id)
    await order_service.update_order_status(db, order.id, OrderStatus.SHIPPED)
    order = await order_service.update_order_status(db, order.id, OrderStatus.DELIVERED)
    return order, payment, products


async def _received_return(db):
    """A delivered order with an approved return that is back with the seller."""
    order, payment, products = await _delivered_order(db)
    return_request = await return_service.request_return(
        db, user_id=USER, order_id=order.id, reason="Wrong size"
    )
    await return_service.review_return(db, return_request.id, approve=True)
    await return_service.mark_returned_to_seller(db, return_request.id)
    return return_request, order, payment, products


async def _fresh(db, model, pk):
    return await db.get(model, pk, populate_existing=True)


# ---------------------------------------------------------------------------
# request_return
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_request_return_for_delivered_order(db_session):
    order, _, _ = await _delivered_order(db_session)

    return_request = await return_service.request_return(
        db_session, user_id=USER, order_id=order.id, reason="  Damaged in transit "
    )

    assert return_request.status == ReturnStatus.REQUESTED
    assert return_request.reason == "Damaged in transit"
    assert return_request.is_approved is False
    assert (await _fresh(db_session, Order, order.id)).has_return_request is True


@pytest.mark.asyncio
@pytest.mark.unit
async def test_return_needs_delivery(db_session):
    order, _, _ = await seed_paid_order(db_session, USER)

    with pytest.raises(ReturnNotAllowed):
        await return_service.request_return(
            db_session, user_id=USER, order_id=order.id, reason="Changed my mind"
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_return_window_closes(db_session):
    order, _, _ = await _delivered_order(db_session)
    order_id = order.id
    late = order.delivered_at + timedelta(days=15)

    with pytest.raises(ReturnNotAllowed):
        await return_service.request_return(
            db_session, user_id=USER, order_id=order_id, reason="Too late", now=late
        )

    inside = await return_service.request_return(
        db_session,
        user_id=USER,
        order_id=order_id,
        reason="Just in time",
        now=utc_now() + timedelta(days=13),
    )
    assert inside.status == ReturnStatus.REQUESTED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_one_return_per_order(db_session):
    order, _, _ = await _delivered_order(db_session)
    order_id = order.id
    await return_service.request_return(
        db_session, user_id=USER, order_id=order_id, reason="First"
    )

    with pytest.raises(ReturnAlreadyRequested):
        await return_service.request_return(
            db_session, user_id=USER, order_id=order_id, reason="Second"
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_return_requires_reason_and_ownership(db_session):
    order, _, _ = await _delivered_order(db_session)
    order_id = order.id

    with pytest.raises(ValidationFailed):
        await return_service.request_return(
            db_session, user_id=USER, order_id=order_id, reason="   "
        )
    with pytest.raises(UnauthorizedError):
        await return_service.request_return(
            db_session, user_id="member-2", order_id=order_id, reason="Not mine"
        )


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_review_happens_once(db_session):
    order, _, _ = await _delivered_order(db_session)
    return_request = await return_service.request_return(
        db_session, user_id=USER, order_id=order.id, reason="Wrong colour"
    )
    return_id = return_request.id
    order_id = order.id

    rejected = await return_service.review_return(db_session, return_id, approve=False)
    assert rejected.status == ReturnStatus.REJECTED
    assert rejected.rejected_at is not None
    assert rejected.approved_at is None

    with pytest.raises(ReturnAlreadyProcessed):
        await return_service.review_return(db_session, return_id, approve=True)
    with pytest.raises(ReturnNotAllowed):
        await return_service.mark_returned_to_seller(db_session, return_id)

    assert (await _fresh(db_session, Order, order_id)).order_status == (
        OrderStatus.DELIVERED
    )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_approval_moves_order_to_return_approved(db_session):
    order, _, _ = await _delivered_order(db_session)
    return_request = await return_service.request_return(
        db_session, user_id=USER, order_id=order.id, reason="Faulty"
    )

    approved = await return_service.review_return(
        db_session, return_request.id, approve=True
    )

    assert approved.status == ReturnStatus.APPROVED
    assert approved.is_approved is True
    assert approved.approved_at is not None
    assert (await _fresh(db_session, Order, order.id)).order_status == (
        OrderStatus.RETURN_APPROVED
    )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_steps_cannot_be_skipped(db_session):
    order, _, _ = await _delivered_order(db_session)
    return_request = await return_service.request_return(
        db_session, user_id=USER, order_id=order.id, reason="Faulty"
    )
    return_id = return_request.id
    await return_service.review_return(db_session, return_id, approve=True)

    with pytest.raises(InvalidStatusTransition):
        await return_service.restock_return(db_session, return_id)
    with pytest.raises(InvalidStatusTransition):
        await return_service.complete_return_refund(db_session, return_id)


# ---------------------------------------------------------------------------
# Restock and refund
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_full_return_flow_restocks_and_refunds_to_wallet(db_session):
    return_request, order, payment, products = await _received_return(db_session)
    assert (await _fresh(db_session, Product, products[0].id)).stock_quantity == 8

    refunded = await return_service.restock_return(db_session, return_request.id)

    assert refunded.status == ReturnStatus.REFUND_INITIATED
    assert refunded.is_stock_updated is True
    assert refunded.refund_initiated is True
    assert refunded.refund_amount == Decimal("1000.00")
    assert (await _fresh(db_session, Product, products[0].id)).stock_quantity == 10
    movements = (
        await db_session.execute(
            select(InventoryMovement).where(
                InventoryMovement.movement_type == InventoryMovementType.RETURN
            )
        )
    ).scalars().all()
    assert [m.reference_id for m in movements] == [str(return_request.id)]

    assert (await _fresh(db_session, Payment, payment.id)).status == PaymentStatus.REFUNDED
    assert (await wallet_ops.get_wallet(db_session, USER)).balance == Decimal("1000.00")
    assert (await _fresh(db_session, Order, order.id)).refund_status == (
        RefundStatus.INITIATED
    )

    completed = await return_service.complete_return_refund(db_session, return_request.id)

    assert completed.status == ReturnStatus.REFUND_COMPLETED
    assert completed.refund_completed is True
    assert completed.refund_completed_at is not None
    final = await _fresh(db_session, Order, order.id)
    assert final.order_status == OrderStatus.REFUNDED
    assert final.refund_status == RefundStatus.COMPLETED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_restock_happens_once(db_session):
    return_request, _, _, products = await _received_return(db_session)
    return_id = return_request.id
    product_id = products[0].id
    await return_service.restock_return(db_session, return_id)

    with pytest.raises(ReturnAlreadyProcessed):
        await return_service.restock_return(db_session, return_id)

    assert (await _fresh(db_session, Product, product_id)).stock_quantity == 10


@pytest.mark.asyncio
@pytest.mark.unit
async def test_failed_refund_keeps_restock_and_can_be_retried(db_session, monkeypatch):
    return_request, _, payment, products = await _received_return(db_session)
    return_id = return_request.id
    product_id = products[0].id
    payment_id = payment.id

    async def refund_unavailable(*args, **kwargs):
        raise NotRefundable("Refunds are paused")

    monkeypatch.setattr(return_service, "refund_payment_to_wallet", refund_unavailable)

    restocked = await return_service.restock_return(db_session, return_id)

    assert restocked.status == ReturnStatus.STOCK_RESTOCKED
    assert restocked.is_stock_updated is True
    assert restocked.refund_initiated is False
    assert (await _fresh(db_session, Product, product_id)).stock_quantity == 10

    monkeypatch.undo()
    retried = await return_service.initiate_return_refund(db_session, return_id)

    assert retried.status == ReturnStatus.REFUND_INITIATED
    assert (await _fresh(db_session, Payment, payment_id)).status == PaymentStatus.REFUNDED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_refund_without_captured_payment_credits_order_total(db_session):
    order, _ = await seed_order(db_session, USER)
    # Settled outside the gateway, e.g. migrated from a previous system.
    order.order_status = OrderStatus.DELIVERED
    order.delivered_at = utc_now()
    await db_session.commit()

    return_request = await return_service.request_return(
        db_session, user_id=USER, order_id=order.id, reason="Not as described"
    )
    await return_service.review_return(db_session, return_request.id, approve=True)
    await return_service.mark_returned_to_seller(db_session, return_request.id)
    refunded = await return_service.restock_return(db_session, return_request.id)

    assert refunded.refund_amount == Decimal("1000.00")
    [txn] = (
        await db_session.execute(
            select(WalletTransaction).where(WalletTransaction.user_id == USER)
        )
    ).scalars().all()
    assert txn.idempotency_key == f"refund-return-{return_request.id}"
    assert txn.reference_type == "return"


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_list_returns_filters_by_status_and_user(db_session):
    order, _, _ = await _delivered_order(db_session)
    return_request = await return_service.request_return(
        db_session, user_id=USER, order_id=order.id, reason="Faulty"
    )

    rows, total = await return_service.list_returns(
        db_session, status=ReturnStatus.REQUESTED
    )
    assert total == 1
    assert rows[0].id == return_request.id

    rows, total = await return_service.list_returns(db_session, user_id="member-2")
    assert (rows, total) == ([], 0)

    found = await return_service.get_return_for_order(
        db_session, order_id=order.id, user_id=USER
    )
    assert isinstance(found, ReturnRequest)
    with pytest.raises(UnauthorizedError):
        await return_service.get_return(db_session, return_request.id, user_id="member-2")
