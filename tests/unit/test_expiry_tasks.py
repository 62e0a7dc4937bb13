"""Unit tests for unpaid-order expiry and the worker that schedules it."""

from datetime import timedelta

import pytest
from libs.common.arq_config import get_redis_settings, sweep_minutes
from libs.common.config import Settings, get_settings
from libs.common.datetime_utils import utc_now
from services.payments_service import worker
from services.payments_service.models import Payment, PaymentStatus
from services.payments_service.services import payment_ops
from services.payments_service.tasks import expire_unpaid_orders
from services.store_service.models import Order, OrderStatus, PaymentMethod, Product
from tests.factories import seed_order, seed_paid_order

USER = "member-1"


def _past_timeout():
    return utc_now() + timedelta(minutes=31)


async def _fresh(db, model, pk):
    return await db.get(model, pk, populate_existing=True)


# ---------------------------------------------------------------------------
# expire_unpaid_orders
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_stale_order_without_intent_is_expired(db_session, gateway, fake_razorpay):
    order, products = await seed_order(db_session, USER)

    expired = await expire_unpaid_orders(db_session, gateway, now=_past_timeout())

    assert expired == 1
    assert fake_razorpay.requests == []
    assert (await _fresh(db_session, Order, order.id)).order_status == (
        OrderStatus.CANCELLED
    )
    assert (await _fresh(db_session, Product, products[0].id)).stock_quantity == 10


@pytest.mark.asyncio
@pytest.mark.unit
async def test_recent_order_is_left_alone(db_session, gateway):
    order, _ = await seed_order(db_session, USER)

    assert await expire_unpaid_orders(db_session, gateway) == 0
    assert (await _fresh(db_session, Order, order.id)).order_status == (
        OrderStatus.PENDING_PAYMENT
    )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unpaid_intent_is_failed_on_expiry(db_session, gateway):
    order, _ = await seed_order(db_session, USER)
    intent = await payment_ops.create_payment_intent(
        db_session, gateway, user_id=USER, order_id=order.id
    )

    assert await expire_unpaid_orders(db_session, gateway, now=_past_timeout()) == 1

    payment = await _fresh(db_session, Payment, intent.id)
    assert payment.status == PaymentStatus.FAILED
    assert payment.failure_reason == "Payment window expired"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_order_paid_at_gateway_is_not_expired(db_session, gateway, fake_razorpay):
    order, products = await seed_order(db_session, USER)
    intent = await payment_ops.create_payment_intent(
        db_session, gateway, user_id=USER, order_id=order.id
    )
    # Captured at the gateway, but the callback never reached us.
    fake_razorpay.mark_paid(intent.gateway_order_id)

    assert await expire_unpaid_orders(db_session, gateway, now=_past_timeout()) == 0

    assert (await _fresh(db_session, Order, order.id)).order_status == (
        OrderStatus.PENDING_PAYMENT
    )
    assert (await _fresh(db_session, Payment, intent.id)).status == PaymentStatus.CREATED
    assert (await _fresh(db_session, Product, products[0].id)).stock_quantity == 8


@pytest.mark.asyncio
@pytest.mark.unit
async def test_paid_superseded_intent_blocks_expiry(db_session, gateway, fake_razorpay):
    order, products = await seed_order(db_session, USER)
    stale = await payment_ops.create_payment_intent(
        db_session, gateway, user_id=USER, order_id=order.id
    )
    stale.expires_at = utc_now() - timedelta(minutes=1)
    await db_session.commit()
    await payment_ops.create_payment_intent(
        db_session, gateway, user_id=USER, order_id=order.id
    )
    assert (await _fresh(db_session, Payment, stale.id)).status == PaymentStatus.FAILED
    fake_razorpay.mark_paid(stale.gateway_order_id)

    assert await expire_unpaid_orders(db_session, gateway, now=_past_timeout()) == 0

    assert (await _fresh(db_session, Order, order.id)).order_status == (
        OrderStatus.PENDING_PAYMENT
    )
    assert (await _fresh(db_session, Product, products[0].id)).stock_quantity == 8


@pytest.mark.asyncio
@pytest.mark.unit
async def test_gateway_outage_defers_expiry(db_session, gateway, fake_razorpay):
    order, _ = await seed_order(db_session, USER)
    await payment_ops.create_payment_intent(
        db_session, gateway, user_id=USER, order_id=order.id
    )
    fake_razorpay.status_override = (
        503,
        {"error": {"code": "SERVER_ERROR", "description": "Service unavailable"}},
    )

    assert await expire_unpaid_orders(db_session, gateway, now=_past_timeout()) == 0
    assert (await _fresh(db_session, Order, order.id)).order_status == (
        OrderStatus.PENDING_PAYMENT
    )

    fake_razorpay.status_override = None
    assert await expire_unpaid_orders(db_session, gateway, now=_past_timeout()) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_only_online_orders_awaiting_payment_expire(db_session, gateway):
    cod_order, _ = await seed_order(
        db_session, USER, payment_method=PaymentMethod.COD, lines=((300, 1, 5),)
    )
    paid_order, _, _ = await seed_paid_order(db_session, "member-2")

    assert await expire_unpaid_orders(db_session, gateway, now=_past_timeout()) == 0
    assert (await _fresh(db_session, Order, cod_order.id)).order_status == (
        OrderStatus.CONFIRMED
    )
    assert (await _fresh(db_session, Order, paid_order.id)).order_status == (
        OrderStatus.PROCESSING
    )


# ---------------------------------------------------------------------------
# Worker
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_worker_task_uses_session_and_gateway(
    db_session, gateway, monkeypatch
):
    order, _ = await seed_order(db_session, USER)
    order_id = order.id
    # Age the order past the payment timeout.
    order.created_at = utc_now() - timedelta(minutes=45)
    await db_session.commit()

    monkeypatch.setattr("libs.db.config.AsyncSessionLocal", lambda: db_session)
    monkeypatch.setattr(
        "services.payments_service.razorpay_client.get_gateway_client",
        lambda: gateway,
    )

    await worker.task_expire_unpaid_orders({})

    assert (await _fresh(db_session, Order, order_id)).order_status == (
        OrderStatus.CANCELLED
    )


@pytest.mark.unit
def test_worker_schedules_expiry():
    assert worker.task_expire_unpaid_orders in worker.WorkerSettings.functions
    [job] = worker.WorkerSettings.cron_jobs
    assert job.coroutine is worker.task_expire_unpaid_orders
    assert job.run_at_startup is True
    assert job.minute == {0, 5, 10, 15, 20, 25, 30, 35, 40, 45, 50, 55}


@pytest.mark.unit
def test_redis_settings_parsed_from_url(monkeypatch):
    monkeypatch.setenv("REDIS_URL", "rediss://:s3cret@cache.internal:6380/2")
    get_settings.cache_clear()
    try:
        redis = get_redis_settings()
    finally:
        monkeypatch.undo()
        get_settings.cache_clear()

    assert redis.host == "cache.internal"
    assert redis.port == 6380
    assert redis.database == 2
    assert redis.password == "s3cret"
    assert redis.ssl is True


@pytest.mark.unit
def test_redis_settings_carry_connection_policy():
    settings = Settings(
        REDIS_URL="redis://localhost:6379",
        REDIS_CONN_TIMEOUT_SECONDS=3,
        REDIS_CONN_RETRIES=2,
    )

    redis = get_redis_settings(settings)

    assert redis.database == 0
    assert redis.ssl is False
    assert redis.conn_timeout == 3
    assert redis.conn_retries == 2


@pytest.mark.unit
@pytest.mark.parametrize("interval, expected", [(15, {0, 15, 30, 45}), (60, {0})])
def test_sweep_minutes(interval, expected):
    assert sweep_minutes(interval) == expected


@pytest.mark.unit
@pytest.mark.parametrize("interval", [0, 7, 90])
def test_sweep_interval_must_divide_the_hour(interval):
    with pytest.raises(ValueError):
        sweep_minutes(interval)
