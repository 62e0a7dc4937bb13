"""Integration tests for the Store Service HTTP surface."""

import uuid
from decimal import Decimal

import pytest
from services.store_service.app.main import app
from services.store_service.models import OrderStatus
from services.store_service.services import order_service
from tests.factories import (
    ProductFactory,
    make_admin_user,
    make_member_user,
    override_auth,
    seed_address,
    seed_cart,
    seed_coupon,
    seed_order,
    seed_paid_order,
)

USER = "member-1"


async def _ready_session(client, db_session, lines=((500, 2, 10),)):
    products = await seed_cart(db_session, USER, lines)
    address = await seed_address(db_session, USER)
    response = await client.post("/store/checkout/sessions")
    assert response.status_code == 200
    session_id = response.json()["id"]
    response = await client.put(
        f"/store/checkout/sessions/{session_id}/address",
        json={"address_id": str(address.id)},
    )
    assert response.status_code == 200
    return session_id, products


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_add_and_remove_cart_items(store_client, db_session):
    product = ProductFactory.create(stock_quantity=5)
    db_session.add(product)
    await db_session.commit()
    product_id = str(product.id)

    response = await store_client.post(
        "/store/cart/items", json={"product_id": product_id, "quantity": 2}
    )
    assert response.status_code == 200
    assert response.json()["quantity"] == 2

    # Adding again sets the quantity
    response = await store_client.post(
        "/store/cart/items", json={"product_id": product_id, "quantity": 3}
    )
    assert response.status_code == 200

    response = await store_client.get("/store/cart")
    assert [(i["product_id"], i["quantity"]) for i in response.json()] == [
        (product_id, 3)
    ]

    response = await store_client.delete(f"/store/cart/items/{product_id}")
    assert response.status_code == 204
    assert (await store_client.get("/store/cart")).json() == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cart_rejects_quantity_above_stock(store_client, db_session):
    product = ProductFactory.create(stock_quantity=1)
    db_session.add(product)
    await db_session.commit()

    response = await store_client.post(
        "/store/cart/items", json={"product_id": str(product.id), "quantity": 4}
    )

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "insufficient_stock"
    assert body["retryable"] is False
    assert response.headers["X-Request-ID"]


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_with_coupon(store_client, db_session):
    await seed_coupon(db_session, code="WELCOME10")
    session_id, _ = await _ready_session(store_client, db_session)

    response = await store_client.post(
        f"/store/checkout/sessions/{session_id}/coupon", json={"code": "welcome10"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["coupon_code"] == "WELCOME10"
    assert body["coupon_applied"] is True
    assert Decimal(body["discount_amount"]) == Decimal("100")
    assert Decimal(body["final_amount"]) == Decimal("900")

    response = await store_client.get(f"/store/checkout/sessions/{session_id}")
    assert response.status_code == 200
    summary = response.json()
    assert summary["shipping_address"]["pincode"] == "560001"
    assert [item["quantity"] for item in summary["items"]] == [2]

    response = await store_client.delete(f"/store/checkout/sessions/{session_id}/coupon")
    assert response.status_code == 200
    assert Decimal(response.json()["final_amount"]) == Decimal("1000")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_empty_cart_cannot_start_checkout(store_client):
    response = await store_client.post("/store/checkout/sessions")

    assert response.status_code == 400
    assert response.json()["code"] == "empty_cart"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_bind_address_needs_exactly_one_source(store_client, db_session):
    await seed_cart(db_session, USER, ((500, 1, 10),))
    session_id = (await store_client.post("/store/checkout/sessions")).json()["id"]

    response = await store_client.put(
        f"/store/checkout/sessions/{session_id}/address", json={}
    )
    assert response.status_code == 422

    response = await store_client.put(
        f"/store/checkout/sessions/{session_id}/address",
        json={
            "new_address": {
                "address_line1": "4 Park Street",
                "city": "Kolkata",
                "state": "West Bengal",
                "pincode": "700016",
                "phone_number": "9830012345",
            }
        },
    )
    assert response.status_code == 200
    assert response.json()["city"] == "Kolkata"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_abandon_checkout(store_client, db_session):
    await seed_cart(db_session, USER, ((500, 1, 10),))
    session_id = (await store_client.post("/store/checkout/sessions")).json()["id"]

    response = await store_client.delete(f"/store/checkout/sessions/{session_id}")
    assert response.status_code == 204

    response = await store_client.post(
        f"/store/checkout/sessions/{session_id}/coupon", json={"code": "ANY"}
    )
    assert response.status_code == 409
    assert response.json()["code"] == "session_not_pending"


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_place_online_order(store_client, db_session):
    session_id, _ = await _ready_session(store_client, db_session)

    response = await store_client.post(
        "/store/orders", json={"session_id": session_id, "payment_method": "online"}
    )

    assert response.status_code == 201
    order = response.json()
    assert order["order_status"] == "pending_payment"
    assert order["checkout_session_id"] == session_id
    assert Decimal(order["final_amount"]) == Decimal("1000")
    assert (await store_client.get("/store/cart")).json() == []

    response = await store_client.get("/store/orders")
    assert response.json()["total"] == 1

    response = await store_client.get(f"/store/orders/{order['id']}")
    assert response.status_code == 200

    # The session is consumed
    response = await store_client.post(
        "/store/orders", json={"session_id": session_id, "payment_method": "online"}
    )
    assert response.status_code == 409


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cod_over_limit_is_rejected(store_client, db_session):
    session_id, _ = await _ready_session(store_client, db_session, ((800, 2, 10),))

    response = await store_client.post(
        "/store/orders", json={"session_id": session_id, "payment_method": "cod"}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "cod_limit_exceeded"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_customer_cancels_unpaid_order(store_client, db_session):
    order, _ = await seed_order(db_session, USER)

    response = await store_client.post(f"/store/orders/{order.id}/cancel")

    assert response.status_code == 200
    assert response.json()["order_status"] == "cancelled"
    assert response.json()["cancelled_at"] is not None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_orders_are_private(store_client, db_session):
    order, _ = await seed_order(db_session, "member-2")

    response = await store_client.get(f"/store/orders/{order.id}")

    assert response.status_code == 403


# ---------------------------------------------------------------------------
# Returns
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_return_lifecycle(store_client, db_session):
    order, _, _ = await seed_paid_order(db_session, USER)
    order_id = order.id
    await order_service.update_order_status(db_session, order_id, OrderStatus.SHIPPED)
    await order_service.update_order_status(db_session, order_id, OrderStatus.DELIVERED)

    response = await store_client.post(
        f"/store/orders/{order_id}/return", json={"reason": "Wrong size"}
    )
    assert response.status_code == 201
    return_id = response.json()["id"]

    with override_auth(app, make_admin_user()):
        response = await store_client.get("/admin/store/returns")
        assert [r["id"] for r in response.json()["items"]] == [return_id]

        steps = [
            ("review", {"approve": True}, "approved"),
            ("received", None, "returned_to_seller"),
            ("restock", None, "refund_initiated"),
            ("complete", None, "refund_completed"),
        ]
        for step, payload, expected in steps:
            response = await store_client.post(
                f"/admin/store/returns/{return_id}/{step}", json=payload
            )
            assert response.status_code == 200, step
            assert response.json()["status"] == expected

        response = await store_client.get(f"/admin/store/returns/{return_id}")
        assert response.status_code == 200
        assert response.json()["order_id"] == str(order_id)
        assert response.json()["refund_completed"] is True

        response = await store_client.get(f"/admin/store/returns/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["code"] == "return_not_found"

    response = await store_client.get(f"/store/orders/{order_id}/return")
    assert Decimal(response.json()["refund_amount"]) == Decimal("1000")

    response = await store_client.get(f"/store/orders/{order_id}")
    assert response.json()["order_status"] == "refunded"
    assert response.json()["refund_status"] == "completed"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_return_requires_delivery(store_client, db_session):
    order, _, _ = await seed_paid_order(db_session, USER)

    response = await store_client.post(
        f"/store/orders/{order.id}/return", json={"reason": "Changed my mind"}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "return_not_allowed"


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_routes_reject_members(store_client):
    response = await store_client.get("/admin/store/coupons")

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_coupon_management(store_client):
    with override_auth(app, make_admin_user()):
        response = await store_client.post(
            "/admin/store/coupons",
            json={
                "code": " festive20 ",
                "discount_percentage": "20",
                "min_order_amount": "500",
                "expires_at": "2099-01-01T00:00:00+00:00",
            },
        )
        assert response.status_code == 201
        coupon = response.json()
        assert coupon["code"] == "FESTIVE20"

        response = await store_client.post(
            "/admin/store/coupons",
            json={
                "code": "FESTIVE20",
                "discount_percentage": "5",
                "expires_at": "2099-01-01T00:00:00+00:00",
            },
        )
        assert response.status_code == 409
        assert response.json()["code"] == "duplicate_coupon_code"

        response = await store_client.patch(
            f"/admin/store/coupons/{coupon['id']}", json={"is_active": False}
        )
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        response = await store_client.get("/admin/store/coupons?only_usable=true")
        assert response.json()["total"] == 0

        response = await store_client.get(f"/admin/store/coupons/{coupon['id']}/usage")
        assert response.json() == {"coupon_id": coupon["id"], "in_use": False}

        response = await store_client.delete(f"/admin/store/coupons/{coupon['id']}")
        assert response.status_code == 204

        response = await store_client.get(f"/admin/store/coupons/{coupon['id']}")
        assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_fulfils_order(store_client, db_session):
    order, _ = await seed_order(db_session, USER)
    order_id = str(order.id)

    with override_auth(app, make_admin_user()):
        response = await store_client.patch(
            f"/admin/store/orders/{order_id}/status", json={"status": "shipped"}
        )
        # Unpaid online orders cannot ship
        assert response.status_code == 409
        assert response.json()["code"] == "invalid_status_transition"

        response = await store_client.get("/admin/store/orders?status=pending_payment")
        assert [o["id"] for o in response.json()["items"]] == [order_id]

        response = await store_client.post(f"/admin/store/orders/{order_id}/cancel")
        assert response.status_code == 200
        assert response.json()["order_status"] == "cancelled"

    with override_auth(app, make_member_user("member-2")):
        response = await store_client.get("/store/orders")
        assert response.json() == {"items": [], "total": 0}
