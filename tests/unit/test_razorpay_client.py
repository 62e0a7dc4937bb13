"""Unit tests for the Razorpay client, served through httpx.MockTransport."""

import base64
import hashlib
import hmac

import httpx
import pytest
from libs.common.errors import GatewayError, GatewayTimeout
from services.payments_service.razorpay_client import (
    GatewayConfig,
    RazorpayClient,
    compute_signature,
)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_order_posts_paise_with_basic_auth(gateway, fake_razorpay):
    remote = await gateway.create_order(49950, receipt="order-1")

    assert remote.amount == 49950
    assert remote.currency == "INR"
    assert remote.receipt == "order-1"
    assert remote.status == "created"

    [request] = fake_razorpay.requests
    assert request.method == "POST"
    assert request.url.path == "/v1/orders"
    expected = base64.b64encode(b"rzp_test_key:rzp_test_secret").decode()
    assert request.headers["Authorization"] == f"Basic {expected}"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_fetch_order_reports_remote_status(gateway, fake_razorpay):
    remote = await gateway.create_order(1000, receipt="order-2")
    fake_razorpay.mark_paid(remote.id)

    fetched = await gateway.fetch_order(remote.id)

    assert fetched.id == remote.id
    assert fetched.status == "paid"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_error_response_becomes_gateway_error(gateway):
    with pytest.raises(GatewayError) as exc_info:
        await gateway.fetch_order("order_unknown")

    assert exc_info.value.gateway_status_code == 400
    assert "does not exist" in exc_info.value.message
    assert exc_info.value.response_data["error"]["code"] == "BAD_REQUEST_ERROR"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_timeout_becomes_gateway_timeout(gateway, fake_razorpay):
    fake_razorpay.error = httpx.ReadTimeout("timed out")

    with pytest.raises(GatewayTimeout):
        await gateway.create_order(1000, receipt="order-3")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_connection_error_becomes_gateway_error(gateway, fake_razorpay):
    fake_razorpay.error = httpx.ConnectError("connection refused")

    with pytest.raises(GatewayError) as exc_info:
        await gateway.create_order(1000, receipt="order-4")

    assert not isinstance(exc_info.value, GatewayTimeout)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_non_json_error_body(gateway):
    def handler(request):
        return httpx.Response(502, text="<html>Bad Gateway</html>")

    client = RazorpayClient(gateway.config, transport=httpx.MockTransport(handler))

    with pytest.raises(GatewayError) as exc_info:
        await client.create_order(1000, receipt="order-5")
    assert exc_info.value.gateway_status_code == 502


# ---------------------------------------------------------------------------
# Signatures
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_signature_is_hmac_sha256_over_order_and_payment_ids():
    expected = hmac.new(b"secret", b"order_1|pay_1", hashlib.sha256).hexdigest()
    assert compute_signature("secret", "order_1", "pay_1") == expected


@pytest.mark.unit
def test_verify_signature_accepts_current_and_previous_secrets(gateway):
    current = compute_signature("rzp_test_secret", "order_1", "pay_1")
    previous = compute_signature("rzp_previous_secret", "order_1", "pay_1")
    unknown = compute_signature("retired_secret", "order_1", "pay_1")

    assert gateway.verify_signature("order_1", "pay_1", current) is True
    assert gateway.verify_signature("order_1", "pay_1", previous) is True
    assert gateway.verify_signature("order_1", "pay_1", unknown) is False
    assert gateway.verify_signature("order_1", "pay_2", current) is False
    assert gateway.verify_signature("order_1", "pay_1", "") is False


@pytest.mark.unit
def test_verify_signature_rejects_non_ascii_without_raising(gateway):
    assert gateway.verify_signature("order_1", "pay_1", "é" * 64) is False
    assert gateway.verify_signature("order_1", "pay_1", "\ud800" * 64) is False


@pytest.mark.unit
def test_client_requires_credentials():
    with pytest.raises(ValueError):
        RazorpayClient(GatewayConfig(key_id="", key_secret="secret"))
