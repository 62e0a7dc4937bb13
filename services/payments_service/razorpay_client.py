"""
Razorpay API client for payment intents and callback signature checks.

Provides:
- Creating a gateway order (the remote payment intent)
- Fetching a gateway order's status (used by unpaid-order expiry)
- Verifying checkout callback signatures, accepting previous secrets
  during a key rotation
"""

import hashlib
import hmac
from dataclasses import dataclass, field
from typing import Optional

import httpx
from libs.common.config import Settings, get_settings
from libs.common.errors import GatewayError, GatewayTimeout
from libs.common.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class GatewayConfig:
    """Credentials and policy for one gateway account."""

    key_id: str
    key_secret: str
    previous_key_secrets: tuple[str, ...] = field(default_factory=tuple)
    base_url: str = "https://api.razorpay.com"
    timeout_seconds: float = 15.0
    currency: str = "INR"

    @classmethod
    def from_settings(cls, settings: Settings) -> "GatewayConfig":
        return cls(
            key_id=settings.RAZORPAY_KEY_ID,
            key_secret=settings.RAZORPAY_KEY_SECRET,
            previous_key_secrets=settings.razorpay_previous_secrets,
            base_url=settings.RAZORPAY_API_BASE_URL,
            timeout_seconds=settings.GATEWAY_TIMEOUT_SECONDS,
            currency=settings.PAYMENT_CURRENCY,
        )


@dataclass
class GatewayOrder:
    """Gateway-side order object."""

    id: str
    amount: int  # in paise
    currency: str
    receipt: Optional[str]
    status: str  # created, attempted, paid


def compute_signature(secret: str, gateway_order_id: str, gateway_payment_id: str) -> str:
    """HMAC-SHA256 hex over ``order_id|payment_id``."""
    message = f"{gateway_order_id}|{gateway_payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class RazorpayClient:
    """Async client for the Razorpay Orders API."""

    def __init__(
        self,
        config: GatewayConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not config.key_id or not config.key_secret:
            raise ValueError("Razorpay key id and secret are required")
        self.config = config
        self._transport = transport

    async def _request(
        self,
        method: str,
        endpoint: str,
        json_data: Optional[dict] = None,
    ) -> dict:
        """Make an async request to the Razorpay API."""
        async with httpx.AsyncClient(
            base_url=self.config.base_url,
            auth=(self.config.key_id, self.config.key_secret),
            timeout=self.config.timeout_seconds,
            transport=self._transport,
        ) as client:
            try:
                response = await client.request(method, endpoint, json=json_data)
            except httpx.TimeoutException as exc:
                logger.warning("Razorpay %s %s timed out", method, endpoint)
                raise GatewayTimeout() from exc
            except httpx.HTTPError as exc:
                logger.warning("Razorpay %s %s failed: %s", method, endpoint, exc)
                raise GatewayError(f"Payment gateway unreachable: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.is_success:
            error = data.get("error") or {}
            logger.error(
                "Razorpay API error: %s - %s", response.status_code, error
            )
            raise GatewayError(
                error.get("description") or "Unknown Razorpay error",
                status_code=response.status_code,
                response_data=data,
            )
        return data

    @staticmethod
    def _parse_order(data: dict) -> GatewayOrder:
        return GatewayOrder(
            id=data["id"],
            amount=int(data["amount"]),
            currency=data.get("currency", "INR"),
            receipt=data.get("receipt"),
            status=data.get("status", "created"),
        )

    # =========================================================================
    # Orders
    # =========================================================================

    async def create_order(
        self, amount: int, receipt: str, currency: Optional[str] = None
    ) -> GatewayOrder:
        """
        Create a gateway order for ``amount`` paise.

        Args:
            amount: Amount in paise
            receipt: Our reference (the order id)
            currency: Defaults to the configured currency
        """
        data = await self._request(
            "POST",
            "/v1/orders",
            json_data={
                "amount": amount,
                "currency": currency or self.config.currency,
                "receipt": receipt,
            },
        )
        return self._parse_order(data)

    async def fetch_order(self, gateway_order_id: str) -> GatewayOrder:
        data = await self._request("GET", f"/v1/orders/{gateway_order_id}")
        return self._parse_order(data)

    # =========================================================================
    # Signatures
    # =========================================================================

    def verify_signature(
        self, gateway_order_id: str, gateway_payment_id: str, signature: str
    ) -> bool:
        """Constant-time check against the current and any previous secret."""
        if not signature:
            return False
        provided = signature.encode("utf-8", "replace")
        for secret in (self.config.key_secret, *self.config.previous_key_secrets):
            expected = compute_signature(secret, gateway_order_id, gateway_payment_id)
            if hmac.compare_digest(expected.encode("utf-8"), provided):
                return True
        return False


def get_gateway_client() -> RazorpayClient:
    """FastAPI dependency / worker factory built from current settings."""
    return RazorpayClient(GatewayConfig.from_settings(get_settings()))
