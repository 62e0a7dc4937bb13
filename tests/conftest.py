import json
import os
import uuid
from contextlib import contextmanager
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Optional overrides (e.g. TEST_DATABASE_URL pointing at a local Postgres)
env_test_path = os.path.join(os.path.dirname(__file__), ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=True)
os.environ.setdefault("ENVIRONMENT", "test")

from libs.auth.dependencies import get_current_user  # noqa: E402
from libs.auth.models import AuthUser  # noqa: E402
from libs.common.config import get_settings  # noqa: E402
from libs.db.base import Base  # noqa: E402
from libs.db.session import get_async_db  # noqa: E402
from services.payments_service.razorpay_client import (  # noqa: E402
    GatewayConfig,
    RazorpayClient,
    get_gateway_client,
)

# Import all models so metadata includes every table
from services.payments_service import models as _payment_models  # noqa: E402,F401
from services.store_service import models as _store_models  # noqa: E402,F401
from services.wallet_service import models as _wallet_models  # noqa: E402,F401
from tests.factories import make_admin_user, make_member_user  # noqa: E402

get_settings.cache_clear()
settings = get_settings()

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

TEST_KEY_SECRET = "rzp_test_secret"
PREVIOUS_KEY_SECRET = "rzp_previous_secret"


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine():
    """A fresh schema per test. In-memory SQLite unless TEST_DATABASE_URL is set."""
    engine_kwargs = {}
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine_kwargs = {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    engine = create_async_engine(TEST_DATABASE_URL, **engine_kwargs)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Session configured like the production one; code under test commits freely."""
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Payment gateway
# ---------------------------------------------------------------------------


class FakeRazorpay:
    """In-memory stand-in for the Razorpay Orders API, served via MockTransport."""

    def __init__(self):
        self.orders: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.error: Exception | None = None
        self.status_override: tuple[int, dict] | None = None

    def mark_paid(self, gateway_order_id: str) -> None:
        self.orders[gateway_order_id]["status"] = "paid"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.status_override is not None:
            status_code, body = self.status_override
            return httpx.Response(status_code, json=body)

        path = request.url.path
        if request.method == "POST" and path == "/v1/orders":
            body = json.loads(request.content)
            gateway_order_id = f"order_{uuid.uuid4().hex[:14]}"
            order = {
                "id": gateway_order_id,
                "entity": "order",
                "amount": body["amount"],
                "currency": body["currency"],
                "receipt": body.get("receipt"),
                "status": "created",
            }
            self.orders[gateway_order_id] = order
            return httpx.Response(200, json=order)

        if request.method == "GET" and path.startswith("/v1/orders/"):
            gateway_order_id = path.rsplit("/", 1)[-1]
            order = self.orders.get(gateway_order_id)
            if order is None:
                return httpx.Response(
                    400,
                    json={
                        "error": {
                            "code": "BAD_REQUEST_ERROR",
                            "description": "The id provided does not exist",
                        }
                    },
                )
            return httpx.Response(200, json=order)

        return httpx.Response(404, json={"error": {"description": "Not found"}})


@pytest.fixture
def fake_razorpay() -> FakeRazorpay:
    return FakeRazorpay()


@pytest.fixture
def gateway(fake_razorpay) -> RazorpayClient:
    config = GatewayConfig(
        key_id="rzp_test_key",
        key_secret=TEST_KEY_SECRET,
        previous_key_secrets=(PREVIOUS_KEY_SECRET,),
        base_url="https://api.razorpay.test",
        timeout_seconds=2.0,
        currency="INR",
    )
    return RazorpayClient(config, transport=httpx.MockTransport(fake_razorpay.handler))


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


@pytest.fixture
def member_user() -> AuthUser:
    return make_member_user()


@pytest.fixture
def admin_user() -> AuthUser:
    return make_admin_user()


# ---------------------------------------------------------------------------
# HTTP clients
# ---------------------------------------------------------------------------


@contextmanager
def _app_overrides(app, db_session, user, extra=None):
    app.dependency_overrides[get_async_db] = lambda: db_session
    app.dependency_overrides[get_current_user] = lambda: user
    for dependency, override in (extra or {}).items():
        app.dependency_overrides[dependency] = override
    try:
        yield
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def store_client(db_session, member_user) -> AsyncGenerator[AsyncClient, None]:
    from services.store_service.app.main import app

    with _app_overrides(app, db_session, member_user):
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac


@pytest_asyncio.fixture
async def payments_client(
    db_session, member_user, gateway
) -> AsyncGenerator[AsyncClient, None]:
    from services.payments_service.app.main import app

    with _app_overrides(
        app, db_session, member_user, {get_gateway_client: lambda: gateway}
    ):
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac


@pytest_asyncio.fixture
async def wallet_client(db_session, member_user) -> AsyncGenerator[AsyncClient, None]:
    from services.wallet_service.app.main import app

    with _app_overrides(app, db_session, member_user):
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
