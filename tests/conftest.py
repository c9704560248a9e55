import hashlib
import hmac
import json
import time

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from billing_webhook.config import Settings, WebhookConfig
from billing_webhook.main import create_app
from billing_webhook.models import Base

WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def test_settings():
    return Settings(
        STRIPE_SECRET_KEY="sk_test_123",
        STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET,
        APP_ENV="test",
    )


@pytest.fixture
def webhook_config(test_settings):
    return WebhookConfig.from_settings(test_settings)


@pytest.fixture
def app(test_settings):
    return create_app(test_settings)


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db_session():
    """In-memory SQLite session with the schema created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def sign():
    """Return a function producing a Stripe-Signature header for a body."""

    def _sign(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
        ts = int(time.time()) if timestamp is None else timestamp
        digest = hmac.new(
            secret.encode(), f"{ts}.".encode() + payload, hashlib.sha256,
        ).hexdigest()
        return f"t={ts},v1={digest}"

    return _sign


@pytest.fixture
def make_event():
    """Return a function building a raw Stripe event body."""

    def _make(event_type: str, obj: dict, event_id: str = "evt_test_1") -> bytes:
        return json.dumps(
            {
                "id": event_id,
                "object": "event",
                "type": event_type,
                "data": {"object": obj},
            },
            indent=2,
        ).encode()

    return _make
