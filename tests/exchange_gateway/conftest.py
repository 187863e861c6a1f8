"""Exchange gateway pytest configuration."""

from __future__ import annotations

import fakeredis.aioredis
import pytest
from httpx import ASGITransport, AsyncClient

from exchange_gateway.auth.oauth.registry import ProviderRegistry
from exchange_gateway.auth.session import SessionCookie, SessionStore
from exchange_gateway.auth.tokens import TokenStore
from exchange_gateway.config import ExchangeGatewaySettings
from exchange_gateway.main import create_app
from tests.exchange_gateway.helpers import API_APP_SERVER, COOKIE_NAME, SECRET, ScriptedProvider


@pytest.fixture
async def fake_redis():
    """In-memory Redis shared by both stores."""
    client = fakeredis.aioredis.FakeRedis(decode_responses=False)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def test_settings() -> ExchangeGatewaySettings:
    return ExchangeGatewaySettings(
        API_APP_SERVER=API_APP_SERVER,
        PUBLIC_URL="http://testserver",
        SESSION_SECRET=SECRET,
        SESSION_COOKIE_NAME=COOKIE_NAME,
        TOKEN_TTL_SECONDS=300,
        SESSION_MAX_AGE_MINUTES=60,
    )


@pytest.fixture
async def token_store(fake_redis) -> TokenStore:
    store = TokenStore(client=fake_redis, ttl_seconds=300)
    await store.initialize()
    return store


@pytest.fixture
def session_cookie() -> SessionCookie:
    return SessionCookie(secret=SECRET, name=COOKIE_NAME, max_age_seconds=3600, secure=False)


@pytest.fixture
async def session_store(fake_redis, session_cookie: SessionCookie) -> SessionStore:
    store = SessionStore(client=fake_redis, max_age_minutes=60, cookie=session_cookie)
    await store.initialize()
    return store


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def app(test_settings, provider, token_store, session_store):
    """Gateway app wired to fakeredis stores and the scripted provider."""
    return create_app(
        settings=test_settings,
        registry=ProviderRegistry([provider]),
        token_store=token_store,
        session_store=session_store,
    )


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client
