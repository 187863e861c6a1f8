"""
Unit tests for browser session management.

Tests cookie signing, lazy creation, rolling expiry, and cleanup of empty
sessions.
"""

from __future__ import annotations

import fakeredis
import fakeredis.aioredis
import pytest
from fastapi import Response

from exchange_gateway.auth.models import BrowserSession
from exchange_gateway.auth.session import SessionCookie, SessionStore
from exchange_gateway.exceptions import StorageError
from tests.exchange_gateway.helpers import COOKIE_NAME, make_request


def set_cookie_headers(response: Response) -> list[str]:
    return [v.decode("latin-1") for k, v in response.raw_headers if k == b"set-cookie"]


class TestSessionCookie:
    """Test cookie signing."""

    def test_sign_and_unsign(self, session_cookie: SessionCookie) -> None:
        """Test a signed session id verifies."""
        value = session_cookie.sign("session-abc")
        assert value != "session-abc"
        assert session_cookie.unsign(value) == "session-abc"

    def test_tampered_cookie_rejected(self, session_cookie: SessionCookie) -> None:
        """Test a cookie signed with another secret is ignored."""
        foreign = SessionCookie(secret="other-secret", name=COOKIE_NAME)
        assert session_cookie.unsign(foreign.sign("session-abc")) is None
        assert session_cookie.unsign("garbage") is None

    def test_cookie_attributes(self, session_cookie: SessionCookie) -> None:
        """Test cookie is HTTP-only with a one hour max age."""
        response = Response()
        session_cookie.write(response, "session-abc")

        header = set_cookie_headers(response)[0]
        assert header.startswith(f"{COOKIE_NAME}=")
        assert "HttpOnly" in header
        assert "Max-Age=3600" in header
        assert "Path=/" in header
        assert "Secure" not in header

    def test_secure_flag_configurable(self) -> None:
        """Test the Secure flag follows configuration."""
        cookie = SessionCookie(secret="s", name=COOKIE_NAME, secure=True)
        response = Response()
        cookie.write(response, "session-abc")
        assert "Secure" in set_cookie_headers(response)[0]


class TestSessionStore:
    """Test session persistence."""

    @pytest.mark.asyncio
    async def test_load_without_cookie_creates_fresh_session(self, session_store: SessionStore) -> None:
        """Test a request without a cookie gets a new unsaved session."""
        handle = await session_store.load(make_request())

        assert handle.persisted is False
        assert handle.session.is_empty()
        assert handle.session_id

    @pytest.mark.asyncio
    async def test_empty_session_not_persisted(
        self, session_store: SessionStore, fake_redis
    ) -> None:
        """Test anonymous sessions cause no write and no cookie."""
        handle = await session_store.load(make_request())
        response = Response()

        await session_store.commit(handle, response)

        assert await fake_redis.exists(f"browser_session:{handle.session_id}") == 0
        assert set_cookie_headers(response) == []

    @pytest.mark.asyncio
    async def test_session_with_state_is_persisted(
        self, session_store: SessionStore, session_cookie: SessionCookie, fake_redis
    ) -> None:
        """Test a session is written once it holds state."""
        handle = await session_store.load(make_request())
        handle.session.redirect_target = "/foo"
        response = Response()

        await session_store.commit(handle, response)

        ttl = await fake_redis.ttl(f"browser_session:{handle.session_id}")
        assert 0 < ttl <= 3600

        cookie_value = set_cookie_headers(response)[0].split(";")[0].split("=", 1)[1]
        assert session_cookie.unsign(cookie_value) == handle.session_id

    @pytest.mark.asyncio
    async def test_round_trip_through_cookie(
        self, session_store: SessionStore, session_cookie: SessionCookie
    ) -> None:
        """Test a persisted session is loaded back from its cookie."""
        session = BrowserSession(pending_user_id="42", pending_client_id="7", redirect_target="/foo")
        await session_store.set("sid-1", session)

        request = make_request(cookies={COOKIE_NAME: session_cookie.sign("sid-1")})
        handle = await session_store.load(request)

        assert handle.persisted is True
        assert handle.session_id == "sid-1"
        assert handle.session == session
        assert handle.modified is False

    @pytest.mark.asyncio
    async def test_tampered_cookie_gets_new_session(self, session_store: SessionStore) -> None:
        """Test a forged cookie never reaches another browser's session."""
        await session_store.set("victim", BrowserSession(redirect_target="/x"))

        forged = SessionCookie(secret="attacker", name=COOKIE_NAME).sign("victim")
        handle = await session_store.load(make_request(cookies={COOKIE_NAME: forged}))

        assert handle.session_id != "victim"
        assert handle.persisted is False

    @pytest.mark.asyncio
    async def test_unmodified_session_is_touched(
        self, session_store: SessionStore, session_cookie: SessionCookie, fake_redis
    ) -> None:
        """Test idle expiry rolls forward on every request."""
        await session_store.set("sid-2", BrowserSession(redirect_target="/foo"))
        await fake_redis.expire("browser_session:sid-2", 10)

        handle = await session_store.load(make_request(cookies={COOKIE_NAME: session_cookie.sign("sid-2")}))
        response = Response()
        await session_store.commit(handle, response)

        assert await fake_redis.ttl("browser_session:sid-2") > 10
        assert len(set_cookie_headers(response)) == 1

    @pytest.mark.asyncio
    async def test_emptied_session_is_deleted(
        self, session_store: SessionStore, session_cookie: SessionCookie, fake_redis
    ) -> None:
        """Test a session cleared of all state is removed with its cookie."""
        await session_store.set("sid-3", BrowserSession(redirect_target="/foo"))

        handle = await session_store.load(make_request(cookies={COOKIE_NAME: session_cookie.sign("sid-3")}))
        handle.session.redirect_target = ""
        response = Response()
        await session_store.commit(handle, response)

        assert await fake_redis.exists("browser_session:sid-3") == 0
        header = set_cookie_headers(response)[0]
        assert 'Max-Age=0' in header or "expires=" in header.lower()

    @pytest.mark.asyncio
    async def test_expired_session_is_fresh(
        self, session_store: SessionStore, session_cookie: SessionCookie, fake_redis
    ) -> None:
        """Test a valid cookie whose record expired yields a new session."""
        handle = await session_store.load(make_request(cookies={COOKIE_NAME: session_cookie.sign("gone")}))

        assert handle.persisted is False
        assert handle.session_id != "gone"

    @pytest.mark.asyncio
    async def test_delete(self, session_store: SessionStore) -> None:
        """Test explicit deletion."""
        await session_store.set("sid-4", BrowserSession(pending_user_id="1"))

        assert await session_store.delete("sid-4") is True
        assert await session_store.get("sid-4") is None
        assert await session_store.delete("sid-4") is False

    @pytest.mark.asyncio
    async def test_storage_error_propagates(self, session_cookie: SessionCookie) -> None:
        """Test store outage surfaces as StorageError."""
        server = fakeredis.FakeServer()
        store = SessionStore(
            client=fakeredis.aioredis.FakeRedis(server=server),
            cookie=session_cookie,
        )
        await store.initialize()
        server.connected = False

        with pytest.raises(StorageError):
            await store.load(make_request(cookies={COOKIE_NAME: session_cookie.sign("sid")}))
