"""
Browser Session Management

Redis-backed browser sessions keyed by a signed, HTTP-only cookie. Sessions
are created lazily, never persisted while empty, and their idle TTL rolls
forward on every request that touches them.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Any

import redis.asyncio as aioredis
import structlog
from fastapi import Request, Response
from jose import jws
from jose.exceptions import JOSEError
from pydantic import ValidationError
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError

from exchange_gateway.auth.models import BrowserSession
from exchange_gateway.auth.tokens import fingerprint
from exchange_gateway.config import settings
from exchange_gateway.exceptions import StorageError

logger = structlog.get_logger()


class SessionCookie:
    """Signs and verifies session identifiers carried in the session cookie."""

    ALGORITHM = "HS256"

    def __init__(
        self,
        secret: str | None = None,
        name: str | None = None,
        max_age_seconds: int | None = None,
        secure: bool | None = None,
    ) -> None:
        self.secret = secret or settings.SESSION_SECRET
        self.name = name or settings.SESSION_COOKIE_NAME
        self.max_age_seconds = max_age_seconds or settings.SESSION_MAX_AGE_MINUTES * 60
        self.secure = settings.SESSION_COOKIE_SECURE if secure is None else secure

    def sign(self, session_id: str) -> str:
        return jws.sign(session_id.encode("utf-8"), self.secret, algorithm=self.ALGORITHM)

    def unsign(self, value: str) -> str | None:
        """
        Verify a cookie value.

        Returns:
            Session identifier, or None if the signature does not verify
        """
        try:
            payload = jws.verify(value, self.secret, algorithms=[self.ALGORITHM])
        except JOSEError:
            logger.debug("Ignoring session cookie with invalid signature")
            return None
        return payload.decode("utf-8")

    def read(self, request: Request) -> str | None:
        value = request.cookies.get(self.name)
        if not value:
            return None
        return self.unsign(value)

    def write(self, response: Response, session_id: str) -> None:
        response.set_cookie(
            key=self.name,
            value=self.sign(session_id),
            max_age=self.max_age_seconds,
            path="/",
            httponly=True,
            secure=self.secure,
            samesite="lax",
        )

    def clear(self, response: Response) -> None:
        response.delete_cookie(
            key=self.name,
            path="/",
            httponly=True,
            secure=self.secure,
            samesite="lax",
        )


@dataclass
class SessionHandle:
    """A browser session bound to the request that loaded it."""

    session_id: str
    session: BrowserSession
    persisted: bool
    original: BrowserSession

    @property
    def modified(self) -> bool:
        return self.session != self.original


class SessionStore:
    """
    Redis-based browser session store.

    Handles lazy creation, rolling idle expiry, and cookie binding for the
    transient state of a sign-in round trip.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        max_age_minutes: int | None = None,
        cookie: SessionCookie | None = None,
        client: aioredis.Redis | None = None,
    ) -> None:
        """
        Initialize session store.

        Args:
            redis_url: Redis connection URL (uses settings default if None)
            max_age_minutes: Idle lifetime (uses settings default if None)
            cookie: Cookie signer (built from settings if None)
            client: Pre-built Redis client; the store will not close it
        """
        self.redis_url = redis_url or settings.SESSION_REDIS_URL
        self.max_age_minutes = max_age_minutes or settings.SESSION_MAX_AGE_MINUTES
        self.cookie = cookie or SessionCookie(max_age_seconds=self.ttl_seconds)

        self._client: aioredis.Redis | None = client
        self._owns_client = client is None
        self._pool: ConnectionPool | None = None

    @property
    def ttl_seconds(self) -> int:
        return self.max_age_minutes * 60

    async def initialize(self) -> None:
        """Initialize Redis connection."""
        if self._client is None:
            logger.info("Initializing session store", redis_url=self.redis_url)

            self._pool = ConnectionPool.from_url(
                self.redis_url,
                decode_responses=False,
                max_connections=20,
            )
            self._client = aioredis.Redis(connection_pool=self._pool)

        try:
            await self._client.ping()
        except RedisError as e:
            raise StorageError("ping", str(e)) from e

        logger.info("Session store initialized")

    async def close(self) -> None:
        """Close Redis connection."""
        if not self._owns_client:
            return

        if self._client:
            await self._client.aclose()
            self._client = None

        if self._pool:
            await self._pool.aclose()
            self._pool = None

        logger.info("Session store closed")

    @property
    def client(self) -> aioredis.Redis:
        """Get Redis client instance."""
        if not self._client:
            raise RuntimeError("Session store not initialized. Call initialize() first.")
        return self._client

    def _get_session_key(self, session_id: str) -> str:
        return f"browser_session:{session_id}"

    def generate_session_id(self) -> str:
        return secrets.token_urlsafe(24)

    async def get(self, session_id: str) -> BrowserSession | None:
        """
        Load a session.

        Args:
            session_id: Session identifier

        Returns:
            Session if present and well-formed, None otherwise
        """
        try:
            data = await self.client.get(self._get_session_key(session_id))
        except RedisError as e:
            raise StorageError("get_session", str(e)) from e

        if data is None:
            return None

        try:
            return BrowserSession.model_validate_json(data)
        except ValidationError:
            logger.warning("Discarding malformed browser session", session=fingerprint(session_id))
            return None

    async def set(self, session_id: str, session: BrowserSession) -> None:
        """
        Persist a session with a fresh idle TTL.

        Empty sessions are deleted instead of written.
        """
        if session.is_empty():
            await self.delete(session_id)
            return

        try:
            await self.client.set(
                self._get_session_key(session_id),
                session.model_dump_json(),
                ex=self.ttl_seconds,
            )
        except RedisError as e:
            raise StorageError("set_session", str(e)) from e

    async def touch(self, session_id: str) -> bool:
        """
        Refresh the idle TTL of a persisted session.

        Returns:
            True if the session exists
        """
        try:
            return bool(await self.client.expire(self._get_session_key(session_id), self.ttl_seconds))
        except RedisError as e:
            raise StorageError("touch_session", str(e)) from e

    async def delete(self, session_id: str) -> bool:
        """
        Delete a session.

        Returns:
            True if a session was deleted
        """
        try:
            result = await self.client.delete(self._get_session_key(session_id))
        except RedisError as e:
            raise StorageError("delete_session", str(e)) from e

        if result:
            logger.info("Browser session deleted", session=fingerprint(session_id))
        return result > 0

    async def load(self, request: Request) -> SessionHandle:
        """
        Bind the request's session.

        A missing, expired or tampered cookie yields a fresh, unsaved session.
        """
        session_id = self.cookie.read(request)
        session = await self.get(session_id) if session_id else None

        if session_id is None or session is None:
            return SessionHandle(
                session_id=self.generate_session_id(),
                session=BrowserSession(),
                persisted=False,
                original=BrowserSession(),
            )

        return SessionHandle(
            session_id=session_id,
            session=session,
            persisted=True,
            original=session.model_copy(deep=True),
        )

    async def commit(self, handle: SessionHandle, response: Response) -> None:
        """
        Write back a session and roll its cookie.

        Args:
            handle: Session loaded for this request
            response: Outgoing response receiving the cookie
        """
        if handle.session.is_empty():
            if handle.persisted:
                await self.delete(handle.session_id)
                self.cookie.clear(response)
            return

        if handle.modified or not handle.persisted:
            await self.set(handle.session_id, handle.session)
            if not handle.persisted:
                logger.info("Browser session created", session=fingerprint(handle.session_id))
        else:
            await self.touch(handle.session_id)

        self.cookie.write(response, handle.session_id)

    async def health_check(self) -> dict[str, Any]:
        """
        Perform health check on session store.

        Returns:
            Dictionary with health status information
        """
        try:
            await self.client.ping()
            return {"status": "healthy", "redis_url": self.redis_url}
        except (RedisError, RuntimeError) as e:
            return {"status": "unhealthy", "error": str(e)}
