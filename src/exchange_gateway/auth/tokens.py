"""
Exchange Token Store

Redis-backed one-time exchange tokens. Redemption uses GETDEL so that a token
is read and deleted in a single atomic step.
"""

from __future__ import annotations

import secrets
from typing import Any

import redis.asyncio as aioredis
import structlog
from pydantic import ValidationError
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError

from exchange_gateway.auth.models import ExchangeTokenRecord, TokenKind
from exchange_gateway.config import settings
from exchange_gateway.exceptions import StorageError

logger = structlog.get_logger()


def fingerprint(value: str) -> str:
    """Short, log-safe prefix of a secret value."""
    return value[:8] + "..."


class TokenStore:
    """
    One-time exchange token store with Redis backend.

    Tokens are opaque URL-safe strings. A redeemed, expired or unknown token
    all produce the same ``None`` result.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        ttl_seconds: int | None = None,
        client: aioredis.Redis | None = None,
    ) -> None:
        """
        Initialize token store.

        Args:
            redis_url: Redis connection URL (uses settings default if None)
            ttl_seconds: Token lifetime (uses settings default if None)
            client: Pre-built Redis client; the store will not close it
        """
        self.redis_url = redis_url or settings.TOKEN_REDIS_URL
        self.ttl_seconds = ttl_seconds or settings.TOKEN_TTL_SECONDS

        self._client: aioredis.Redis | None = client
        self._owns_client = client is None
        self._pool: ConnectionPool | None = None

    async def initialize(self) -> None:
        """Initialize Redis connection."""
        if self._client is None:
            logger.info("Initializing token store", redis_url=self.redis_url)

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

        logger.info("Token store initialized")

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

        logger.info("Token store closed")

    @property
    def client(self) -> aioredis.Redis:
        """Get Redis client instance."""
        if not self._client:
            raise RuntimeError("Token store not initialized. Call initialize() first.")
        return self._client

    def _get_token_key(self, token: str) -> str:
        return f"exchange_token:{token}"

    def generate_token(self) -> str:
        """
        Generate an unguessable token identifier.

        Returns:
            Random token string (32 bytes, URL-safe base64)
        """
        return secrets.token_urlsafe(32)

    async def issue(
        self,
        kind: TokenKind | str,
        user_id: str,
        client_id: str,
    ) -> str:
        """
        Mint and persist a new exchange token.

        Args:
            kind: Token kind
            user_id: Authenticated user identifier
            client_id: Client identifier

        Returns:
            The new token

        Raises:
            StorageError: If the record could not be written
        """
        token = self.generate_token()
        record = ExchangeTokenRecord(
            kind=TokenKind(kind),
            user_id=str(user_id),
            client_id=str(client_id),
        )

        try:
            await self.client.set(
                self._get_token_key(token),
                record.model_dump_json(),
                ex=self.ttl_seconds,
            )
        except RedisError as e:
            raise StorageError("issue", str(e)) from e

        logger.info(
            "Exchange token issued",
            token=fingerprint(token),
            kind=record.kind.value,
            user_id=record.user_id,
            client_id=record.client_id,
            ttl_seconds=self.ttl_seconds,
        )

        return token

    async def redeem(self, token: str) -> ExchangeTokenRecord | None:
        """
        Atomically fetch and delete the record behind a token.

        Args:
            token: Token to redeem

        Returns:
            Token record on first redemption, None otherwise

        Raises:
            StorageError: If the store could not be reached
        """
        if not token:
            return None

        try:
            data = await self.client.getdel(self._get_token_key(token))
        except RedisError as e:
            raise StorageError("redeem", str(e)) from e

        if data is None:
            logger.debug("Exchange token redemption miss", token=fingerprint(token))
            return None

        try:
            record = ExchangeTokenRecord.model_validate_json(data)
        except ValidationError:
            logger.warning("Discarding malformed exchange token record", token=fingerprint(token))
            return None

        logger.info(
            "Exchange token redeemed",
            token=fingerprint(token),
            kind=record.kind.value,
            user_id=record.user_id,
        )

        return record

    async def health_check(self) -> dict[str, Any]:
        """
        Perform health check on token store.

        Returns:
            Dictionary with health status information
        """
        try:
            await self.client.ping()
            return {"status": "healthy", "redis_url": self.redis_url}
        except (RedisError, RuntimeError) as e:
            return {"status": "unhealthy", "error": str(e)}
