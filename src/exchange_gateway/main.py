"""
Exchange Gateway - FastAPI Application

Main application entry point. Registers one start and one callback route per
configured identity provider.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI

from exchange_gateway.auth.oauth.identity import StaticClientResolver
from exchange_gateway.auth.oauth.registry import ProviderRegistry
from exchange_gateway.auth.session import SessionCookie, SessionStore
from exchange_gateway.auth.tokens import TokenStore
from exchange_gateway.config import ExchangeGatewaySettings, settings as default_settings
from exchange_gateway.exchange.gateway import ExchangeGateway
from exchange_gateway.middleware.logging import logging_middleware
from exchange_gateway.routes import health


def create_app(
    settings: ExchangeGatewaySettings | None = None,
    registry: ProviderRegistry | None = None,
    token_store: TokenStore | None = None,
    session_store: SessionStore | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Gateway settings (module settings if None)
        registry: Identity providers (built from settings if None)
        token_store: One-time token store (Redis from settings if None)
        session_store: Browser session store (Redis from settings if None)
    """
    settings = settings or default_settings

    if registry is None:
        registry = ProviderRegistry.from_configs(
            settings.OAUTH_PROVIDERS,
            resolver=StaticClientResolver(settings.DEFAULT_CLIENT_ID),
        )
    if token_store is None:
        token_store = TokenStore(
            redis_url=settings.TOKEN_REDIS_URL,
            ttl_seconds=settings.TOKEN_TTL_SECONDS,
        )
    if session_store is None:
        session_store = SessionStore(
            redis_url=settings.SESSION_REDIS_URL,
            max_age_minutes=settings.SESSION_MAX_AGE_MINUTES,
            cookie=SessionCookie(
                secret=settings.SESSION_SECRET,
                name=settings.SESSION_COOKIE_NAME,
                max_age_seconds=settings.SESSION_MAX_AGE_MINUTES * 60,
                secure=settings.SESSION_COOKIE_SECURE,
            ),
        )

    gateway = ExchangeGateway(
        registry=registry,
        token_store=token_store,
        session_store=session_store,
        settings=settings,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        logger = structlog.get_logger()

        try:
            logger.info(
                "Starting exchange gateway",
                version=settings.GATEWAY_VERSION,
                providers=registry.names(),
            )

            await token_store.initialize()
            await session_store.initialize()

            yield
        finally:
            logger.info("Shutting down exchange gateway")

            await token_store.close()
            await session_store.close()

    app = FastAPI(
        title=settings.GATEWAY_NAME,
        description="Exchanges browser OAuth sign-ins for one-time API tokens",
        version=settings.GATEWAY_VERSION,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    app.state.gateway = gateway
    app.state.token_store = token_store
    app.state.session_store = session_store

    @app.middleware("http")
    async def add_logging_middleware(request, call_next):
        return await logging_middleware(request, call_next)

    app.include_router(health.router, tags=["health"])
    app.include_router(gateway.build_router())

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "exchange_gateway.main:create_app",
        factory=True,
        host=default_settings.HOST,
        port=default_settings.PORT,
        reload=default_settings.DEBUG,
        log_level=default_settings.LOG_LEVEL.lower(),
        access_log=True,
    )
