"""
Exchange Gateway

Orchestrates the sign-in round trip for every registered identity provider:

    start:    bootstrap token -> redirect target -> provider handshake
    callback: handshake completion -> clear pending identity -> identity check
              -> one-time token -> redirect to the API application

Handshake failures and incomplete identities become redirects to the API
application's error page. Storage errors and unexpected provider errors
propagate to the hosting layer.
"""

from __future__ import annotations

from urllib.parse import quote

import structlog
from fastapi import APIRouter, Request, status
from fastapi.responses import RedirectResponse

from exchange_gateway.auth.models import BrowserSession, Identity, TokenKind
from exchange_gateway.auth.oauth.provider import HandshakeProvider
from exchange_gateway.auth.oauth.registry import ProviderRegistry
from exchange_gateway.auth.session import SessionStore
from exchange_gateway.auth.tokens import TokenStore, fingerprint
from exchange_gateway.config import ExchangeGatewaySettings
from exchange_gateway.config import settings as default_settings
from exchange_gateway.exceptions import HandshakeFailure, IncompleteIdentity
from exchange_gateway.exchange.pipeline import Continue, NamedStep, Pipeline, Redirect, Step, StepResult

logger = structlog.get_logger()


def _encode(value: str) -> str:
    return quote(value, safe="")


class ExchangeGateway:
    """
    Session-to-token exchange orchestrator.

    Holds no per-request state; everything that crosses requests lives in the
    session and token stores.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        token_store: TokenStore,
        session_store: SessionStore,
        settings: ExchangeGatewaySettings | None = None,
    ) -> None:
        self.registry = registry
        self.token_store = token_store
        self.session_store = session_store
        self.settings = settings or default_settings

    def callback_url(self, provider: HandshakeProvider) -> str:
        return f"{self.settings.PUBLIC_URL.rstrip('/')}/oauth/{provider.name}/callback"

    # Start steps

    async def seed_from_bootstrap_token(self, request: Request, session: BrowserSession) -> StepResult:
        token = request.query_params.get("token", "")
        record = await self.token_store.redeem(token) if token else None

        if record is not None and record.kind == TokenKind.ONE_TIME:
            session.pending_user_id = record.user_id
            session.pending_client_id = record.client_id
            logger.info(
                "Sign-in seeded from bootstrap token",
                token=fingerprint(token),
                user_id=record.user_id,
                client_id=record.client_id,
            )
        else:
            # A missed bootstrap token is an anonymous sign-in
            session.clear_pending()

        return Continue(session)

    async def record_redirect_target(self, request: Request, session: BrowserSession) -> StepResult:
        session.redirect_target = request.query_params.get("redirect", "")
        return Continue(session)

    def begin_handshake(self, provider: HandshakeProvider) -> Step:
        async def step(request: Request, session: BrowserSession) -> StepResult:
            url = await provider.begin(request, session, self.callback_url(provider))
            logger.info("Handshake started", provider=provider.name)
            return Redirect(url)

        return step

    # Callback steps

    def complete_handshake(self, provider: HandshakeProvider) -> Step:
        async def step(request: Request, session: BrowserSession) -> StepResult:
            try:
                identity = await provider.complete(request, session, self.callback_url(provider))
            except HandshakeFailure as e:
                logger.warning("Handshake failed", provider=e.provider, reason=e.reason)
                return Redirect(self.settings.oauth_error_url)

            request.state.identity = identity
            request.state.provider = provider.name
            return Continue(session)

        return step

    async def clear_pending_identity(self, request: Request, session: BrowserSession) -> StepResult:
        session.clear_pending()
        return Continue(session)

    async def require_identity(self, request: Request, session: BrowserSession) -> StepResult:
        identity: Identity = getattr(request.state, "identity", None) or Identity()

        try:
            identity.require_complete(getattr(request.state, "provider", "unknown"))
        except IncompleteIdentity as e:
            logger.warning("Incomplete identity", provider=e.provider, missing=e.missing)
            return Redirect(self.settings.error_url)

        return Continue(session)

    async def issue_exchange_token(self, request: Request, session: BrowserSession) -> StepResult:
        identity: Identity = request.state.identity
        token = await self.token_store.issue(TokenKind.ONE_TIME, identity.user_id, identity.client_id)

        url = f"{self.settings.return_url}?token={_encode(token)}"
        if session.redirect_target:
            url += f"&redirect={_encode(session.redirect_target)}"

        # The round trip is over; an empty session is dropped on commit
        session.redirect_target = ""

        logger.info(
            "Exchange completed",
            provider=getattr(request.state, "provider", None),
            user_id=identity.user_id,
            client_id=identity.client_id,
        )
        return Redirect(url)

    # Pipelines

    def start_pipeline(self, provider: HandshakeProvider) -> Pipeline:
        return Pipeline(
            f"{provider.name}.start",
            [
                NamedStep("seed_from_bootstrap_token", self.seed_from_bootstrap_token),
                NamedStep("record_redirect_target", self.record_redirect_target),
                NamedStep("begin_handshake", self.begin_handshake(provider)),
            ],
        )

    def callback_pipeline(self, provider: HandshakeProvider) -> Pipeline:
        return Pipeline(
            f"{provider.name}.callback",
            [
                NamedStep("complete_handshake", self.complete_handshake(provider)),
                NamedStep("clear_pending_identity", self.clear_pending_identity),
                NamedStep("require_identity", self.require_identity),
                NamedStep("issue_exchange_token", self.issue_exchange_token),
            ],
        )

    async def handle(self, request: Request, pipeline: Pipeline) -> RedirectResponse:
        """
        Run a pipeline against the request's browser session.

        Args:
            request: Incoming request
            pipeline: Start or callback pipeline

        Returns:
            302 redirect carrying the rolled session cookie
        """
        handle = await self.session_store.load(request)
        redirect, handle.session = await pipeline.run(request, handle.session)

        response = RedirectResponse(url=redirect.url, status_code=status.HTTP_302_FOUND)
        await self.session_store.commit(handle, response)
        return response

    # Routes

    def build_router(self) -> APIRouter:
        """
        Generate the route table.

        Two GET routes per registered provider. The registry is frozen here.
        """
        self.registry.freeze()
        router = APIRouter(tags=["oauth"])

        @router.get("/oauth")
        async def list_providers() -> dict[str, list[dict[str, str]]]:
            """List registered identity providers and their start paths."""
            return {
                "providers": [
                    {"name": name, "start_url": f"/oauth/{name}"}
                    for name in self.registry.names()
                ]
            }

        for provider in self.registry:
            self._add_provider_routes(router, provider)

        return router

    def _add_provider_routes(self, router: APIRouter, provider: HandshakeProvider) -> None:
        start = self.start_pipeline(provider)
        callback = self.callback_pipeline(provider)

        async def start_endpoint(request: Request) -> RedirectResponse:
            return await self.handle(request, start)

        async def callback_endpoint(request: Request) -> RedirectResponse:
            return await self.handle(request, callback)

        router.add_api_route(
            f"/oauth/{provider.name}",
            start_endpoint,
            methods=["GET"],
            name=f"oauth_{provider.name}_start",
            summary=f"Start sign-in with {provider.name}",
            response_class=RedirectResponse,
            status_code=status.HTTP_302_FOUND,
        )
        router.add_api_route(
            f"/oauth/{provider.name}/callback",
            callback_endpoint,
            methods=["GET"],
            name=f"oauth_{provider.name}_callback",
            summary=f"Sign-in callback for {provider.name}",
            response_class=RedirectResponse,
            status_code=status.HTTP_302_FOUND,
        )
