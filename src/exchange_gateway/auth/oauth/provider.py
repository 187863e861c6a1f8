"""
Identity Provider Handshake

Abstract handshake interface used by the exchange gateway, plus a generic
OAuth 2.0 authorization code adapter with state and PKCE support.
"""

from __future__ import annotations

import secrets
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import urlencode

import httpx
import structlog
from fastapi import Request
from jose import jwt
from jose.exceptions import JOSEError

from exchange_gateway.auth.models import BrowserSession, Identity
from exchange_gateway.auth.oauth.identity import IdentityResolver, StaticClientResolver
from exchange_gateway.auth.oauth.models import (
    OAuthGrantType,
    OAuthTokenResponse,
    OAuthUserInfo,
    ProviderConfig,
)
from exchange_gateway.auth.oauth.pkce import PKCEGenerator
from exchange_gateway.exceptions import HandshakeFailure

logger = structlog.get_logger()


class HandshakeProvider(ABC):
    """
    Identity provider handshake.

    ``begin`` produces the URL the browser is redirected to; ``complete``
    validates the provider's callback and yields the resolved identity.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique provider key used in route paths."""

    @property
    def options(self) -> dict[str, Any]:
        """Read-only handshake parameters."""
        return {}

    @abstractmethod
    async def begin(self, request: Request, session: BrowserSession, callback_url: str) -> str:
        """
        Start the handshake.

        Args:
            request: Incoming start request
            session: Browser session, may be used to keep handshake state
            callback_url: Absolute URL of this provider's callback route

        Returns:
            URL of the identity provider's authorization page
        """

    @abstractmethod
    async def complete(self, request: Request, session: BrowserSession, callback_url: str) -> Identity:
        """
        Complete the handshake.

        Args:
            request: Incoming callback request
            session: Browser session holding handshake state
            callback_url: Absolute URL of this provider's callback route

        Returns:
            Resolved identity; either field may be missing

        Raises:
            HandshakeFailure: If the provider rejected the sign-in or the user cancelled
        """


class OAuth2Provider(HandshakeProvider):
    """
    Generic OAuth 2.0 authorization code handshake.

    CSRF state and the PKCE verifier are kept in the browser session between
    start and callback and are consumed by the callback.
    """

    def __init__(
        self,
        config: ProviderConfig,
        resolver: IdentityResolver | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize OAuth provider.

        Args:
            config: Provider configuration
            resolver: Maps the provider profile to a (user, client) pair
            http_client: Shared HTTP client (a client per call is used if None)
        """
        self.config = config
        self.resolver = resolver or StaticClientResolver()
        self._http_client = http_client

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def options(self) -> dict[str, Any]:
        return {
            "scopes": list(self.config.scopes),
            "use_pkce": self.config.use_pkce,
            "pkce_method": self.config.pkce_method.value,
            "authorization_endpoint": str(self.config.authorization_endpoint),
        }

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient() as client:
                yield client

    async def begin(self, request: Request, session: BrowserSession, callback_url: str) -> str:
        state = secrets.token_urlsafe(32)
        params: dict[str, str] = {
            "client_id": self.config.client_id,
            "response_type": "code",
            "state": state,
            "redirect_uri": callback_url,
        }
        if self.config.scopes:
            params["scope"] = " ".join(self.config.scopes)

        handshake = {"provider": self.name, "state": state}

        if self.config.use_pkce:
            pkce_pair = PKCEGenerator.generate_pkce_pair(method=self.config.pkce_method)
            params["code_challenge"] = pkce_pair.code_challenge
            params["code_challenge_method"] = pkce_pair.code_challenge_method.value
            handshake["code_verifier"] = pkce_pair.code_verifier

        params.update(self.config.additional_params)
        session.handshake = handshake

        return f"{self.config.authorization_endpoint}?{urlencode(params)}"

    async def complete(self, request: Request, session: BrowserSession, callback_url: str) -> Identity:
        handshake = session.handshake
        session.handshake = {}

        error = request.query_params.get("error")
        if error:
            raise HandshakeFailure(self.name, error)

        code = request.query_params.get("code")
        state = request.query_params.get("state")
        if not code or not state:
            raise HandshakeFailure(self.name, "missing_code_or_state")

        expected = handshake.get("state")
        if (
            handshake.get("provider") != self.name
            or not expected
            or not secrets.compare_digest(expected.encode("utf-8"), state.encode("utf-8"))
        ):
            raise HandshakeFailure(self.name, "state_mismatch")

        token_response = await self.exchange_code_for_token(
            code=code,
            redirect_uri=callback_url,
            code_verifier=handshake.get("code_verifier"),
        )
        user_info = await self.get_user_info(token_response)

        return await self.resolver.resolve(user_info, session)

    async def exchange_code_for_token(
        self,
        code: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> OAuthTokenResponse:
        """
        Exchange authorization code for access token.

        Raises:
            HandshakeFailure: If the provider refuses the code
            httpx.HTTPError: On transport or server errors
        """
        data = {
            "grant_type": OAuthGrantType.AUTHORIZATION_CODE.value,
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
        }
        if code_verifier:
            data["code_verifier"] = code_verifier

        logger.info("Exchanging authorization code for token", provider=self.name)

        async with self._http() as client:
            response = await client.post(
                str(self.config.token_endpoint),
                data=data,
                headers={"Accept": "application/json"},
            )

        # invalid_grant and friends are reported as 400/401
        if response.status_code in (400, 401):
            raise HandshakeFailure(self.name, "token_exchange_rejected")
        response.raise_for_status()

        token_data = response.json()
        if not isinstance(token_data, dict):
            raise HandshakeFailure(self.name, "malformed_token_response")
        if "access_token" not in token_data:
            raise HandshakeFailure(self.name, token_data.get("error", "token_exchange_rejected"))

        return OAuthTokenResponse(
            access_token=token_data["access_token"],
            token_type=token_data.get("token_type", "Bearer"),
            expires_in=token_data.get("expires_in"),
            refresh_token=token_data.get("refresh_token"),
            scope=token_data.get("scope"),
            id_token=token_data.get("id_token"),
        )

    async def get_user_info(self, token_response: OAuthTokenResponse) -> OAuthUserInfo:
        """
        Fetch the user profile.

        Falls back to the ID token claims when no user info endpoint is
        configured. The ID token came straight from the token endpoint, so its
        claims are read without signature verification.
        """
        if self.config.userinfo_endpoint:
            async with self._http() as client:
                response = await client.get(
                    str(self.config.userinfo_endpoint),
                    headers={
                        "Authorization": f"Bearer {token_response.access_token}",
                        "Accept": "application/json",
                    },
                )
            response.raise_for_status()
            profile = response.json()
        elif token_response.id_token:
            try:
                profile = jwt.get_unverified_claims(token_response.id_token)
            except JOSEError as e:
                raise HandshakeFailure(self.name, "malformed_id_token") from e
        else:
            raise HandshakeFailure(self.name, "no_profile")

        if not isinstance(profile, dict):
            raise HandshakeFailure(self.name, "malformed_profile")

        subject = profile.get(self.config.user_id_field)
        if subject in (None, ""):
            raise HandshakeFailure(self.name, "no_subject")

        return OAuthUserInfo(
            provider=self.name,
            subject=str(subject),
            email=profile.get("email"),
            name=profile.get("name"),
            raw_data=profile,
        )
