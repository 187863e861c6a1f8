"""Shared test doubles and helpers for the exchange gateway tests."""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

from fastapi import Request

from exchange_gateway.auth.models import BrowserSession, Identity
from exchange_gateway.auth.oauth.provider import HandshakeProvider
from exchange_gateway.exceptions import HandshakeFailure

COOKIE_NAME = "next.dashboard.api"
SECRET = "test-session-secret"
API_APP_SERVER = "http://app.test"


class ScriptedProvider(HandshakeProvider):
    """
    Handshake provider driven by callback query parameters.

    ``outcome`` selects the result: ``ok`` (default), ``fail``, ``noclient``,
    ``nouser`` or ``explode``.
    """

    AUTHORIZE_URL = "https://idp.test/authorize"

    def __init__(self, name: str = "scripted") -> None:
        self._name = name
        self.completed_with: list[BrowserSession] = []

    @property
    def name(self) -> str:
        return self._name

    async def begin(self, request: Request, session: BrowserSession, callback_url: str) -> str:
        session.handshake = {"provider": self.name}
        return f"{self.AUTHORIZE_URL}?redirect_uri={callback_url}"

    async def complete(self, request: Request, session: BrowserSession, callback_url: str) -> Identity:
        self.completed_with.append(session.model_copy(deep=True))
        session.handshake = {}

        outcome = request.query_params.get("outcome", "ok")
        if outcome == "fail":
            raise HandshakeFailure(self.name, "access_denied")
        if outcome == "explode":
            raise RuntimeError("provider unavailable")

        user_id = session.pending_user_id or request.query_params.get("user", "100")
        client_id = session.pending_client_id or request.query_params.get("client", "7")
        if outcome == "noclient":
            client_id = None
        if outcome == "nouser":
            user_id = None
        return Identity(user_id=user_id, client_id=client_id)


def query_of(url: str) -> dict[str, list[str]]:
    return parse_qs(urlsplit(url).query)


def make_request(query: str = "", cookies: dict[str, str] | None = None) -> Request:
    """Build a bare GET request for store and provider tests."""
    headers = []
    if cookies:
        cookie_header = "; ".join(f"{k}={v}" for k, v in cookies.items())
        headers.append((b"cookie", cookie_header.encode("latin-1")))

    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/",
            "query_string": query.encode("utf-8"),
            "headers": headers,
        }
    )


