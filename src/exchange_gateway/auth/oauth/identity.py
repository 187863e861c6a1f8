"""
Identity Resolution

Maps a provider user profile onto the API application's (user, client) pair.
"""

from __future__ import annotations

from typing import Protocol

from exchange_gateway.auth.models import BrowserSession, Identity
from exchange_gateway.auth.oauth.models import OAuthUserInfo


class IdentityResolver(Protocol):
    """Resolves the authenticated (user, client) pair for a completed handshake."""

    async def resolve(self, user_info: OAuthUserInfo, session: BrowserSession) -> Identity:
        ...


class StaticClientResolver:
    """
    Default resolver.

    The user is keyed by provider and subject. A pending identity seeded from a
    bootstrap token takes precedence, which lets an already signed-in caller
    re-confirm or link a provider without switching accounts.
    """

    def __init__(self, client_id: str | None = None) -> None:
        self.client_id = client_id

    async def resolve(self, user_info: OAuthUserInfo, session: BrowserSession) -> Identity:
        if session.pending_user_id and session.pending_client_id:
            return Identity(user_id=session.pending_user_id, client_id=session.pending_client_id)

        return Identity(
            user_id=f"{user_info.provider}:{user_info.subject}",
            client_id=self.client_id,
        )
