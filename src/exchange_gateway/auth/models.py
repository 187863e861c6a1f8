"""
Authentication Models

Pydantic models for exchange tokens, browser sessions, and resolved identities.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

from exchange_gateway.exceptions import IncompleteIdentity


class TokenKind(str, Enum):
    """Exchange token kinds."""

    ONE_TIME = "oneTime"


class Identity(BaseModel):
    """Authenticated (user, client) pair produced by a completed handshake."""

    user_id: str | None = Field(None, description="Authenticated user identifier")
    client_id: str | None = Field(None, description="Client (tenant) identifier")

    @property
    def is_complete(self) -> bool:
        return bool(self.user_id) and bool(self.client_id)

    def require_complete(self, provider: str) -> None:
        """
        Raises:
            IncompleteIdentity: If the user or the client is missing
        """
        missing = [
            field
            for field, value in (("user", self.user_id), ("client", self.client_id))
            if not value
        ]
        if missing:
            raise IncompleteIdentity(provider, missing)


class ExchangeTokenRecord(BaseModel):
    """Payload stored behind a one-time exchange token."""

    kind: TokenKind = Field(..., description="Token kind")
    user_id: str = Field(..., description="Authenticated user identifier")
    client_id: str = Field(..., description="Client identifier")
    issued_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Token issue time",
    )


class BrowserSession(BaseModel):
    """
    Transient per-browser sign-in state.

    Keyed by the signed session cookie. Only the gateway reads or writes it.
    """

    pending_user_id: str | None = Field(None, description="Identity hint seeded from a bootstrap token")
    pending_client_id: str | None = Field(None, description="Client hint seeded from a bootstrap token")
    redirect_target: str = Field(default="", description="Destination inside the API application")
    handshake: dict[str, str] = Field(
        default_factory=dict,
        description="Provider handshake state kept between start and callback",
    )

    def is_empty(self) -> bool:
        """Whether the session holds nothing worth persisting."""
        return self == BrowserSession()

    def clear_pending(self) -> None:
        self.pending_user_id = None
        self.pending_client_id = None
