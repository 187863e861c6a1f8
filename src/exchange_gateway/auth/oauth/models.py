"""
OAuth Models

Pydantic models for identity provider configuration and handshake results.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, HttpUrl


class OAuthGrantType(str, Enum):
    """OAuth grant types used by the handshake."""

    AUTHORIZATION_CODE = "authorization_code"


class PKCEChallengeMethod(str, Enum):
    """PKCE code challenge methods."""

    S256 = "S256"
    PLAIN = "plain"


class ProviderConfig(BaseModel):
    """Identity provider configuration."""

    name: str = Field(..., pattern=r"^[a-z0-9][a-z0-9_-]*$", description="Unique provider key used in route paths")
    client_id: str = Field(..., description="OAuth client ID")
    client_secret: str = Field(..., description="OAuth client secret")
    authorization_endpoint: HttpUrl = Field(..., description="Authorization endpoint URL")
    token_endpoint: HttpUrl = Field(..., description="Token endpoint URL")
    userinfo_endpoint: HttpUrl | None = Field(None, description="User info endpoint URL")
    scopes: list[str] = Field(default_factory=list, description="Scopes to request")
    use_pkce: bool = Field(default=True, description="Enable PKCE for the authorization code flow")
    pkce_method: PKCEChallengeMethod = Field(
        default=PKCEChallengeMethod.S256,
        description="PKCE challenge method; plain only for providers without S256 support",
    )
    additional_params: dict[str, str] = Field(
        default_factory=dict,
        description="Additional provider-specific authorization parameters",
    )
    user_id_field: str = Field(default="sub", description="User info field holding the subject identifier")

    model_config = {"from_attributes": True, "frozen": True}


class PKCEChallenge(BaseModel):
    """PKCE challenge and verifier pair."""

    code_verifier: str = Field(..., description="PKCE code verifier (random string)")
    code_challenge: str = Field(..., description="PKCE code challenge (hashed verifier)")
    code_challenge_method: PKCEChallengeMethod = Field(
        default=PKCEChallengeMethod.S256,
        description="Challenge method used",
    )


class OAuthTokenResponse(BaseModel):
    """Token endpoint response."""

    access_token: str = Field(..., description="OAuth access token")
    token_type: str = Field(default="Bearer", description="Token type")
    expires_in: int | None = Field(None, description="Token expiration in seconds")
    refresh_token: str | None = Field(None, description="Refresh token")
    scope: str | None = Field(None, description="Granted scopes")
    id_token: str | None = Field(None, description="OpenID Connect ID token")
    issued_at: datetime = Field(default_factory=lambda: datetime.now(UTC), description="Token issue time")


class OAuthUserInfo(BaseModel):
    """User profile returned by the provider."""

    provider: str = Field(..., description="Provider name")
    subject: str = Field(..., description="User ID at the provider")
    email: str | None = Field(None, description="User email address")
    name: str | None = Field(None, description="User display name")
    raw_data: dict[str, Any] = Field(default_factory=dict, description="Raw provider response")
