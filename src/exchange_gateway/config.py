"""
Exchange Gateway Configuration

Environment-based configuration for the sign-in exchange gateway.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings

from exchange_gateway.auth.oauth.models import ProviderConfig


class ExchangeGatewaySettings(BaseSettings):
    """Gateway configuration loaded from environment variables."""

    # Application
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    HOST: str = Field(default="0.0.0.0", description="Server host")
    PORT: int = Field(default=8080, description="Server port")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    GATEWAY_NAME: str = Field(default="Exchange Gateway", description="Gateway service name")
    GATEWAY_VERSION: str = Field(default="0.1.0", description="Gateway version")
    PUBLIC_URL: str = Field(
        default="http://localhost:8080",
        description="Externally visible base URL of this gateway (used for provider callbacks)",
    )

    # API application
    API_APP_SERVER: str = Field(
        default="http://localhost:3000",
        description="Base URL of the API application receiving exchange tokens",
    )
    AUTH_RETURN_PATH: str = Field(default="/auth/return", description="Sign-in success landing path")
    AUTH_ERROR_PATH: str = Field(default="/auth/error", description="Sign-in error landing path")

    # Browser session
    SESSION_SECRET: str = Field(
        default="change-me-exchange-gateway-secret",
        description="Shared secret used to sign session cookies",
    )
    SESSION_COOKIE_NAME: str = Field(default="next.dashboard.api", description="Session cookie name")
    SESSION_COOKIE_SECURE: bool = Field(default=False, description="Set the Secure flag on the session cookie")
    SESSION_MAX_AGE_MINUTES: int = Field(default=60, description="Idle session lifetime in minutes")
    SESSION_REDIS_URL: str = Field(
        default="redis://localhost:6379/1",
        description="Redis URL for browser session storage",
    )

    # Exchange tokens
    TOKEN_REDIS_URL: str = Field(
        default="redis://localhost:6379/1",
        description="Redis URL for one-time exchange token storage",
    )
    TOKEN_TTL_SECONDS: int = Field(default=300, description="One-time token lifetime in seconds")

    # Identity providers
    OAUTH_PROVIDERS: list[ProviderConfig] = Field(
        default=[],
        description="Configured identity providers (JSON list)",
    )
    DEFAULT_CLIENT_ID: str | None = Field(
        None,
        description="Client identity assigned to users signing in through configured providers",
    )

    model_config = {
        "env_file": ".env",
        "env_prefix": "EXCHANGE_GATEWAY_",
        "case_sensitive": True,
        "extra": "ignore",
    }

    @property
    def error_url(self) -> str:
        return self.API_APP_SERVER + self.AUTH_ERROR_PATH

    @property
    def oauth_error_url(self) -> str:
        return self.error_url + "?type=oauth"

    @property
    def return_url(self) -> str:
        return self.API_APP_SERVER + self.AUTH_RETURN_PATH


# Global settings instance
settings = ExchangeGatewaySettings()
