"""
Exchange Gateway Errors

Handshake and identity errors are resolved into user-facing redirects by the
gateway. Storage errors propagate to the hosting layer.
"""

from __future__ import annotations


class ExchangeGatewayError(Exception):
    """Base class for gateway errors."""


class StorageError(ExchangeGatewayError):
    """Raised when the session or token store is unreachable or fails."""

    def __init__(self, operation: str, detail: str):
        """
        Initialize storage error.

        Args:
            operation: Store operation that failed
            detail: Underlying failure description
        """
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage operation '{operation}' failed: {detail}")


class HandshakeFailure(ExchangeGatewayError):
    """Raised when the identity provider rejects the sign-in or the user cancels it."""

    def __init__(self, provider: str, reason: str):
        """
        Initialize handshake failure.

        Args:
            provider: Provider name
            reason: Short machine-readable reason
        """
        self.provider = provider
        self.reason = reason
        super().__init__(f"Handshake with provider '{provider}' failed: {reason}")


class IncompleteIdentity(ExchangeGatewayError):
    """Raised when a completed handshake does not resolve to both a user and a client."""

    def __init__(self, provider: str, missing: list[str]):
        self.provider = provider
        self.missing = missing
        super().__init__(
            f"Handshake with provider '{provider}' did not resolve: {', '.join(missing)}"
        )


class UnknownProvider(ExchangeGatewayError, KeyError):
    """Raised when looking up a provider name that is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Identity provider '{name}' is not registered")

    def __str__(self) -> str:
        return self.args[0]
