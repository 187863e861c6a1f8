"""
Identity Provider Registry

Static set of configured identity providers. Built once at startup, frozen
when the gateway generates its route table, and read-only afterwards.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

import httpx
import structlog

from exchange_gateway.auth.oauth.identity import IdentityResolver
from exchange_gateway.auth.oauth.models import ProviderConfig
from exchange_gateway.auth.oauth.provider import HandshakeProvider, OAuth2Provider
from exchange_gateway.exceptions import UnknownProvider

logger = structlog.get_logger()


class ProviderRegistry:
    """
    Identity provider registry.

    Keeps providers in registration order, keyed by their unique name.
    """

    def __init__(self, providers: Iterable[HandshakeProvider] = ()) -> None:
        self._providers: dict[str, HandshakeProvider] = {}
        self._frozen = False

        for provider in providers:
            self.register(provider)

    @classmethod
    def from_configs(
        cls,
        configs: Iterable[ProviderConfig],
        resolver: IdentityResolver | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> ProviderRegistry:
        """
        Build a registry of OAuth 2.0 providers from configuration.

        Args:
            configs: Provider configurations
            resolver: Identity resolver shared by all providers
            http_client: Shared HTTP client

        Returns:
            Populated registry
        """
        return cls(
            OAuth2Provider(config, resolver=resolver, http_client=http_client)
            for config in configs
        )

    def register(self, provider: HandshakeProvider) -> None:
        """
        Register a provider.

        Raises:
            RuntimeError: If the registry is frozen
            ValueError: If a provider with the same name exists
        """
        if self._frozen:
            raise RuntimeError("Provider registry is frozen")
        if provider.name in self._providers:
            raise ValueError(f"Identity provider '{provider.name}' is already registered")

        self._providers[provider.name] = provider
        logger.info("Identity provider registered", provider=provider.name)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> HandshakeProvider:
        """
        Get provider by name.

        Raises:
            UnknownProvider: If no provider is registered under ``name``
        """
        try:
            return self._providers[name]
        except KeyError:
            raise UnknownProvider(name) from None

    def names(self) -> list[str]:
        return list(self._providers)

    def __iter__(self) -> Iterator[HandshakeProvider]:
        return iter(list(self._providers.values()))

    def __len__(self) -> int:
        return len(self._providers)

    def __contains__(self, name: object) -> bool:
        return name in self._providers
