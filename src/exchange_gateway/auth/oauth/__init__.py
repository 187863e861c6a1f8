"""
Identity Provider Integration

Handshake interface, generic OAuth 2.0 authorization code adapter with PKCE,
identity resolution, and the provider registry.
"""

from exchange_gateway.auth.oauth.identity import IdentityResolver, StaticClientResolver
from exchange_gateway.auth.oauth.models import OAuthUserInfo, ProviderConfig
from exchange_gateway.auth.oauth.pkce import PKCEGenerator
from exchange_gateway.auth.oauth.provider import HandshakeProvider, OAuth2Provider
from exchange_gateway.auth.oauth.registry import ProviderRegistry

__all__ = [
    "HandshakeProvider",
    "IdentityResolver",
    "OAuth2Provider",
    "OAuthUserInfo",
    "PKCEGenerator",
    "ProviderConfig",
    "ProviderRegistry",
    "StaticClientResolver",
]
