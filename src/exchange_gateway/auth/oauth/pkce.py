"""
PKCE (Proof Key for Code Exchange)

RFC 7636 verifier/challenge generation for the authorization code handshake.
"""

from __future__ import annotations

import hashlib
import secrets
from base64 import urlsafe_b64encode

from exchange_gateway.auth.oauth.models import PKCEChallenge, PKCEChallengeMethod


class PKCEGenerator:
    """
    PKCE code verifier and challenge generator.

    Implements RFC 7636 specification for OAuth 2.0 PKCE.
    """

    # RFC 7636: code_verifier must be 43-128 characters
    MIN_VERIFIER_LENGTH = 43
    MAX_VERIFIER_LENGTH = 128
    DEFAULT_VERIFIER_LENGTH = 64

    @staticmethod
    def generate_code_verifier(length: int | None = None) -> str:
        """
        Generate cryptographically secure code verifier.

        Args:
            length: Verifier length (43-128 chars)

        Returns:
            URL-safe base64 encoded random string

        Raises:
            ValueError: If length is outside valid range
        """
        if length is None:
            length = PKCEGenerator.DEFAULT_VERIFIER_LENGTH

        if not (PKCEGenerator.MIN_VERIFIER_LENGTH <= length <= PKCEGenerator.MAX_VERIFIER_LENGTH):
            raise ValueError(
                f"Code verifier length must be between {PKCEGenerator.MIN_VERIFIER_LENGTH} "
                f"and {PKCEGenerator.MAX_VERIFIER_LENGTH} characters"
            )

        # base64 expands 3 bytes to 4 characters
        num_bytes = (length * 3) // 4 + 1
        verifier = urlsafe_b64encode(secrets.token_bytes(num_bytes)).decode("utf-8").rstrip("=")
        return verifier[:length]

    @staticmethod
    def generate_code_challenge(
        code_verifier: str,
        method: PKCEChallengeMethod = PKCEChallengeMethod.S256,
    ) -> str:
        """
        Derive the code challenge sent with the authorization request.

        Args:
            code_verifier: Code verifier string
            method: Challenge method (S256 or PLAIN)

        Returns:
            Code challenge string
        """
        if method == PKCEChallengeMethod.PLAIN:
            return code_verifier

        digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
        return urlsafe_b64encode(digest).decode("utf-8").rstrip("=")

    @staticmethod
    def generate_pkce_pair(
        method: PKCEChallengeMethod = PKCEChallengeMethod.S256,
    ) -> PKCEChallenge:
        """Generate a verifier together with its challenge."""
        verifier = PKCEGenerator.generate_code_verifier()
        return PKCEChallenge(
            code_verifier=verifier,
            code_challenge=PKCEGenerator.generate_code_challenge(verifier, method),
            code_challenge_method=method,
        )
