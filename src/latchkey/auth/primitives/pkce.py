"""PKCE (Proof Key for Code Exchange) generation.

Implements RFC 7636 parameter generation so an intercepted authorization
code is useless without the verifier that only this process holds.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import string

from latchkey.auth.models.errors import PKCEError
from latchkey.auth.models.security import UNRESERVED_CHARACTERS, PKCEParameters


def compute_code_challenge(code_verifier: str) -> str:
    """Derive the S256 code challenge from a code verifier.

    RFC 7636 Section 4.2: BASE64URL-ENCODE(SHA256(ASCII(code_verifier)))
    without padding. This is what the provider recomputes at the token
    endpoint.
    """
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


class PKCEManager:
    """Generates PKCE parameters and state nonces for authorization attempts.

    This implementation follows RFC 7636 requirements:
    - Uses S256 code challenge method (SHA256 + base64url)
    - Generates cryptographically secure code verifiers
    - Generates an independent state nonce for CSRF protection
    """

    def __init__(self, verifier_length: int = 128, state_length: int = 32):
        if not (43 <= verifier_length <= 128):
            raise ValueError("verifier_length must be between 43 and 128")
        self.verifier_length = verifier_length
        self.state_length = state_length

    def generate_parameters(self) -> PKCEParameters:
        """Generate new PKCE parameters for an authorization attempt.

        Returns:
            PKCEParameters: Immutable parameters for the authorization attempt

        Raises:
            PKCEError: If parameter generation fails
        """
        try:
            code_verifier = self._generate_code_verifier()
            return PKCEParameters(
                code_verifier=code_verifier,
                code_challenge=compute_code_challenge(code_verifier),
                code_challenge_method="S256",
            )

        except Exception as e:
            raise PKCEError(f"Failed to generate PKCE parameters: {e}") from e

    def generate_state(self) -> str:
        """Generate a cryptographically secure state nonce.

        Independent of the PKCE pair; only ever compared for equality with
        the ``state`` the callback carries back.
        """
        alphabet = string.ascii_letters + string.digits + "-_"
        return "".join(secrets.choice(alphabet) for _ in range(self.state_length))

    def _generate_code_verifier(self) -> str:
        """Generate a code verifier from the RFC 7636 unreserved alphabet.

        RFC 7636 Section 4.1: [A-Z] / [a-z] / [0-9] / "-" / "." / "_" / "~",
        43-128 characters long.
        """
        return "".join(
            secrets.choice(UNRESERVED_CHARACTERS) for _ in range(self.verifier_length)
        )
