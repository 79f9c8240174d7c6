"""Security-related models for the authorization code flow.

Contains the PKCE parameters generated for each authorization attempt.
"""

from __future__ import annotations

import string
from dataclasses import dataclass, field

# RFC 3986 unreserved characters, the only ones a code verifier may use
UNRESERVED_CHARACTERS = string.ascii_letters + string.digits + "-._~"


@dataclass(frozen=True)
class PKCEParameters:
    """PKCE (Proof Key for Code Exchange) parameters.

    Immutable parameters generated for each authorization attempt and
    discarded after the code exchange (RFC 7636). Only the challenge leaves
    the process before the exchange; the verifier is sent once, to the token
    endpoint.

    The state nonce is deliberately not part of this object. It is drawn
    independently for every attempt so nothing about the verifier can be
    inferred from the redirect URL.
    """

    code_verifier: str = field()
    code_challenge: str = field()
    code_challenge_method: str = field(default="S256")

    def __post_init__(self) -> None:
        """Validate PKCE parameters meet RFC 7636 requirements."""
        if not (43 <= len(self.code_verifier) <= 128):
            raise ValueError("code_verifier must be 43-128 characters")
        if not set(self.code_verifier) <= set(UNRESERVED_CHARACTERS):
            raise ValueError("code_verifier may only use unreserved characters")
        if len(self.code_challenge) != 43:
            raise ValueError("code_challenge must be a 43 character S256 digest")
        if self.code_challenge_method != "S256":
            raise ValueError("Only S256 code challenge method is supported")
