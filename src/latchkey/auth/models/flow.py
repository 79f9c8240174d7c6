"""Authorization flow models.

Contains the authorization request, the parsed redirect callback, and the
verdict the orchestrator reaches for that callback.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import parse_qs, quote, urlencode, urlparse

from latchkey.auth.models.outcome import AuthOutcome


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization request parameters for the authorization code flow."""

    authorization_endpoint: str
    client_id: str
    redirect_uri: str
    code_challenge: str
    code_challenge_method: str
    state: str
    scope: str
    access_type: str = "offline"  # ask for a refresh token
    prompt: str = "consent"  # re-issue the refresh token on re-authentication

    def build_authorization_url(self) -> str:
        """Build the complete, percent-encoded authorization URL."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": self.scope,
            "code_challenge": self.code_challenge,
            "code_challenge_method": self.code_challenge_method,
            "state": self.state,
            "access_type": self.access_type,
            "prompt": self.prompt,
        }

        separator = "&" if "?" in self.authorization_endpoint else "?"
        query = urlencode(params, quote_via=quote)
        return f"{self.authorization_endpoint}{separator}{query}"


@dataclass(frozen=True)
class AuthorizationResponse:
    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None
    error_uri: str | None = None

    @classmethod
    def from_callback_url(cls, callback_url: str) -> AuthorizationResponse:
        """Parse the redirect URL the provider sent the browser to.

        Repeated parameters keep their first value.
        """
        query_params = parse_qs(urlparse(callback_url).query)

        def get_single_param(key: str) -> str | None:
            values = query_params.get(key, [])
            return values[0] if values else None

        return cls(
            code=get_single_param("code"),
            state=get_single_param("state"),
            error=get_single_param("error"),
            error_description=get_single_param("error_description"),
            error_uri=get_single_param("error_uri"),
        )

    def is_error(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class CallbackResult:
    """What the orchestrator decided about the one callback it received.

    Either ``code`` is set (proceed to the token exchange) or ``outcome``
    holds the terminal failure. ``success`` and ``message`` drive the HTML
    page the browser is shown.
    """

    success: bool
    message: str
    code: str | None = None
    outcome: AuthOutcome | None = None

    @classmethod
    def accepted(cls, code: str) -> CallbackResult:
        return cls(
            success=True,
            message="Authentication successful! You can close this window.",
            code=code,
        )

    @classmethod
    def rejected(cls, outcome: AuthOutcome) -> CallbackResult:
        return cls(
            success=False,
            message=outcome.user_friendly_message or "Authentication failed.",
            outcome=outcome,
        )
