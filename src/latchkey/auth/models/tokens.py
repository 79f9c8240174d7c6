"""Token state and token endpoint models.

Contains the mutable token record held by the broker and the request and
response shapes of the token endpoint (RFC 6749 Sections 4.1.3, 5 and 6).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel

DEFAULT_EXPIRY_MARGIN_SECONDS = 60.0


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TokenRecord:
    """Mutable token state with lifecycle management.

    Mutated in place on refresh so every holder of the record sees the new
    token. ``access_expires_at`` is always derived from ``expires_in`` at the
    moment a token response arrives.
    """

    access_token: str | None = None
    refresh_token: str | None = None
    access_expires_at: datetime | None = None  # timezone-aware UTC

    def is_usable(
        self,
        margin_seconds: float = DEFAULT_EXPIRY_MARGIN_SECONDS,
        now: datetime | None = None,
    ) -> bool:
        """Check the access token is present and outlives the safety margin.

        Args:
            margin_seconds: Treat the token as expired this many seconds early
            now: Reference time, defaults to the current UTC time
        """
        if not self.access_token or self.access_expires_at is None:
            return False

        now = now or utcnow()
        return self.access_expires_at > now + timedelta(seconds=margin_seconds)

    def can_refresh(self) -> bool:
        """Check if token can be refreshed."""
        return bool(self.refresh_token)

    def is_empty(self) -> bool:
        return not self.access_token and not self.refresh_token

    def clear(self) -> None:
        """Clear all token data."""
        self.access_token = None
        self.refresh_token = None
        self.access_expires_at = None

    def apply_response(
        self, token_response: TokenResponse, now: datetime | None = None
    ) -> None:
        """Update the record from a successful token response.

        Providers usually omit ``refresh_token`` on refresh responses, in
        which case the existing one is kept.
        """
        if not token_response.is_success() or token_response.expires_in is None:
            raise ValueError("Cannot apply an unsuccessful token response")

        now = now or utcnow()
        self.access_token = token_response.access_token
        if token_response.refresh_token:
            self.refresh_token = token_response.refresh_token
        self.access_expires_at = now + timedelta(seconds=token_response.expires_in)


@dataclass(frozen=True)
class TokenRequest:
    """Authorization code exchange request (RFC 6749 Section 4.1.3).

    Includes the PKCE code_verifier (RFC 7636 Section 4.5).
    """

    token_endpoint: str
    code: str
    redirect_uri: str
    client_id: str
    code_verifier: str
    client_secret: str | None = None
    grant_type: str = "authorization_code"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request."""
        data = {
            "grant_type": self.grant_type,
            "code": self.code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "code_verifier": self.code_verifier,
        }

        if self.client_secret:
            data["client_secret"] = self.client_secret

        return data


@dataclass(frozen=True)
class RefreshTokenRequest:
    """Refresh token request parameters (RFC 6749 Section 6)."""

    token_endpoint: str
    refresh_token: str
    client_id: str
    client_secret: str | None = None
    grant_type: str = "refresh_token"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request."""
        data = {
            "grant_type": self.grant_type,
            "refresh_token": self.refresh_token,
            "client_id": self.client_id,
        }

        if self.client_secret:
            data["client_secret"] = self.client_secret

        return data


class TokenResponse(BaseModel):
    """Token endpoint response (RFC 6749 Section 5).

    Represents both successful responses (Section 5.1) and error responses
    (Section 5.2). ``status_code`` is the HTTP status the body arrived with.
    """

    status_code: int = 200

    # Success response fields (RFC 6749 Section 5.1)
    access_token: str | None = None
    token_type: str = "Bearer"
    expires_in: int | None = None
    refresh_token: str | None = None
    scope: str | None = None

    # Error response fields (RFC 6749 Section 5.2)
    error: str | None = None
    error_description: str | None = None
    error_uri: str | None = None

    def is_success(self) -> bool:
        """Check if token response indicates success."""
        return (
            200 <= self.status_code < 300
            and self.error is None
            and bool(self.access_token)
        )

    def is_rejection(self) -> bool:
        """Check if the provider refused the grant itself.

        400 and 401 mean the refresh token (or code) is invalid, expired or
        revoked. Any other failure status is treated as transient.
        """
        return self.status_code in (400, 401)
