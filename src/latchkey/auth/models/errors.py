"""Exception hierarchy for the OAuth 2.0 credential broker.

These exceptions travel between the internal layers (token endpoint client,
loopback listener, orchestrator). The public operations translate them into
an AuthOutcome or a missing token instead of raising them to callers.
"""

from __future__ import annotations


class OAuth2Error(Exception):
    """Base exception for all OAuth 2.0 related errors."""

    pass


class PKCEError(OAuth2Error):
    """Raised when PKCE parameter generation fails."""

    pass


class TokenError(OAuth2Error):
    """Raised when the token endpoint cannot be reached or answered garbage."""

    pass


class TokenResponseError(TokenError):
    """Raised when a successful token response is malformed.

    Covers unparsable bodies and bodies missing ``access_token`` or
    ``expires_in``. Treated as a transient failure, never as invalidation.
    """

    pass


class AuthorizationError(OAuth2Error):
    """Raised when the authorization step cannot proceed."""

    pass


class AuthorizationInProgressError(AuthorizationError):
    """Raised when a second authorization starts while one is pending."""

    pass


class OperationCancelledError(OAuth2Error):
    """Raised when a caller-supplied cancel event fires during a wait."""

    pass


class CallbackListenerError(OAuth2Error):
    """Raised when the loopback listener cannot bind or start serving."""

    pass
