"""User-facing messages for authorization failures."""

from __future__ import annotations

from latchkey.auth.models.codes import ErrorCode

_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.ACCESS_DENIED: (
        "Access was denied. Please authorize the application to continue."
    ),
    ErrorCode.ORG_INTERNAL: (
        "The OAuth client is restricted to users inside its organization. "
        "An administrator must change the consent screen user type to "
        "'External' in the provider's developer console."
    ),
    ErrorCode.INVALID_CLIENT: (
        "The OAuth client configuration is invalid. "
        "Check the client ID and client secret."
    ),
    ErrorCode.INVALID_GRANT: (
        "The authorization code has expired or was already used. Please try again."
    ),
    ErrorCode.INVALID_SCOPE: (
        "The requested permissions are not valid for this application."
    ),
    ErrorCode.UNAUTHORIZED_CLIENT: (
        "This client is not authorized to use this sign-in flow."
    ),
    ErrorCode.CANCELLED: "Authentication was cancelled.",
    ErrorCode.TIMEOUT: "Authentication timed out. Please try again.",
    ErrorCode.STATE_MISMATCH: (
        "Security check failed: the sign-in response did not match the request. "
        "Please try again."
    ),
    ErrorCode.NO_CODE: "No authorization code was received from the provider.",
    ErrorCode.TOKEN_EXCHANGE_FAILED: (
        "Sign-in completed but the access tokens could not be obtained. "
        "Please try again."
    ),
}


def classify(error_code: ErrorCode | str) -> str:
    """Return the message to show the user for an error code.

    Accepts either an ErrorCode or the raw ``error`` string a provider sent.
    Codes outside the known set get a generic message that still names the
    raw code so support requests stay diagnosable.

    Args:
        error_code: ErrorCode member or raw provider error string

    Returns:
        Human-readable message, never empty
    """
    raw = error_code.value if isinstance(error_code, ErrorCode) else error_code
    message = _MESSAGES.get(ErrorCode.parse(raw))
    if message is not None:
        return message
    return f"Authentication error: {raw}. Please try again."
