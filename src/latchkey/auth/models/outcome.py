"""Result of an authorization attempt."""

from __future__ import annotations

from dataclasses import dataclass

from latchkey.auth.models.codes import ErrorCode
from latchkey.auth.primitives.classifier import classify


@dataclass(frozen=True)
class AuthOutcome:
    """Tagged result of ``authenticate``: succeeded, or failed with a reason.

    Callers display ``user_friendly_message`` directly; ``error_message``
    keeps the technical detail for logs.
    """

    success: bool
    error_code: ErrorCode | None = None
    error_message: str | None = None
    user_friendly_message: str | None = None
    provider_error: str | None = None  # raw ``error`` value when not in ErrorCode

    @classmethod
    def succeeded(cls) -> AuthOutcome:
        return cls(success=True)

    @classmethod
    def failed(
        cls,
        error_code: ErrorCode,
        error_message: str,
        user_friendly_message: str | None = None,
        provider_error: str | None = None,
    ) -> AuthOutcome:
        """Build a failed outcome.

        Args:
            error_code: Member of the closed error taxonomy
            error_message: Technical description for diagnostics
            user_friendly_message: Overrides the classifier message when given
            provider_error: Raw provider ``error`` string, used for the
                message when the code fell back to ``unknown``
        """
        if user_friendly_message is None:
            user_friendly_message = classify(provider_error or error_code)
        return cls(
            success=False,
            error_code=error_code,
            error_message=error_message,
            user_friendly_message=user_friendly_message,
            provider_error=provider_error,
        )
