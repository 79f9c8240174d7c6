"""Closed set of error codes an authorization attempt can end with."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Why an authorization attempt failed.

    The first six members mirror the ``error`` values OAuth providers send
    back on the redirect (RFC 6749 Section 4.1.2.1 plus Google's
    ``org_internal``). The rest are raised locally by the broker.
    """

    ACCESS_DENIED = "access_denied"
    ORG_INTERNAL = "org_internal"
    INVALID_CLIENT = "invalid_client"
    INVALID_GRANT = "invalid_grant"
    INVALID_SCOPE = "invalid_scope"
    UNAUTHORIZED_CLIENT = "unauthorized_client"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"
    STATE_MISMATCH = "state_mismatch"
    NO_CODE = "no_code"
    TOKEN_EXCHANGE_FAILED = "token_exchange_failed"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str | None) -> ErrorCode:
        """Map a raw provider error string onto the closed set."""
        if raw is None:
            return cls.UNKNOWN
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.UNKNOWN
