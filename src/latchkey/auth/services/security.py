"""Security checks for the authorization code flow.

State comparison for CSRF protection and redirect URI validation for
loopback redirects.
"""

from __future__ import annotations

import ipaddress
import secrets
from urllib.parse import urlparse

LOOPBACK_HOSTNAMES = ("localhost",)


def validate_state(expected: str, actual: str | None) -> bool:
    """Check the callback state matches the nonce issued for this attempt.

    Args:
        expected: State parameter from the authorization request
        actual: State parameter from the callback URL, if any

    Returns:
        True only for an exact match
    """
    if actual is None:
        return False
    return secrets.compare_digest(expected.encode("utf-8"), actual.encode("utf-8"))


def is_loopback_redirect_uri(uri: str) -> bool:
    """Check a redirect URI is a plain-HTTP loopback URI with an explicit port.

    Args:
        uri: Redirect URI to validate

    Returns:
        True if a local listener can bind exactly this URI
    """
    try:
        parsed = urlparse(uri)
        if parsed.scheme != "http" or parsed.hostname is None or not parsed.port:
            return False
    except ValueError:
        return False

    if parsed.hostname in LOOPBACK_HOSTNAMES:
        return True
    try:
        return ipaddress.ip_address(parsed.hostname).is_loopback
    except ValueError:
        return False
