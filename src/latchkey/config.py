"""Broker configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from latchkey.auth.services.security import is_loopback_redirect_uri

GOOGLE_AUTHORIZATION_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
GOOGLE_STORAGE_READ_WRITE_SCOPE = "https://www.googleapis.com/auth/devstorage.read_write"


class OAuthSettings(BaseSettings):
    """OAuth client configuration.

    Values come from keyword arguments, ``LATCHKEY_*`` environment
    variables, or a ``.env`` file, in that order of precedence.
    """

    model_config = SettingsConfigDict(
        env_prefix="LATCHKEY_", env_file=".env", extra="ignore"
    )

    # Client registered with the provider (desktop app type)
    client_id: str = Field(min_length=1)
    client_secret: str | None = None

    # Must match the redirect URI registered with the provider exactly;
    # the loopback listener binds this host and port.
    redirect_uri: str = "http://127.0.0.1:5000/callback"

    scope: str = GOOGLE_STORAGE_READ_WRITE_SCOPE
    authorization_endpoint: str = GOOGLE_AUTHORIZATION_ENDPOINT
    token_endpoint: str = GOOGLE_TOKEN_ENDPOINT

    # Timeouts in seconds
    callback_timeout_seconds: float = Field(default=300.0, gt=0)
    http_timeout_seconds: float = Field(default=30.0, gt=0)

    # Access tokens this close to expiry are refreshed before use
    expiry_margin_seconds: float = Field(default=60.0, ge=0)

    # Secure storage keys are "<prefix>.access_token" etc.
    storage_key_prefix: str = Field(default="latchkey", min_length=1)
    # When set, tokens persist to this JSON file; otherwise they live in memory
    storage_path: Path | None = None

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("redirect_uri")
    @classmethod
    def validate_redirect_uri(cls, v: str) -> str:
        if not is_loopback_redirect_uri(v):
            raise ValueError(
                f"Redirect URI must be http:// on a loopback host with a port: {v}"
            )
        return v

    @field_validator("authorization_endpoint", "token_endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        if not v.startswith(("https://", "http://")):
            raise ValueError(f"Endpoint must be an absolute http(s) URL: {v}")
        return v
