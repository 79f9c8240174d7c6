"""Tests for broker settings."""

import pytest
from pydantic import ValidationError

from latchkey.config import GOOGLE_TOKEN_ENDPOINT, OAuthSettings


class TestOAuthSettings:
    def test_defaults(self):
        settings = OAuthSettings(client_id="abc")

        assert settings.redirect_uri == "http://127.0.0.1:5000/callback"
        assert settings.token_endpoint == GOOGLE_TOKEN_ENDPOINT
        assert settings.client_secret is None
        assert settings.callback_timeout_seconds == 300
        assert settings.expiry_margin_seconds == 60
        assert settings.storage_path is None

    def test_reads_environment(self, monkeypatch):
        # Arrange
        monkeypatch.setenv("LATCHKEY_CLIENT_ID", "from-env")
        monkeypatch.setenv("LATCHKEY_REDIRECT_URI", "http://localhost:8765/cb")

        # Act
        settings = OAuthSettings()

        # Assert
        assert settings.client_id == "from-env"
        assert settings.redirect_uri == "http://localhost:8765/cb"

    def test_client_id_is_required(self, monkeypatch):
        monkeypatch.delenv("LATCHKEY_CLIENT_ID", raising=False)

        with pytest.raises(ValidationError):
            OAuthSettings(client_id="")

    @pytest.mark.parametrize(
        "redirect_uri",
        [
            "http://127.0.0.1:5000/callback",
            "http://localhost:5000/callback",
            "http://[::1]:5000/callback",
        ],
    )
    def test_accepts_loopback_redirects(self, redirect_uri):
        settings = OAuthSettings(client_id="abc", redirect_uri=redirect_uri)

        assert settings.redirect_uri == redirect_uri

    @pytest.mark.parametrize(
        "redirect_uri",
        [
            "https://127.0.0.1:5000/callback",
            "http://example.com:5000/callback",
            "http://127.0.0.1/callback",
            "not a uri",
        ],
    )
    def test_rejects_non_loopback_redirects(self, redirect_uri):
        with pytest.raises(ValidationError):
            OAuthSettings(client_id="abc", redirect_uri=redirect_uri)

    def test_rejects_relative_endpoint(self):
        with pytest.raises(ValidationError):
            OAuthSettings(client_id="abc", token_endpoint="/token")

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValidationError):
            OAuthSettings(client_id="abc", callback_timeout_seconds=0)
