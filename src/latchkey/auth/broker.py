"""Credential broker facade.

Wires the authorization flow, token endpoint client, token store and
refresh coordinator together from one OAuthSettings object and exposes the
operations a desktop application needs.
"""

from __future__ import annotations

import asyncio
import logging

from latchkey.auth.models.outcome import AuthOutcome
from latchkey.auth.services.browser import BrowserLauncher
from latchkey.auth.services.flow import OAuth2FlowManager
from latchkey.auth.services.refresh import RefreshCoordinator
from latchkey.auth.services.storage import (
    FileSecureStorage,
    MemorySecureStorage,
    SecureStorage,
)
from latchkey.auth.services.store import TokenStore
from latchkey.auth.services.tokens import OAuth2TokenManager
from latchkey.config import OAuthSettings

logger = logging.getLogger(__name__)


class OAuth2Broker:
    """Obtains and maintains delegated access for one user.

    Example::

        async with OAuth2Broker(OAuthSettings(client_id="...")) as broker:
            if not await broker.restore_session():
                outcome = await broker.authenticate()
                if not outcome.success:
                    show_error(outcome.user_friendly_message)
            token = await broker.get_access_token()
    """

    def __init__(
        self,
        settings: OAuthSettings,
        storage: SecureStorage | None = None,
        browser_launcher: BrowserLauncher | None = None,
    ):
        """Initialize the broker.

        Args:
            settings: OAuth client configuration
            storage: Where tokens persist; defaults to a file at
                ``settings.storage_path`` or, without one, memory
            browser_launcher: Opens the authorization URL; defaults to the
                system browser
        """
        self.settings = settings

        if storage is None:
            if settings.storage_path is not None:
                storage = FileSecureStorage(settings.storage_path)
            else:
                storage = MemorySecureStorage()

        self.store = TokenStore(
            storage,
            key_prefix=settings.storage_key_prefix,
            expiry_margin_seconds=settings.expiry_margin_seconds,
        )
        self.token_manager = OAuth2TokenManager(timeout=settings.http_timeout_seconds)
        self.flow_manager = OAuth2FlowManager(
            settings, self.token_manager, self.store, browser_launcher
        )
        self.refresh_coordinator = RefreshCoordinator(
            settings, self.token_manager, self.store
        )

    @property
    def is_authenticated(self) -> bool:
        """Check whether an unexpired access token is held right now."""
        return self.store.record.is_usable(margin_seconds=0)

    async def authenticate(
        self, cancel_event: asyncio.Event | None = None
    ) -> AuthOutcome:
        """Run the interactive browser sign-in."""
        return await self.flow_manager.authenticate(cancel_event)

    async def get_access_token(
        self, cancel_event: asyncio.Event | None = None
    ) -> str | None:
        """Return a usable access token, refreshing transparently."""
        return await self.refresh_coordinator.get_access_token(cancel_event)

    async def restore_session(self, cancel_event: asyncio.Event | None = None) -> bool:
        """Resume a session persisted by a previous run.

        Returns:
            True if a usable access token is available, refreshing the
            stored one if needed
        """
        await self.store.ensure_loaded()

        if self.store.record.is_empty():
            logger.info("No stored tokens to restore")
            return False

        restored = await self.get_access_token(cancel_event) is not None
        if restored:
            logger.info("Session restored from stored tokens")
        else:
            logger.info("Could not restore session from stored tokens")
        return restored

    async def sign_out(self) -> None:
        """Forget every token, in memory and in storage."""
        await self.store.clear()
        logger.info("Signed out")

    async def close(self) -> None:
        """Stop any refresh in flight and close all service connections."""
        await self.refresh_coordinator.close()
        await self.token_manager.close()

    async def __aenter__(self) -> OAuth2Broker:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
