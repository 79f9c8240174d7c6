"""Single-flight access token refresh.

Hands out the current access token while it is usable and refreshes it
otherwise, making sure concurrent callers share one refresh call.
"""

from __future__ import annotations

import asyncio
import logging

from latchkey.auth.models.errors import OperationCancelledError, TokenError
from latchkey.auth.models.tokens import RefreshTokenRequest
from latchkey.auth.primitives.cancellation import run_cancellable
from latchkey.auth.services.store import TokenStore
from latchkey.auth.services.tokens import OAuth2TokenManager
from latchkey.config import OAuthSettings

logger = logging.getLogger(__name__)


class RefreshCoordinator:
    """Keeps a usable access token available to concurrent callers.

    Refreshes are strictly single-flight. The check-refresh-update sequence
    runs as one task owned by this instance, under its lock, and every
    caller present while it runs awaits that same task. A caller's cancel
    event only abandons that caller's wait; the shared refresh carries on
    for everyone else.

    A refresh rejected by the provider (HTTP 400/401) clears the session so
    the next access goes through full re-authentication. Network errors and
    malformed responses leave the stale record in place for a later retry.
    """

    def __init__(
        self,
        settings: OAuthSettings,
        token_manager: OAuth2TokenManager,
        store: TokenStore,
    ):
        self._settings = settings
        self._token_manager = token_manager
        self._store = store
        self._lock = asyncio.Lock()
        self._in_flight: asyncio.Task[str | None] | None = None
        # Incremented each time a refresh call completes
        self._generation = 0

    async def get_access_token(
        self, cancel_event: asyncio.Event | None = None
    ) -> str | None:
        """Return a usable access token, refreshing it if needed.

        Args:
            cancel_event: Setting this event abandons this caller's wait and
                returns None; a refresh already under way still completes

        Returns:
            The access token, or None when the user has to authenticate
            again (or should retry later after a transient failure)
        """
        await self._store.ensure_loaded()

        record = self._store.record
        if self._store.is_usable():
            return record.access_token

        if not record.can_refresh():
            logger.warning("Access token expired and no refresh token is available")
            return None

        refresh_task = self._join_refresh(self._generation)
        try:
            return await run_cancellable(asyncio.shield(refresh_task), cancel_event)
        except OperationCancelledError:
            logger.warning("Access token request cancelled")
            return None

    async def close(self) -> None:
        """Cancel a refresh still in flight and wait for it to unwind."""
        task = self._in_flight
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    def _join_refresh(self, seen_generation: int) -> asyncio.Task[str | None]:
        """Return the refresh in flight, starting one if there is none."""
        if self._in_flight is None:
            self._in_flight = asyncio.create_task(self._refresh_once(seen_generation))
            self._in_flight.add_done_callback(self._refresh_finished)
        return self._in_flight

    def _refresh_finished(self, task: asyncio.Task[str | None]) -> None:
        if self._in_flight is task:
            self._in_flight = None
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Access token refresh failed: {task.exception()}")

    async def _refresh_once(self, seen_generation: int) -> str | None:
        async with self._lock:
            record = self._store.record

            # A refresh may have completed since the caller looked
            if self._store.is_usable():
                return record.access_token
            if self._generation != seen_generation:
                # That refresh failed; share its result rather than retrying
                return None
            if not record.can_refresh():
                return None

            try:
                refreshed = await self._refresh(record.refresh_token)
            finally:
                self._generation += 1

            if not refreshed:
                logger.warning("Could not obtain an access token")
                return None
            return record.access_token

    async def _refresh(self, refresh_token: str) -> bool:
        """Run one refresh grant and apply its result. Caller holds the lock."""
        logger.info("Refreshing access token...")

        refresh_request = RefreshTokenRequest(
            token_endpoint=self._settings.token_endpoint,
            refresh_token=refresh_token,
            client_id=self._settings.client_id,
            client_secret=self._settings.client_secret,
        )

        try:
            token_response = await self._token_manager.refresh_access_token(
                refresh_request
            )
        except TokenError as e:
            logger.warning(f"Token refresh failed, keeping current session: {e}")
            return False

        if token_response.is_success():
            await self._store.save_response(token_response)
            logger.info("Successfully refreshed access token")
            return True

        if token_response.is_rejection():
            logger.error(
                f"Refresh token rejected ({token_response.status_code} "
                f"{token_response.error}); clearing session"
            )
            await self._store.clear()
        else:
            logger.warning(
                f"Token refresh failed with {token_response.status_code}, "
                "keeping current session"
            )
        return False
