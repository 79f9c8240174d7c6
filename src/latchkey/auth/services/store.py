"""Token store: the single owned TokenRecord and its persisted copy."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from latchkey.auth.models.tokens import (
    DEFAULT_EXPIRY_MARGIN_SECONDS,
    TokenRecord,
    TokenResponse,
)
from latchkey.auth.services.storage import SecureStorage

logger = logging.getLogger(__name__)


class TokenStore:
    """Owns the broker's TokenRecord and mirrors it into secure storage.

    The record object is created once and mutated in place for the life of
    the store. Storage failures are logged and never raised: a session that
    cannot be persisted still works for the current process.
    """

    def __init__(
        self,
        storage: SecureStorage,
        key_prefix: str = "latchkey",
        expiry_margin_seconds: float = DEFAULT_EXPIRY_MARGIN_SECONDS,
    ):
        self.storage = storage
        self.expiry_margin_seconds = expiry_margin_seconds
        self.access_token_key = f"{key_prefix}.access_token"
        self.refresh_token_key = f"{key_prefix}.refresh_token"
        self.expires_at_key = f"{key_prefix}.access_expires_at_utc"

        self._record = TokenRecord()
        self._loaded = False
        self._load_lock = asyncio.Lock()

    @property
    def record(self) -> TokenRecord:
        return self._record

    def is_usable(self) -> bool:
        return self._record.is_usable(self.expiry_margin_seconds)

    async def ensure_loaded(self) -> None:
        """Restore the record from storage once, on first use."""
        if self._loaded:
            return
        async with self._load_lock:
            if not self._loaded:
                await self._load()

    async def _load(self) -> None:
        try:
            access_token = await self.storage.get(self.access_token_key)
            refresh_token = await self.storage.get(self.refresh_token_key)
            expires_text = await self.storage.get(self.expires_at_key)
        except Exception as e:
            logger.error(f"Failed to load tokens from secure storage: {e}")
            self._loaded = True
            return

        self._record.access_token = access_token or None
        self._record.refresh_token = refresh_token or None
        self._record.access_expires_at = _parse_expiry(expires_text)
        self._loaded = True

        logger.debug(
            f"Loaded token record: access_token={'yes' if access_token else 'no'}, "
            f"refresh_token={'yes' if refresh_token else 'no'}, "
            f"expires_at={self._record.access_expires_at}"
        )

    async def save_response(self, token_response: TokenResponse) -> None:
        """Apply a successful token response to the record and persist it."""
        self._record.apply_response(token_response)
        # A fresh response supersedes whatever storage still holds
        self._loaded = True
        await self.persist()

    async def persist(self) -> None:
        """Write the record to storage; empty fields remove their key."""
        record = self._record
        expires_text = (
            record.access_expires_at.isoformat()
            if record.access_expires_at is not None
            else None
        )
        try:
            for key, value in (
                (self.access_token_key, record.access_token),
                (self.refresh_token_key, record.refresh_token),
                (self.expires_at_key, expires_text),
            ):
                if value:
                    await self.storage.set(key, value)
                else:
                    await self.storage.remove(key)
        except Exception as e:
            logger.error(f"Failed to persist tokens to secure storage: {e}")

    async def clear(self) -> None:
        """Reset every field and remove the persisted copies."""
        self._record.clear()
        self._loaded = True

        for key in (self.access_token_key, self.refresh_token_key, self.expires_at_key):
            try:
                await self.storage.remove(key)
            except Exception as e:
                logger.warning(f"Failed to remove {key} from secure storage: {e}")

        logger.info("Stored tokens cleared")


def _parse_expiry(text: str | None) -> datetime | None:
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.warning(f"Ignoring unparsable stored expiry: {text!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
