"""Waiting on a coroutine while honoring a cancel event and a timeout."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from latchkey.auth.models.errors import OperationCancelledError

T = TypeVar("T")


async def run_cancellable(
    awaitable: Awaitable[T],
    cancel_event: asyncio.Event | None = None,
    timeout: float | None = None,
) -> T:
    """Await ``awaitable`` until it finishes, the event fires, or time runs out.

    The awaited work is cancelled and awaited before this returns on every
    path, so nothing is left running in the background.

    Args:
        awaitable: Work to wait for
        cancel_event: Optional event that aborts the wait when set
        timeout: Optional limit in seconds

    Returns:
        The result of ``awaitable``

    Raises:
        OperationCancelledError: If ``cancel_event`` was set first
        asyncio.TimeoutError: If ``timeout`` elapsed first
    """
    work = asyncio.ensure_future(awaitable)
    waiters: set[asyncio.Future] = {work}
    cancel_waiter: asyncio.Future | None = None
    if cancel_event is not None:
        cancel_waiter = asyncio.ensure_future(cancel_event.wait())
        waiters.add(cancel_waiter)

    try:
        done, _ = await asyncio.wait(
            waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
        if work in done:
            return work.result()
        if cancel_waiter is not None and cancel_waiter in done:
            raise OperationCancelledError("Operation cancelled")
        raise asyncio.TimeoutError(f"Operation timed out after {timeout}s")
    finally:
        for waiter in waiters:
            if not waiter.done():
                waiter.cancel()
        await asyncio.gather(*waiters, return_exceptions=True)
