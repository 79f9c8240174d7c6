"""Tests for waiting with a cancel event and a timeout."""

import asyncio

import pytest

from latchkey.auth.models.errors import OperationCancelledError
from latchkey.auth.primitives.cancellation import run_cancellable


class TestRunCancellable:
    async def test_returns_result_of_finished_work(self):
        async def work():
            return 42

        assert await run_cancellable(work(), asyncio.Event(), timeout=1.0) == 42

    async def test_work_exception_propagates(self):
        async def work():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await run_cancellable(work())

    async def test_cancel_event_aborts_and_cancels_work(self):
        # Arrange
        started = asyncio.Event()
        cancelled = asyncio.Event()

        async def work():
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        cancel_event = asyncio.Event()
        asyncio.get_running_loop().call_later(0.02, cancel_event.set)

        # Act & Assert
        with pytest.raises(OperationCancelledError):
            await run_cancellable(work(), cancel_event)
        assert started.is_set()
        assert cancelled.is_set()

    async def test_timeout_raises_and_cancels_work(self):
        # Arrange
        cancelled = asyncio.Event()

        async def work():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        # Act & Assert
        with pytest.raises(asyncio.TimeoutError):
            await run_cancellable(work(), timeout=0.02)
        assert cancelled.is_set()
