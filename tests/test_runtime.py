"""Tests for the shared background event loop."""

import asyncio

import pytest
from chat_relay.channels.runtime import AsyncRunner


async def add(a, b):
    await asyncio.sleep(0)
    return a + b


@pytest.mark.unit
class TestAsyncRunner:
    def test_run_sync_returns_result(self, runner):
        assert runner.run_sync(add(1, 2), timeout=1.0) == 3
        assert runner.running

    def test_run_sync_propagates_exceptions(self, runner):
        async def boom():
            raise ValueError("bad")

        with pytest.raises(ValueError, match="bad"):
            runner.run_sync(boom(), timeout=1.0)

    def test_run_sync_times_out_and_cancels(self, runner):
        cancelled = []

        async def slow():
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        with pytest.raises(TimeoutError):
            runner.run_sync(slow(), timeout=0.05)

        # Cancellation is delivered on the loop thread
        runner.run_sync(asyncio.sleep(0.05), timeout=1.0)
        assert cancelled == [True]

    def test_submit_returns_future(self, runner):
        future = runner.submit(add(2, 3))

        assert future.result(timeout=1.0) == 5

    def test_stop_and_restart(self, runner):
        runner.run_sync(add(0, 0), timeout=1.0)

        runner.stop()
        runner.stop()
        assert not runner.running

        assert runner.run_sync(add(4, 4), timeout=1.0) == 8

    def test_loop_that_never_starts_raises(self, monkeypatch):
        monkeypatch.setattr(AsyncRunner, "_run", lambda self: self._ready.set())

        with pytest.raises(RuntimeError, match="failed to start"):
            AsyncRunner("broken-loop").loop
