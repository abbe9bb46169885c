"""Shared background event loop for engine calls.

The host calls into the pipeline from its own (synchronous) threads. Engine
I/O is async, so both directions schedule their coroutines on one long-lived
loop running in a daemon thread. This keeps a single set of HTTP connection
pools and never creates a throwaway loop per message.
"""

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Coroutine, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AsyncRunner:
    """Runs coroutines on a private event loop in a background thread."""

    def __init__(self, name: str = "chat-relay-loop"):
        self._name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._lock = threading.Lock()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        self._ensure_started()
        if self._loop is None:
            raise RuntimeError(f"Background loop '{self._name}' failed to start")
        return self._loop

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _ensure_started(self) -> None:
        with self._lock:
            if not self.running:
                self._ready.clear()
                self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
                self._thread.start()
        self._ready.wait()

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._ready.set()
        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.run_until_complete(loop.shutdown_default_executor())
            loop.close()
            logger.debug(f"Background loop '{self._name}' stopped")

    def submit(self, coro: Coroutine[Any, Any, T]) -> "concurrent.futures.Future[T]":
        """Schedule ``coro`` without waiting for it."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def run_sync(self, coro: Coroutine[Any, Any, T], timeout: Optional[float] = None) -> T:
        """Run ``coro`` and block the calling thread until it finishes.

        Raises:
            TimeoutError: The coroutine did not finish within ``timeout``;
                it is cancelled before raising.
        """
        future = self.submit(coro)
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise TimeoutError(f"Operation did not finish within {timeout}s") from None

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the loop and join the thread. Pending tasks are cancelled."""
        with self._lock:
            loop, thread = self._loop, self._thread
            self._thread = None
        if loop is None or thread is None or not thread.is_alive():
            return
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout)
        if thread.is_alive():
            logger.warning(f"Background loop '{self._name}' did not stop within {timeout}s")
