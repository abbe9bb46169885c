"""Pending outgoing registry reconciling sent translations with their echo.

When the outbound interceptor substitutes a translation, the host later
delivers that same translated text back as an inbound chat event. The inbound
processor consumes the registration to show the (original, translated) pair
instead of translating the echo a second time.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Deque, Dict, Tuple


class PendingOutgoingDedupMap:
    """Process-local translated -> original map with single-use, TTL-bounded entries.

    Each translated text holds a FIFO queue of originals, so two messages that
    translate to the same string are each reunited once, in send order.
    """

    def __init__(self, ttl_seconds: float = 30.0) -> None:
        self.ttl_seconds = max(0.001, float(ttl_seconds or 0.0))
        self._guard = threading.Lock()
        self._pending: Dict[str, Deque[Tuple[str, float]]] = {}

    @staticmethod
    def _now() -> float:
        return time.monotonic()

    def _prune_expired(self, now: float) -> None:
        for key in list(self._pending):
            queue = self._pending[key]
            while queue and queue[0][1] <= now:
                queue.popleft()
            if not queue:
                del self._pending[key]

    def register(self, translated: str, original: str) -> None:
        """Record that ``original`` was sent as ``translated``."""
        if not translated:
            return
        now = self._now()
        with self._guard:
            self._prune_expired(now)
            self._pending.setdefault(translated, deque()).append(
                (original, now + self.ttl_seconds)
            )

    def consume(self, text: str) -> str | None:
        """Atomically look up and remove the oldest original for ``text``."""
        if not text:
            return None
        now = self._now()
        with self._guard:
            self._prune_expired(now)
            queue = self._pending.get(text)
            if not queue:
                return None
            original, _expires_at = queue.popleft()
            if not queue:
                del self._pending[text]
            return original

    def clear(self) -> None:
        with self._guard:
            self._pending.clear()

    def __len__(self) -> int:
        now = self._now()
        with self._guard:
            self._prune_expired(now)
            return sum(len(queue) for queue in self._pending.values())
