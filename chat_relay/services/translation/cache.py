"""Persistent cache for translation results.

One network call per (text, source language, target language): entries are
written once (first writer wins), persisted as a flat JSON object after every
new entry and loaded eagerly on construction.
"""

import logging
import threading
from collections import OrderedDict
from pathlib import Path
from typing import Optional

import portalocker

from chat_relay.utils.storage import atomic_write_json, load_json

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "|"


def _escape(part: str) -> str:
    return part.replace("\\", "\\\\").replace(KEY_SEPARATOR, "\\" + KEY_SEPARATOR)


def make_cache_key(text: str, source_lang: str, target_lang: str) -> str:
    """Build the persisted key ``text|source|target``.

    Backslashes and separators inside each part are escaped, so a message
    containing ``|`` can never collide with a different (text, language) split.
    """
    return KEY_SEPARATOR.join(_escape(p) for p in (text, source_lang, target_lang))


class TranslationCache:
    """Thread-safe translation cache with flush-on-write persistence.

    Reads are served from memory under a short lock. Writes snapshot the map
    under that lock and persist outside it, so disk I/O never blocks readers
    for longer than the snapshot copy.
    """

    def __init__(
        self,
        cache_file_path: Optional[str] = None,
        max_entries: Optional[int] = None,
    ):
        """Initialize the cache.

        Args:
            cache_file_path: JSON file backing the cache; None keeps it in memory.
            max_entries: Optional bound; oldest entries are evicted first.
                None (or 0) keeps every entry.
        """
        self.cache_file_path = Path(cache_file_path) if cache_file_path else None
        self.max_entries = max_entries or None

        self._cache: "OrderedDict[str, str]" = OrderedDict()
        self._lock = threading.Lock()
        self._save_lock = threading.Lock()
        self._dirty = False

        self.hits = 0
        self.misses = 0

        self._load()

    def _load(self) -> None:
        if self.cache_file_path is None:
            return

        data = load_json(self.cache_file_path, {})
        for key, value in data.items():
            if isinstance(key, str) and isinstance(value, str):
                self._cache[key] = value
        self._evict()

        if self._cache:
            logger.info(
                f"Loaded {len(self._cache)} cached translations from {self.cache_file_path}"
            )

    def _evict(self) -> None:
        if self.max_entries is None:
            return
        while len(self._cache) > self.max_entries:
            self._cache.popitem(last=False)

    def get(self, text: str, source_lang: str, target_lang: str) -> Optional[str]:
        """Look up a previous translation.

        Returns:
            Cached translation if found, None otherwise.
        """
        key = make_cache_key(text, source_lang, target_lang)
        with self._lock:
            value = self._cache.get(key)
            if value is None:
                self.misses += 1
            else:
                self.hits += 1
            return value

    def add(
        self, text: str, source_lang: str, target_lang: str, translation: str
    ) -> bool:
        """Record a translation if the key is new and persist the cache.

        Returns:
            True if the entry was written, False if the key already existed.
        """
        key = make_cache_key(text, source_lang, target_lang)
        with self._lock:
            if key in self._cache:
                return False
            self._cache[key] = translation
            self._evict()
            self._dirty = True

        self.save()
        return True

    def save(self) -> bool:
        """Write a full snapshot if there are unsaved entries.

        Returns:
            True if the store is clean afterwards, False if the write failed.
        """
        if self.cache_file_path is None:
            with self._lock:
                self._dirty = False
            return True

        with self._save_lock:
            with self._lock:
                if not self._dirty:
                    return True
                snapshot = dict(self._cache)
                self._dirty = False

            try:
                atomic_write_json(self.cache_file_path, snapshot)
                return True
            except (OSError, portalocker.exceptions.LockException) as e:
                logger.error(f"Failed to save translation cache: {e}")
                with self._lock:
                    self._dirty = True
                return False

    def clear(self) -> None:
        """Remove every entry and persist the empty cache."""
        with self._lock:
            self._cache.clear()
            self.hits = 0
            self.misses = 0
            self._dirty = True
        self.save()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def get_stats(self) -> dict:
        """Get cache statistics.

        Returns:
            Dict with hits, misses, size, and hit_ratio.
        """
        with self._lock:
            total = self.hits + self.misses
            return {
                "hits": self.hits,
                "misses": self.misses,
                "size": len(self._cache),
                "max_entries": self.max_entries,
                "hit_ratio": self.hits / total if total > 0 else 0,
            }
