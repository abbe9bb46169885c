"""Tests for the persistent translation cache."""

import json
import threading

import pytest
from chat_relay.services.translation.cache import TranslationCache, make_cache_key


@pytest.mark.unit
class TestCacheKey:
    def test_key_format(self):
        assert make_cache_key("hola", "es", "en") == "hola|es|en"

    def test_separator_in_text_cannot_collide(self):
        """Test that a '|' inside the text never aliases another language split."""
        assert make_cache_key("a|b", "es", "en") != make_cache_key("a", "b|es", "en")
        assert make_cache_key("a\\", "es", "en") != make_cache_key("a", "\\es", "en")


@pytest.mark.unit
class TestTranslationCache:
    def test_miss_then_hit(self):
        cache = TranslationCache()

        assert cache.get("hola", "es", "en") is None
        assert cache.add("hola", "es", "en", "hello") is True
        assert cache.get("hola", "es", "en") == "hello"

        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["size"] == 1

    def test_first_write_wins(self):
        """Test that a second add for the same key leaves the first value."""
        cache = TranslationCache()

        cache.add("hola", "es", "en", "hello")
        assert cache.add("hola", "es", "en", "hi") is False

        assert cache.get("hola", "es", "en") == "hello"

    def test_language_pair_is_part_of_key(self):
        cache = TranslationCache()
        cache.add("hola", "es", "en", "hello")

        assert cache.get("hola", "es", "fr") is None
        assert cache.get("hola", "auto", "en") is None

    def test_persists_after_every_add(self, tmp_path):
        path = tmp_path / "translation_cache.json"
        cache = TranslationCache(str(path))

        cache.add("hola", "es", "en", "hello")

        assert json.loads(path.read_text(encoding="utf-8")) == {"hola|es|en": "hello"}
        reloaded = TranslationCache(str(path))
        assert reloaded.get("hola", "es", "en") == "hello"

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "translation_cache.json"
        path.write_text("{not json", encoding="utf-8")

        cache = TranslationCache(str(path))

        assert len(cache) == 0
        cache.add("hola", "es", "en", "hello")
        assert json.loads(path.read_text(encoding="utf-8")) == {"hola|es|en": "hello"}

    def test_max_entries_evicts_oldest(self):
        cache = TranslationCache(max_entries=2)

        cache.add("uno", "es", "en", "one")
        cache.add("dos", "es", "en", "two")
        cache.add("tres", "es", "en", "three")

        assert len(cache) == 2
        assert cache.get("uno", "es", "en") is None
        assert cache.get("tres", "es", "en") == "three"

    def test_clear(self, tmp_path):
        path = tmp_path / "translation_cache.json"
        cache = TranslationCache(str(path))
        cache.add("hola", "es", "en", "hello")

        cache.clear()

        assert len(cache) == 0
        assert json.loads(path.read_text(encoding="utf-8")) == {}

    def test_concurrent_adds_keep_one_value(self):
        """Test that racing writers for one key agree on a single value."""
        cache = TranslationCache()
        results = []

        def writer(value):
            results.append(cache.add("hola", "es", "en", value))

        threads = [threading.Thread(target=writer, args=(f"v{i}",)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 1
        assert cache.get("hola", "es", "en") in {f"v{i}" for i in range(8)}
