"""
Pytest configuration and fixtures for the chat relay.

This module provides:
- Test settings with an isolated data directory
- Fake translation engines with AsyncMock translate methods
- A background runner that is stopped after each test
"""

from typing import Generator
from unittest.mock import AsyncMock

import pytest
from chat_relay.channels.dedup import PendingOutgoingDedupMap
from chat_relay.channels.history_store import HistoryStore
from chat_relay.channels.runtime import AsyncRunner
from chat_relay.core.config import Settings
from chat_relay.services.translation.cache import TranslationCache
from chat_relay.services.translation.engine_registry import EngineRegistry
from chat_relay.services.translation.glossary_manager import GlossaryManager


class FakeEngine:
    """Stand-in for a TranslationEngine; ``translate`` is an AsyncMock."""

    def __init__(self, name: str, result: str = "Hello friends"):
        self.name = name
        self.translate = AsyncMock(return_value=result)
        self.aclose = AsyncMock()


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings isolated from the environment's .env file.

    Args:
        tmp_path: Per-test temporary directory used as DATA_DIR

    Returns:
        Settings: Configured settings instance for testing
    """
    return Settings(
        _env_file=None,
        DATA_DIR=str(tmp_path),
        SOURCE_LANGUAGE="es",
        TARGET_LANGUAGE="en",
        INCOMING_TARGET_LANGUAGE="en",
        SELECTED_ENGINE="papago",
        SECONDARY_ENGINE="google",
        LOCAL_PLAYER_NAME="Jane Doe",
        LOCAL_HOME_WORLD="Siren",
    )


@pytest.fixture
def make_settings(tmp_path):
    """Factory for settings with per-test overrides."""

    def _make(**overrides) -> Settings:
        values = {
            "_env_file": None,
            "DATA_DIR": str(tmp_path),
            "SOURCE_LANGUAGE": "es",
            "TARGET_LANGUAGE": "en",
            "INCOMING_TARGET_LANGUAGE": "en",
            "LOCAL_PLAYER_NAME": "Jane Doe",
            "LOCAL_HOME_WORLD": "Siren",
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def primary_engine() -> FakeEngine:
    return FakeEngine("papago")


@pytest.fixture
def secondary_engine() -> FakeEngine:
    return FakeEngine("google", result="Hello from google")


@pytest.fixture
def registry(primary_engine, secondary_engine) -> EngineRegistry:
    return EngineRegistry(primary_engine, secondary_engine)


@pytest.fixture
def cache() -> TranslationCache:
    return TranslationCache()


@pytest.fixture
def glossary() -> GlossaryManager:
    return GlossaryManager()


@pytest.fixture
def dedup() -> PendingOutgoingDedupMap:
    return PendingOutgoingDedupMap(ttl_seconds=30.0)


@pytest.fixture
def history() -> HistoryStore:
    return HistoryStore(max_messages=50)


@pytest.fixture
def runner() -> Generator[AsyncRunner, None, None]:
    """Background loop shared by the interceptors under test."""
    async_runner = AsyncRunner(name="test-loop")
    yield async_runner
    async_runner.stop()


def pytest_configure(config):
    """Configure pytest with custom markers.

    Args:
        config: Pytest config object
    """
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
