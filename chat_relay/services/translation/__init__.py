"""Translation package for the chat relay.

This package provides:
- GlossaryManager: Protects game terminology during translation
- TranslationCache: Persistent (text, source, target) -> translation cache
- TranslationEngine: Google / Papago HTTP engines
- EngineRegistry: Primary/secondary engines with fail-forward failover
"""

from chat_relay.services.translation.cache import TranslationCache, make_cache_key
from chat_relay.services.translation.engine_registry import (
    EngineHandle,
    EngineRegistry,
    EngineSelectionStore,
    EngineState,
    FailoverEvent,
)
from chat_relay.services.translation.engines import (
    AUTO_DETECT,
    GoogleTranslateEngine,
    PapagoEngine,
    TranslationEngine,
    create_engine,
)
from chat_relay.services.translation.glossary_manager import GlossaryManager

__all__ = [
    "AUTO_DETECT",
    "EngineHandle",
    "EngineRegistry",
    "EngineSelectionStore",
    "EngineState",
    "FailoverEvent",
    "GlossaryManager",
    "GoogleTranslateEngine",
    "PapagoEngine",
    "TranslationCache",
    "TranslationEngine",
    "create_engine",
    "make_cache_key",
]
