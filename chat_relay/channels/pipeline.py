"""Composition root for the translation pipeline.

Wires the shared pieces (cache, glossary, engine registry, dedup map,
history, background loop) into the outbound interceptor and the inbound
processor, and exposes the two host-facing entry points.
"""

import logging
from typing import Callable, Dict, List, Optional

from chat_relay.channels.dedup import PendingOutgoingDedupMap
from chat_relay.channels.history_store import HistoryStore
from chat_relay.channels.inbound_processor import InboundProcessor
from chat_relay.channels.models import ChatDirection, ChatEvent, DisplayMessage
from chat_relay.channels.outbound_interceptor import OutboundInterceptor
from chat_relay.channels.runtime import AsyncRunner
from chat_relay.channels.spam_filter import SpamFilter
from chat_relay.core.config import Settings, get_settings
from chat_relay.services.translation.cache import TranslationCache
from chat_relay.services.translation.engine_registry import (
    EngineRegistry,
    EngineSelectionStore,
    FailoverEvent,
)
from chat_relay.services.translation.engines import TranslationEngine, create_engine
from chat_relay.services.translation.glossary_manager import GlossaryManager

logger = logging.getLogger(__name__)


class TranslationPipeline:
    """Host-facing facade over both translation directions."""

    def __init__(
        self,
        settings: Settings,
        registry: EngineRegistry,
        cache: TranslationCache,
        glossary: GlossaryManager,
        history: HistoryStore,
        dedup: Optional[PendingOutgoingDedupMap] = None,
        runner: Optional[AsyncRunner] = None,
        spam_filter: Optional[SpamFilter] = None,
        status_callback: Optional[Callable[[str], None]] = None,
    ):
        self.settings = settings
        self.registry = registry
        self.cache = cache
        self.glossary = glossary
        self.history = history
        self.dedup = dedup or PendingOutgoingDedupMap(settings.DEDUP_TTL_SECONDS)
        self.runner = runner or AsyncRunner()
        self.status_callback = status_callback

        self.outbound = OutboundInterceptor(
            settings=settings,
            registry=registry,
            cache=cache,
            glossary=glossary,
            dedup=self.dedup,
            runner=self.runner,
        )
        self.inbound = InboundProcessor(
            settings=settings,
            registry=registry,
            cache=cache,
            glossary=glossary,
            dedup=self.dedup,
            history=history,
            runner=self.runner,
            spam_filter=spam_filter,
        )

        registry.add_listener(self._on_failover)
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        engines: Optional[Dict[str, TranslationEngine]] = None,
        status_callback: Optional[Callable[[str], None]] = None,
    ) -> "TranslationPipeline":
        """Build a pipeline from settings.

        Args:
            settings: Settings to use; defaults to ``get_settings()``.
            engines: Optional name -> engine overrides (tests inject fakes).
            status_callback: Receives user-facing status lines such as failover notices.
        """
        settings = settings or get_settings()
        settings.ensure_data_dirs()
        engines = engines or {}

        def resolve(name: str) -> TranslationEngine:
            return engines.get(name) or create_engine(name, settings)

        primary = resolve(settings.SELECTED_ENGINE)
        secondary = None
        if settings.SECONDARY_ENGINE and settings.SECONDARY_ENGINE != settings.SELECTED_ENGINE:
            secondary = resolve(settings.SECONDARY_ENGINE)

        registry = EngineRegistry(
            primary,
            secondary,
            selection_store=EngineSelectionStore(settings.ENGINE_STATE_PATH),
        )
        cache = TranslationCache(
            settings.TRANSLATION_CACHE_PATH,
            max_entries=settings.TRANSLATION_CACHE_MAX_ENTRIES or None,
        )
        glossary = GlossaryManager(custom_glossary_path=settings.CUSTOM_GLOSSARY_PATH)
        history = HistoryStore(settings.MAX_DISPLAYED_MESSAGES, settings.HISTORY_FILE_PATH)

        logger.info(
            f"Translation pipeline ready: {settings.SOURCE_LANGUAGE}->{settings.TARGET_LANGUAGE}, "
            f"engine={registry.active.name} ({registry.state.value})"
        )
        return cls(
            settings=settings,
            registry=registry,
            cache=cache,
            glossary=glossary,
            history=history,
            status_callback=status_callback,
        )

    def _emit_status(self, message: str) -> None:
        if self.status_callback is None:
            return
        try:
            self.status_callback(message)
        except Exception:
            logger.exception("Status callback raised")

    def _on_failover(self, event: FailoverEvent) -> None:
        self._emit_status(
            f"Translation engine switched from {event.from_engine} to {event.to_engine}"
            + (f" ({event.reason})" if event.reason else "")
        )

    def on_outgoing(self, text: str) -> str:
        """Host send hook. Returns the text to transmit."""
        return self.outbound.intercept(text).text

    def on_chat_message(
        self,
        channel: int,
        sender: str,
        text: str,
        sender_world: Optional[str] = None,
        recipient: Optional[str] = None,
    ) -> Optional[DisplayMessage]:
        """Host chat-log hook. Returns the published message, if any."""
        try:
            event = ChatEvent(
                channel=channel,
                sender=sender or "",
                text=text or "",
                direction=ChatDirection.INBOUND_OBSERVED,
                sender_world=sender_world,
                recipient=recipient,
            )
        except ValueError as e:
            logger.warning(f"Discarding malformed chat event: {e}")
            return None
        return self.inbound.handle_event(event)

    def set_translation_enabled(self, enabled: bool) -> None:
        self.outbound.enabled = enabled
        logger.info(f"Outgoing translation {'enabled' if enabled else 'disabled'}")

    def set_incoming_translation_enabled(self, enabled: bool) -> None:
        """Toggle inbound translation; disabling finalises in-flight messages."""
        self.inbound.enabled = enabled
        if not enabled:
            self.inbound.cancel_pending()
        logger.info(f"Incoming translation {'enabled' if enabled else 'disabled'}")

    def select_engine(self, name: str, secondary: Optional[str] = None) -> None:
        """Apply an explicit engine choice from the user.

        Resets any earlier failover. Engines that are no longer referenced
        have their HTTP clients closed in the background.

        Raises:
            ValueError: If an engine name is unknown.
        """
        previous = {id(e): e for e in (self.registry.primary, self.registry.secondary) if e}
        primary_engine = create_engine(name, self.settings)
        secondary_engine = (
            create_engine(secondary, self.settings)
            if secondary and secondary.strip().lower() != primary_engine.name
            else None
        )
        self.registry.reconfigure(primary_engine, secondary_engine)
        for engine in previous.values():
            self.runner.submit(engine.aclose())
        self._emit_status(f"Translation engine set to {primary_engine.name}")

    def get_history(self) -> List[DisplayMessage]:
        return self.history.get_history()

    def clear_history(self) -> None:
        self.history.clear()

    def get_stats(self) -> dict:
        return {
            "engine": self.registry.active.name,
            "engine_state": self.registry.state.value,
            "outbound": dict(self.outbound.stats),
            "inbound": dict(self.inbound.stats),
            "cache": self.cache.get_stats(),
            "history_size": len(self.history),
            "pending_outgoing": len(self.dedup),
        }

    def shutdown(self, drain_timeout: float = 2.0) -> None:
        """Finish or cancel in-flight work, flush state and stop the loop."""
        if self._closed:
            return
        self._closed = True

        if not self.inbound.drain(drain_timeout):
            self.inbound.cancel_pending()
        self.cache.save()

        if self.runner.running:
            try:
                self.runner.run_sync(self.registry.aclose(), timeout=drain_timeout)
            except TimeoutError:
                logger.warning("Timed out closing translation engine clients")
            except Exception:
                logger.exception("Failed to close translation engine clients")
            self.runner.stop()
        logger.info("Translation pipeline shut down")
