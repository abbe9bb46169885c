"""Inbound processing: translate chat lines observed in the chat log.

``handle_event`` runs on the host thread and only does routing. Messages that
need translation are published immediately in the in-flight state and
resolved on the shared background loop.
"""

import asyncio
import concurrent.futures
import logging
import threading
import time
from typing import Dict, Optional, Tuple

from chat_relay.channels.dedup import PendingOutgoingDedupMap
from chat_relay.channels.history_store import HistoryStore
from chat_relay.channels.identity import normalize_sender
from chat_relay.channels.models import ChatEvent, DisplayMessage
from chat_relay.channels.runtime import AsyncRunner
from chat_relay.channels.spam_filter import SpamFilter
from chat_relay.core.exceptions import RateLimitExceeded, TranslationError
from chat_relay.metrics.translation_metrics import (
    outgoing_dedup_hits_total,
    spam_messages_dropped_total,
    translation_cache_lookups_total,
    translation_decisions_total,
    translation_engine_errors_total,
    translation_operation_duration_seconds,
)
from chat_relay.services.translation.cache import TranslationCache
from chat_relay.services.translation.engine_registry import EngineRegistry
from chat_relay.services.translation.engines import AUTO_DETECT
from chat_relay.services.translation.glossary_manager import GlossaryManager
from chat_relay.utils.text import is_blank

logger = logging.getLogger(__name__)

DIRECTION = "inbound"


class InboundProcessor:
    """Routes inbound chat events and resolves their translations asynchronously."""

    def __init__(
        self,
        settings,
        registry: EngineRegistry,
        cache: TranslationCache,
        glossary: GlossaryManager,
        dedup: PendingOutgoingDedupMap,
        history: HistoryStore,
        runner: AsyncRunner,
        spam_filter: Optional[SpamFilter] = None,
    ):
        self.settings = settings
        self.registry = registry
        self.cache = cache
        self.glossary = glossary
        self.dedup = dedup
        self.history = history
        self.runner = runner
        self.spam_filter = spam_filter or SpamFilter()

        self.enabled = settings.INCOMING_TRANSLATION_ENABLED
        self._channels = set(settings.INCOMING_CHANNELS)
        self._excluded = {m.casefold() for m in settings.EXCLUDED_MESSAGES}

        # message id -> (future, original text); whoever pops an entry finalises it
        self._pending: Dict[str, Tuple[concurrent.futures.Future, str]] = {}
        self._pending_lock = threading.Lock()

        self.stats = {
            "events_seen": 0,
            "ignored": 0,
            "spam_dropped": 0,
            "dedup_hits": 0,
            "translated": 0,
            "errors": 0,
        }

    @staticmethod
    def _record_decision(decision: str) -> None:
        translation_decisions_total.labels(direction=DIRECTION, decision=decision).inc()

    def _ignore_reason(self, event: ChatEvent) -> Optional[str]:
        if not self.enabled:
            return "disabled"
        if event.channel not in self._channels:
            return "channel"
        if is_blank(event.text):
            return "blank"
        if event.text.lstrip().startswith(self.settings.COMMAND_PREFIX):
            return "command"
        return None

    def _is_local_sender(self, sender: str) -> bool:
        local_name = self.settings.LOCAL_PLAYER_NAME.strip()
        if not local_name:
            return False
        bare = sender.split("@", 1)[0]
        return bare.casefold() == local_name.casefold()

    @property
    def pending_count(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    def handle_event(self, event: ChatEvent) -> Optional[DisplayMessage]:
        """Process one observed chat event.

        Returns:
            The published DisplayMessage (possibly still in flight), or None
            if the event was ignored, filtered or hidden. Never raises.
        """
        self.stats["events_seen"] += 1
        try:
            return self._handle(event)
        except Exception:
            logger.exception("Unexpected error while handling inbound chat event")
            self.stats["errors"] += 1
            return None

    def _handle(self, event: ChatEvent) -> Optional[DisplayMessage]:
        reason = self._ignore_reason(event)
        if reason is not None:
            self.stats["ignored"] += 1
            self._record_decision(f"ignored_{reason}")
            return None

        text = event.text
        if self.settings.SPAM_FILTER_ENABLED:
            verdict = self.spam_filter.evaluate(text)
            if verdict.is_spam:
                self.stats["spam_dropped"] += 1
                spam_messages_dropped_total.labels(reason=verdict.reason or "unknown").inc()
                self._record_decision("spam")
                logger.debug(f"Dropped RMT message ({verdict.reason})")
                return None

        sender = normalize_sender(
            event.sender,
            context_world=event.sender_world,
            local_name=self.settings.LOCAL_PLAYER_NAME,
            local_world=self.settings.LOCAL_HOME_WORLD,
            known_worlds=self.settings.KNOWN_WORLDS,
        )

        original = self.dedup.consume(text)
        if original is not None:
            self.stats["dedup_hits"] += 1
            outgoing_dedup_hits_total.inc()

        if not self.settings.SHOW_OUTGOING_MESSAGES and (
            original is not None or self._is_local_sender(sender)
        ):
            self._record_decision("own_hidden")
            return None

        if original is not None:
            # Our own translated message coming back; show the pair without a network call
            self._record_decision("outgoing_echo")
            message = DisplayMessage(
                channel=event.channel,
                sender=sender,
                recipient=event.recipient,
                original_text=original,
                translated_text=text,
            )
            self.history.add_message(message)
            return message

        if text.strip().casefold() in self._excluded:
            self._record_decision("excluded")
            message = DisplayMessage(
                channel=event.channel,
                sender=sender,
                recipient=event.recipient,
                original_text=text,
                translated_text=text,
            )
            self.history.add_message(message)
            return message

        message = DisplayMessage(
            channel=event.channel,
            sender=sender,
            recipient=event.recipient,
            original_text=text,
            is_translating=True,
        )
        # Publish before scheduling so the update can never precede the add
        self.history.add_message(message)
        with self._pending_lock:
            future = self.runner.submit(self._translate_message(message.id, text))
            self._pending[message.id] = (future, text)

        if self.settings.VERBOSE_LOGGING:
            logger.info(f"Queued inbound translation from {sender} on channel {event.channel}")
        return message

    def _finalize(self, message_id: str, translated_text: str) -> None:
        with self._pending_lock:
            owned = self._pending.pop(message_id, None) is not None
        if owned:
            self.history.update_message(message_id, translated_text)

    async def _translate_message(self, message_id: str, text: str) -> None:
        start_time = time.perf_counter()
        translated = text
        try:
            translated = await self._resolve_translation(text)
        except asyncio.CancelledError:
            self._finalize(message_id, text)
            raise
        except Exception:
            logger.exception("Unexpected error while translating inbound message")
            self.stats["errors"] += 1
            translated = text
        finally:
            translation_operation_duration_seconds.labels(direction=DIRECTION).observe(
                max(0.0, time.perf_counter() - start_time)
            )
        # Persistence and history listeners block; keep them off the shared loop
        await asyncio.to_thread(self._finalize, message_id, translated or text)

    async def _resolve_translation(self, text: str) -> str:
        target_lang = self.settings.EFFECTIVE_INCOMING_TARGET

        cached = self.cache.get(text, AUTO_DETECT, target_lang)
        translation_cache_lookups_total.labels(
            direction=DIRECTION, result="hit" if cached is not None else "miss"
        ).inc()
        if cached is not None:
            self._record_decision("cache_hit")
            return cached

        protected, placeholder_map = self.glossary.protect_terms(text)
        engine = self.registry.active
        try:
            raw = await engine.translate(protected, AUTO_DETECT, target_lang)
        except RateLimitExceeded as e:
            translation_engine_errors_total.labels(engine=e.engine_name, kind="rate_limit").inc()
            fallback = self.registry.fallback_for(engine)
            if fallback is None:
                logger.warning(f"Inbound translation rate limited, no fallback engine: {e}")
                self.stats["errors"] += 1
                self._record_decision("rate_limited")
                return text

            logger.warning(f"{e}; retrying once with {fallback.name}")
            try:
                raw = await fallback.translate(protected, AUTO_DETECT, target_lang)
            except TranslationError as retry_error:
                logger.error(f"Inbound fallback translation failed: {retry_error}")
                self.stats["errors"] += 1
                translation_engine_errors_total.labels(
                    engine=retry_error.engine_name, kind="failure"
                ).inc()
                self._record_decision("engine_failure")
                return text
            await asyncio.to_thread(
                self.registry.fail_over, reason=f"{e.engine_name} rate limited"
            )
        except TranslationError as e:
            logger.error(f"Inbound translation failed: {e}")
            self.stats["errors"] += 1
            translation_engine_errors_total.labels(engine=e.engine_name, kind="failure").inc()
            self._record_decision("engine_failure")
            return text

        result = self.glossary.restore_terms(raw, placeholder_map)
        if not result or result == text:
            self._record_decision("unchanged")
            return text

        await asyncio.to_thread(self.cache.add, text, AUTO_DETECT, target_lang, result)
        self.stats["translated"] += 1
        self._record_decision("translated")
        return result

    def cancel_pending(self) -> int:
        """Cancel in-flight translations, finalising each with its original text.

        Returns:
            Number of messages finalised.
        """
        with self._pending_lock:
            pending = dict(self._pending)
            self._pending.clear()

        for message_id, (future, original) in pending.items():
            future.cancel()
            self.history.update_message(message_id, original)

        if pending:
            logger.info(f"Cancelled {len(pending)} in-flight inbound translations")
        return len(pending)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for in-flight translations.

        Returns:
            True if nothing is left in flight.
        """
        with self._pending_lock:
            futures = [future for future, _ in self._pending.values()]
        if futures:
            concurrent.futures.wait(futures, timeout=timeout)
        return self.pending_count == 0
