"""Outbound interception: translate what the local user is about to send.

Runs synchronously on the host's send path. The engine call is scheduled on
the shared background loop and the host thread waits for it, bounded by
``OUTBOUND_TIMEOUT_SECONDS``. Every failure path sends the original text.
"""

import logging
import time
from typing import Optional

from chat_relay.channels.dedup import PendingOutgoingDedupMap
from chat_relay.channels.models import OutboundResult
from chat_relay.channels.runtime import AsyncRunner
from chat_relay.core.exceptions import RateLimitExceeded, TranslationError
from chat_relay.metrics.translation_metrics import (
    translation_cache_lookups_total,
    translation_decisions_total,
    translation_engine_errors_total,
    translation_operation_duration_seconds,
)
from chat_relay.services.translation.cache import TranslationCache
from chat_relay.services.translation.engine_registry import EngineRegistry
from chat_relay.services.translation.glossary_manager import GlossaryManager
from chat_relay.utils.text import is_blank, sanitize_outgoing

logger = logging.getLogger(__name__)

DIRECTION = "outbound"


class OutboundInterceptor:
    """Decides whether an outgoing message is translated and produces the text to send."""

    def __init__(
        self,
        settings,
        registry: EngineRegistry,
        cache: TranslationCache,
        glossary: GlossaryManager,
        dedup: PendingOutgoingDedupMap,
        runner: AsyncRunner,
    ):
        self.settings = settings
        self.registry = registry
        self.cache = cache
        self.glossary = glossary
        self.dedup = dedup
        self.runner = runner

        self.enabled = settings.TRANSLATION_ENABLED
        self._excluded = {m.casefold() for m in settings.EXCLUDED_MESSAGES}

        self.stats = {
            "messages_seen": 0,
            "translated": 0,
            "cache_hits": 0,
            "passthrough": 0,
            "errors": 0,
        }

    def _skip_reason(self, text: str) -> Optional[str]:
        if not self.enabled:
            return "disabled"
        if is_blank(text):
            return "blank"
        if text.lstrip().startswith(self.settings.COMMAND_PREFIX):
            return "command"
        if text.strip().casefold() in self._excluded:
            return "excluded"
        if self.settings.SOURCE_LANGUAGE == self.settings.TARGET_LANGUAGE:
            return "same_language"
        return None

    def _passthrough(self, text: str, reason: str) -> OutboundResult:
        self.stats["passthrough"] += 1
        translation_decisions_total.labels(direction=DIRECTION, decision=reason).inc()
        return OutboundResult(text=text, original_text=text, reason=reason)

    def _translate(self, text: str, source_lang: str, target_lang: str) -> str:
        # One snapshot of the engine for the whole call
        engine = self.registry.active
        protected, placeholder_map = self.glossary.protect_terms(text)
        translated = self.runner.run_sync(
            engine.translate(protected, source_lang, target_lang),
            timeout=self.settings.OUTBOUND_TIMEOUT_SECONDS,
        )
        return self.glossary.restore_terms(translated, placeholder_map)

    def intercept(self, text: str) -> OutboundResult:
        """Process one outgoing message.

        Never raises; any failure yields the original text.
        """
        start_time = time.perf_counter()
        self.stats["messages_seen"] += 1
        try:
            return self._intercept(text)
        except Exception:
            logger.exception("Unexpected error while intercepting outgoing message")
            self.stats["errors"] += 1
            return self._passthrough(text, "error")
        finally:
            translation_operation_duration_seconds.labels(direction=DIRECTION).observe(
                max(0.0, time.perf_counter() - start_time)
            )

    def _intercept(self, text: str) -> OutboundResult:
        skip = self._skip_reason(text)
        if skip is not None:
            return self._passthrough(text, skip)

        source_lang = self.settings.SOURCE_LANGUAGE
        target_lang = self.settings.TARGET_LANGUAGE

        translated = self.cache.get(text, source_lang, target_lang)
        cached = translated is not None
        translation_cache_lookups_total.labels(
            direction=DIRECTION, result="hit" if cached else "miss"
        ).inc()

        if cached:
            self.stats["cache_hits"] += 1
        else:
            try:
                translated = self._translate(text, source_lang, target_lang)
            except RateLimitExceeded as e:
                logger.warning(f"Outgoing translation rate limited: {e}")
                self.stats["errors"] += 1
                translation_engine_errors_total.labels(
                    engine=e.engine_name, kind="rate_limit"
                ).inc()
                self.registry.fail_over(reason=f"{e.engine_name} rate limited")
                return self._passthrough(text, "rate_limited")
            except TranslationError as e:
                logger.error(f"Outgoing translation failed: {e}")
                self.stats["errors"] += 1
                translation_engine_errors_total.labels(
                    engine=e.engine_name, kind="failure"
                ).inc()
                return self._passthrough(text, "engine_failure")
            except TimeoutError as e:
                logger.error(f"Outgoing translation timed out: {e}")
                self.stats["errors"] += 1
                translation_engine_errors_total.labels(
                    engine=self.registry.active.name, kind="timeout"
                ).inc()
                return self._passthrough(text, "timeout")

            if translated and translated != text:
                self.cache.add(text, source_lang, target_lang, translated)

        if not translated or translated == text:
            return self._passthrough(text, "unchanged")

        outgoing = sanitize_outgoing(translated, max_bytes=self.settings.MAX_OUTGOING_BYTES)
        # The host echoes exactly what was sent
        self.dedup.register(outgoing, text)

        self.stats["translated"] += 1
        decision = "cache_hit" if cached else "translated"
        translation_decisions_total.labels(direction=DIRECTION, decision=decision).inc()
        if self.settings.VERBOSE_LOGGING:
            logger.info(f"Outgoing [{source_lang}->{target_lang}] {text!r} -> {outgoing!r}")

        return OutboundResult(
            text=outgoing,
            original_text=text,
            translated=True,
            cached=cached,
            reason=decision,
        )
