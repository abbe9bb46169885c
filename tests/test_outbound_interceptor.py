"""Tests for the outbound interceptor decision sequence."""

import asyncio

import pytest
from chat_relay.channels.outbound_interceptor import OutboundInterceptor
from chat_relay.core.exceptions import EngineFailure, RateLimitExceeded
from chat_relay.services.translation.engine_registry import EngineState


@pytest.fixture
def build_interceptor(make_settings, registry, cache, glossary, dedup, runner):
    def _build(**overrides) -> OutboundInterceptor:
        return OutboundInterceptor(
            settings=make_settings(**overrides),
            registry=registry,
            cache=cache,
            glossary=glossary,
            dedup=dedup,
            runner=runner,
        )

    return _build


@pytest.mark.unit
class TestOutboundPassthrough:
    @pytest.mark.parametrize("text", ["gg", "GG", "  o7  "])
    def test_excluded_messages_are_not_translated(self, build_interceptor, primary_engine, text):
        interceptor = build_interceptor()

        result = interceptor.intercept(text)

        assert result.text == text
        assert result.translated is False
        assert result.reason == "excluded"
        primary_engine.translate.assert_not_called()

    def test_commands_pass_through(self, build_interceptor, primary_engine):
        result = build_interceptor().intercept("/say hola")

        assert result.text == "/say hola"
        assert result.reason == "command"
        primary_engine.translate.assert_not_called()

    def test_blank_passes_through(self, build_interceptor):
        assert build_interceptor().intercept("   ").reason == "blank"

    def test_disabled_passes_through(self, build_interceptor, primary_engine):
        interceptor = build_interceptor(TRANSLATION_ENABLED=False)

        result = interceptor.intercept("Hola amigos")

        assert result.text == "Hola amigos"
        assert result.reason == "disabled"
        primary_engine.translate.assert_not_called()

    def test_same_language_skips_engine_and_cache(self, build_interceptor, primary_engine, cache):
        interceptor = build_interceptor(SOURCE_LANGUAGE="en", TARGET_LANGUAGE="en")

        result = interceptor.intercept("Hello friends")

        assert result.text == "Hello friends"
        assert result.reason == "same_language"
        assert len(cache) == 0
        primary_engine.translate.assert_not_called()


@pytest.mark.unit
class TestOutboundTranslation:
    def test_translation_is_substituted_cached_and_registered(
        self, build_interceptor, primary_engine, cache, dedup
    ):
        interceptor = build_interceptor()

        result = interceptor.intercept("Hola amigos")

        assert result.text == "Hello friends"
        assert result.original_text == "Hola amigos"
        assert result.translated is True
        assert result.cached is False
        primary_engine.translate.assert_awaited_once_with("Hola amigos", "es", "en")
        assert cache.get("Hola amigos", "es", "en") == "Hello friends"
        assert dedup.consume("Hello friends") == "Hola amigos"

    def test_cache_hit_skips_engine(self, build_interceptor, primary_engine, cache):
        cache.add("Hola amigos", "es", "en", "Hi friends")
        interceptor = build_interceptor()

        result = interceptor.intercept("Hola amigos")

        assert result.text == "Hi friends"
        assert result.cached is True
        primary_engine.translate.assert_not_called()

    def test_second_send_uses_cache(self, build_interceptor, primary_engine):
        interceptor = build_interceptor()

        interceptor.intercept("Hola amigos")
        interceptor.intercept("Hola amigos")

        primary_engine.translate.assert_awaited_once()

    def test_glossary_terms_are_protected(self, build_interceptor, primary_engine):
        async def translate(text, source_lang, target_lang):
            return text.replace("Busco", "Looking for").replace("para", "for")

        primary_engine.translate.side_effect = translate
        interceptor = build_interceptor()

        result = interceptor.intercept("Busco PF para M4S")

        assert result.text == "Looking for PF for M4S"
        sent_text = primary_engine.translate.await_args.args[0]
        assert "[[PF]]" in sent_text
        assert "[[M4S]]" in sent_text

    def test_long_translation_is_truncated(self, build_interceptor, primary_engine, dedup):
        primary_engine.translate.return_value = "a" * 600
        interceptor = build_interceptor()

        result = interceptor.intercept("Hola " * 20)

        assert len(result.text.encode("utf-8")) <= 450
        assert result.text.endswith("...")
        # The echo carries the truncated text
        assert dedup.consume(result.text) == "Hola " * 20

    def test_unchanged_translation_is_not_cached(self, build_interceptor, primary_engine, cache):
        primary_engine.translate.return_value = "Hola amigos"
        interceptor = build_interceptor()

        result = interceptor.intercept("Hola amigos")

        assert result.translated is False
        assert result.reason == "unchanged"
        assert len(cache) == 0


@pytest.mark.unit
class TestOutboundFailures:
    def test_rate_limit_fails_over_and_sends_original(
        self, build_interceptor, primary_engine, secondary_engine, registry, cache
    ):
        primary_engine.translate.side_effect = RateLimitExceeded("papago")
        interceptor = build_interceptor()

        result = interceptor.intercept("Hola amigos")

        assert result.text == "Hola amigos"
        assert result.reason == "rate_limited"
        assert registry.state is EngineState.FAILED_OVER
        assert registry.active is secondary_engine
        # No retry on the send path
        secondary_engine.translate.assert_not_called()
        assert len(cache) == 0

    def test_next_send_uses_secondary(self, build_interceptor, primary_engine, secondary_engine):
        primary_engine.translate.side_effect = RateLimitExceeded("papago")
        interceptor = build_interceptor()

        interceptor.intercept("Hola amigos")
        result = interceptor.intercept("Hola amigos")

        assert result.text == "Hello from google"
        primary_engine.translate.assert_awaited_once()

    def test_engine_failure_sends_original(self, build_interceptor, primary_engine, registry, cache):
        primary_engine.translate.side_effect = EngineFailure("papago", "HTTP 500")
        interceptor = build_interceptor()

        result = interceptor.intercept("Hola amigos")

        assert result.text == "Hola amigos"
        assert result.reason == "engine_failure"
        assert registry.state is EngineState.PRIMARY_ACTIVE
        assert len(cache) == 0
        assert interceptor.stats["errors"] == 1

    def test_slow_engine_times_out(self, build_interceptor, primary_engine):
        async def slow(text, source_lang, target_lang):
            await asyncio.sleep(2)
            return "too late"

        primary_engine.translate.side_effect = slow
        interceptor = build_interceptor(OUTBOUND_TIMEOUT_SECONDS=0.05)

        result = interceptor.intercept("Hola amigos")

        assert result.text == "Hola amigos"
        assert result.reason == "timeout"

    def test_unexpected_error_never_raises(self, build_interceptor, primary_engine):
        primary_engine.translate.side_effect = RuntimeError("boom")
        interceptor = build_interceptor()

        result = interceptor.intercept("Hola amigos")

        assert result.text == "Hola amigos"
        assert result.reason == "error"
