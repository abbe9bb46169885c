"""
Exception hierarchy for the chat translation pipeline.

Engines raise these; the interceptor and processor catch them at their
entry points and fall back to the original text.
"""

from typing import Optional


class TranslationError(Exception):
    """Base exception for all translation errors."""

    def __init__(
        self,
        detail: str,
        engine_name: str = "unknown",
        error_code: Optional[str] = None,
    ):
        super().__init__(detail)
        self.detail = detail
        self.engine_name = engine_name
        self.error_code = error_code or self.__class__.__name__


class RateLimitExceeded(TranslationError):
    """Raised when an engine answers with HTTP 429 or an equivalent signal.

    Transient and engine-specific: triggers failover to the secondary engine.
    """

    def __init__(self, engine_name: str, detail: Optional[str] = None):
        super().__init__(
            detail or f"{engine_name} rate limit reached",
            engine_name=engine_name,
            error_code="RATE_LIMIT_EXCEEDED",
        )


class EngineFailure(TranslationError):
    """Raised for network, HTTP and parse errors of a translation engine."""

    def __init__(self, engine_name: str, detail: str):
        super().__init__(
            f"{engine_name} translation failed: {detail}",
            engine_name=engine_name,
            error_code="ENGINE_FAILURE",
        )
