"""Translation engines.

Every engine honours one contract::

    await engine.translate(text, source_lang, target_lang) -> str

and raises ``RateLimitExceeded`` on HTTP 429 or ``EngineFailure`` on any other
problem (transport error, timeout, non-2xx status, unparsable body, empty
result). Engines never return the input as a silent fallback; deciding what
to show on failure is the caller's job.
"""

import base64
import hashlib
import hmac
import logging
import time
import uuid
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional

import httpx

from chat_relay.core.exceptions import EngineFailure, RateLimitExceeded

logger = logging.getLogger(__name__)

AUTO_DETECT = "auto"

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class TranslationEngine(ABC):
    """Base class for HTTP translation engines."""

    name: ClassVar[str] = "engine"

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        """Initialize the engine.

        Args:
            client: Optional pre-configured client (tests inject a mock transport).
            timeout: Request timeout in seconds for the owned client.
        """
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={"User-Agent": USER_AGENT},
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            )
            self._owns_client = True
        return self._client

    async def translate(self, text: str, source_lang: str, target_lang: str) -> str:
        """Translate ``text`` from ``source_lang`` to ``target_lang``.

        Blank text and same-language requests (other than auto-detect) are
        returned unchanged without a network call.

        Raises:
            RateLimitExceeded: The engine answered HTTP 429.
            EngineFailure: Any other failure.
        """
        if not text or not text.strip():
            return text
        if source_lang == target_lang and source_lang != AUTO_DETECT:
            return text

        client = await self._get_client()
        try:
            response = await self._send(client, text, source_lang, target_lang)
        except httpx.TimeoutException as e:
            raise EngineFailure(self.name, f"request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise EngineFailure(self.name, f"request failed: {e}") from e

        if response.status_code == 429:
            raise RateLimitExceeded(self.name)
        if not response.is_success:
            raise EngineFailure(self.name, f"HTTP {response.status_code}")

        try:
            result = self._parse(response.json())
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise EngineFailure(self.name, f"unparsable response: {e}") from e

        if not result or not result.strip():
            raise EngineFailure(self.name, "empty translation")
        return result

    @abstractmethod
    async def _send(
        self,
        client: httpx.AsyncClient,
        text: str,
        source_lang: str,
        target_lang: str,
    ) -> httpx.Response:
        """Issue the HTTP request for one translation."""

    @abstractmethod
    def _parse(self, payload: Any) -> str:
        """Extract translated text from the decoded JSON body."""

    async def aclose(self) -> None:
        """Close the owned HTTP client."""
        if self._client is not None and self._owns_client and not self._client.is_closed:
            await self._client.aclose()


class GoogleTranslateEngine(TranslationEngine):
    """Google Translate through the keyless ``gtx`` client endpoint."""

    name = "google"
    API_URL = "https://translate.googleapis.com/translate_a/single"

    async def _send(
        self,
        client: httpx.AsyncClient,
        text: str,
        source_lang: str,
        target_lang: str,
    ) -> httpx.Response:
        params = {
            "client": "gtx",
            "sl": source_lang,
            "tl": target_lang,
            "dt": "t",
            "q": text,
        }
        return await client.get(self.API_URL, params=params)

    def _parse(self, payload: Any) -> str:
        # [[["translated", "original", ...], [...]], ...]
        segments = payload[0]
        if not isinstance(segments, list):
            raise TypeError("missing translation segments")
        return "".join(
            segment[0]
            for segment in segments
            if isinstance(segment, list) and segment and isinstance(segment[0], str)
        )


class PapagoEngine(TranslationEngine):
    """Naver Papago web endpoint, signed with an HMAC-MD5 version key."""

    name = "papago"
    API_URL = "https://papago.naver.com/apis/n2mt/translate"
    ORIGIN = "https://papago.naver.com"
    DEFAULT_VERSION_KEY = "v1.0.10"

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        version_key: str = DEFAULT_VERSION_KEY,
    ):
        super().__init__(client=client, timeout=timeout)
        self.version_key = version_key or self.DEFAULT_VERSION_KEY

    @staticmethod
    def generate_signature(device_id: str, timestamp: str, key: str) -> str:
        digest = hmac.new(
            key.encode("utf-8"),
            f"{device_id}\n{timestamp}".encode("utf-8"),
            hashlib.md5,
        ).digest()
        return base64.b64encode(digest).decode("ascii")

    async def _send(
        self,
        client: httpx.AsyncClient,
        text: str,
        source_lang: str,
        target_lang: str,
    ) -> httpx.Response:
        device_id = str(uuid.uuid4())
        timestamp = str(int(time.time() * 1000))
        signature = self.generate_signature(device_id, timestamp, self.version_key)
        auth_header = f"PPG {device_id}:{signature}"

        headers = {
            "Authorization": auth_header,
            "Timestamp": timestamp,
            "device-type": "pc",
            "x-apigw-partnerid": "papago",
            "Origin": self.ORIGIN,
            "Referer": self.ORIGIN + "/",
            "User-Agent": USER_AGENT,
        }
        form = {
            "deviceId": device_id,
            "locale": "en-US",
            "dict": "false",
            "dictDisplay": "0",
            "honorific": "false",
            "instant": "false",
            "paging": "false",
            "source": source_lang,
            "target": target_lang,
            "text": text,
        }
        return await client.post(self.API_URL, data=form, headers=headers)

    def _parse(self, payload: Any) -> str:
        translated = payload["translatedText"]
        if not isinstance(translated, str):
            raise TypeError("translatedText is not a string")
        return translated


ENGINE_CLASSES = {
    GoogleTranslateEngine.name: GoogleTranslateEngine,
    PapagoEngine.name: PapagoEngine,
}


def create_engine(
    name: str,
    settings: Any = None,
    client: Optional[httpx.AsyncClient] = None,
) -> TranslationEngine:
    """Instantiate an engine by name.

    Args:
        name: Engine name ("google" or "papago").
        settings: Optional Settings providing timeout and Papago key.
        client: Optional shared HTTP client.

    Raises:
        ValueError: If the engine name is unknown.
    """
    normalized = (name or "").strip().lower()
    engine_cls = ENGINE_CLASSES.get(normalized)
    if engine_cls is None:
        raise ValueError(f"Unknown translation engine: {name!r}")

    timeout = float(getattr(settings, "ENGINE_TIMEOUT_SECONDS", 10.0))
    if engine_cls is PapagoEngine:
        return PapagoEngine(
            client=client,
            timeout=timeout,
            version_key=getattr(settings, "PAPAGO_VERSION_KEY", ""),
        )
    return engine_cls(client=client, timeout=timeout)
