import logging
import os
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED_MESSAGES = [
    "lol",
    "o/",
    "o7",
    "uwu",
    "gg",
    "ty",
    "thx",
    "xd",
    "omg",
    "wtf",
    "afk",
    "brb",
    "gn",
    "gm",
    "\\o/",
    "\\(^o^)/",
    "^_^",
    "^^",
    ":)",
    ":(",
    ":D",
    ";)",
    "<3",
]

SUPPORTED_ENGINES = ("google", "papago")


class Settings(BaseSettings):
    # Outbound translation (messages the local user sends)
    TRANSLATION_ENABLED: bool = True
    SOURCE_LANGUAGE: str = "es"  # Language the user writes in
    TARGET_LANGUAGE: str = "en"  # Language sent to the channel
    COMMAND_PREFIX: str = "/"

    # Messages that are never translated (case-insensitive)
    EXCLUDED_MESSAGES: str | list[str] = DEFAULT_EXCLUDED_MESSAGES

    # Inbound translation (messages observed in the chat log)
    INCOMING_TRANSLATION_ENABLED: bool = True
    INCOMING_TARGET_LANGUAGE: str = ""  # Empty falls back to SOURCE_LANGUAGE
    INCOMING_CHANNELS: str | list[int] = [10, 11, 30, 14, 15, 24]
    SHOW_OUTGOING_MESSAGES: bool = True
    SPAM_FILTER_ENABLED: bool = True

    # Local identity, used to canonicalise sender names
    LOCAL_PLAYER_NAME: str = ""
    LOCAL_HOME_WORLD: str = ""
    KNOWN_WORLDS: str | list[str] = []  # Extra world names beyond the built-ins

    # Engines
    SELECTED_ENGINE: str = "papago"
    SECONDARY_ENGINE: str = "google"  # Empty disables failover
    PAPAGO_VERSION_KEY: str = "v1.0.10"
    ENGINE_TIMEOUT_SECONDS: float = 10.0
    OUTBOUND_TIMEOUT_SECONDS: float = 5.0  # Bound on the blocking outbound wait

    # Transport limits
    MAX_OUTGOING_BYTES: int = 450
    DEDUP_TTL_SECONDS: float = 30.0

    # History / cache
    MAX_DISPLAYED_MESSAGES: int = 50
    TRANSLATION_CACHE_MAX_ENTRIES: int = 0  # 0 keeps every entry

    # Directory settings
    DATA_DIR: str = "data"

    VERBOSE_LOGGING: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @property
    def TRANSLATION_CACHE_PATH(self) -> str:
        """Complete path to the persisted translation cache"""
        return os.path.join(self.DATA_DIR, "translation_cache.json")

    @property
    def HISTORY_FILE_PATH(self) -> str:
        """Complete path to the persisted message history"""
        return os.path.join(self.DATA_DIR, "message_history.json")

    @property
    def CUSTOM_GLOSSARY_PATH(self) -> str:
        """Complete path to the user glossary overrides"""
        return os.path.join(self.DATA_DIR, "custom_glossary.json")

    @property
    def ENGINE_STATE_PATH(self) -> str:
        """Complete path to the persisted engine selection"""
        return os.path.join(self.DATA_DIR, "engine_state.json")

    @property
    def EFFECTIVE_INCOMING_TARGET(self) -> str:
        """Target language for inbound translations."""
        return self.INCOMING_TARGET_LANGUAGE or self.SOURCE_LANGUAGE

    @field_validator("SOURCE_LANGUAGE", "TARGET_LANGUAGE", "INCOMING_TARGET_LANGUAGE")
    @classmethod
    def normalize_language(cls, v: str) -> str:
        return (v or "").strip()

    @field_validator("SELECTED_ENGINE", "SECONDARY_ENGINE")
    @classmethod
    def validate_engine(cls, v: str) -> str:
        """Reject engine names that have no implementation.

        Raises:
            ValueError: If the engine name is unknown
        """
        normalized = (v or "").strip().lower()
        if normalized and normalized not in SUPPORTED_ENGINES:
            raise ValueError(
                f"Unknown translation engine '{v}'. "
                f"Supported: {', '.join(SUPPORTED_ENGINES)}"
            )
        return normalized

    @field_validator("MAX_OUTGOING_BYTES")
    @classmethod
    def validate_max_outgoing_bytes(cls, v: int) -> int:
        # The host rejects payloads above 500 bytes
        if not 16 <= v <= 500:
            raise ValueError("MAX_OUTGOING_BYTES must be between 16 and 500")
        return v

    @field_validator("MAX_DISPLAYED_MESSAGES")
    @classmethod
    def validate_max_displayed_messages(cls, v: int) -> int:
        if v < 1:
            raise ValueError("MAX_DISPLAYED_MESSAGES must be at least 1")
        return v

    @field_validator("EXCLUDED_MESSAGES", "KNOWN_WORLDS", mode="before")
    @classmethod
    def parse_string_list(cls, v: str | list[str]) -> list[str]:
        """Normalize a comma-separated string or list to list[str].

        Args:
            v: Comma-separated string or list of strings

        Returns:
            List with whitespace trimmed and empty entries removed
        """
        if isinstance(v, list):
            return [item.strip() for item in v if isinstance(item, str) and item.strip()]

        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]

        return []

    @field_validator("INCOMING_CHANNELS", mode="before")
    @classmethod
    def parse_incoming_channels(cls, v: str | list[int]) -> list[int]:
        """Normalize INCOMING_CHANNELS to a list of channel ids.

        Accepts a comma-separated string ("10,11,14") or a list of ints.
        Entries that are not integers are dropped with a warning.
        """
        raw = v.split(",") if isinstance(v, str) else list(v or [])
        channels: list[int] = []
        for item in raw:
            try:
                channels.append(int(str(item).strip()))
            except ValueError:
                if str(item).strip():
                    logger.warning(f"Ignoring invalid channel id in INCOMING_CHANNELS: {item!r}")
        return channels

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.DATA_DIR = os.path.abspath(self.DATA_DIR)

    def ensure_data_dirs(self) -> None:
        """Create the data directory if it doesn't exist.

        Called during pipeline startup to avoid import-time I/O.
        """
        Path(self.DATA_DIR).mkdir(parents=True, exist_ok=True)


# Thread-safe lazy initialization using lru_cache
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings instance with lazy initialization.

    Returns:
        Settings: Application settings object
    """
    return Settings()


def reset_settings() -> None:
    """Reset the cached settings instance.

    Useful for testing when you need to reload settings with different values.
    """
    get_settings.cache_clear()
