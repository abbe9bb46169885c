"""Engine registry and fail-forward failover controller.

Two states:

- PRIMARY_ACTIVE (initial): translations go to the primary engine.
- FAILED_OVER (terminal until ``reconfigure``): translations go to the
  secondary engine.

A rate-limit signal moves PRIMARY_ACTIVE -> FAILED_OVER exactly once. There
is no automatic fail-back; the selection is persisted so a restart keeps
using the secondary engine.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

import portalocker

from chat_relay.metrics.translation_metrics import translation_engine_failovers_total
from chat_relay.services.translation.engines import TranslationEngine
from chat_relay.utils.storage import atomic_write_json, load_json

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    PRIMARY_ACTIVE = "primary_active"
    FAILED_OVER = "failed_over"


@dataclass(frozen=True)
class EngineHandle:
    """Immutable snapshot of the live engine.

    Readers take one reference and use it for the whole call; the registry
    replaces the reference as a whole, so nobody observes a half-updated state.
    """

    engine: TranslationEngine
    state: EngineState

    @property
    def name(self) -> str:
        return self.engine.name


@dataclass(frozen=True)
class FailoverEvent:
    """Notification sent to listeners when the registry fails over."""

    from_engine: str
    to_engine: str
    reason: str = ""


class EngineSelectionStore:
    """Persists the currently selected engine name as JSON."""

    def __init__(self, path: str):
        self.path = Path(path)

    def load(self) -> Optional[str]:
        data = load_json(self.path, {})
        selected = data.get("selected_engine")
        return selected if isinstance(selected, str) and selected else None

    def save(self, engine_name: str) -> bool:
        try:
            atomic_write_json(self.path, {"selected_engine": engine_name})
            return True
        except (OSError, portalocker.exceptions.LockException) as e:
            logger.error(f"Failed to persist engine selection '{engine_name}': {e}")
            return False


class EngineRegistry:
    """Holds the primary/secondary engines and the live engine handle."""

    def __init__(
        self,
        primary: TranslationEngine,
        secondary: Optional[TranslationEngine] = None,
        selection_store: Optional[EngineSelectionStore] = None,
    ):
        """Initialize the registry.

        Args:
            primary: Engine used while PRIMARY_ACTIVE.
            secondary: Failover target; None disables failover.
            selection_store: Optional persistence for the selected engine. If it
                names the secondary engine, the registry starts FAILED_OVER.
        """
        self._lock = threading.Lock()
        self._listeners: List[Callable[[FailoverEvent], None]] = []
        self.selection_store = selection_store
        self._primary = primary
        self._secondary = secondary

        persisted = selection_store.load() if selection_store else None
        if (
            secondary is not None
            and persisted == secondary.name
            and persisted != primary.name
        ):
            logger.info(f"Restoring persisted engine selection: {persisted}")
            self._handle = EngineHandle(secondary, EngineState.FAILED_OVER)
        else:
            self._handle = EngineHandle(primary, EngineState.PRIMARY_ACTIVE)

    @property
    def handle(self) -> EngineHandle:
        return self._handle

    @property
    def active(self) -> TranslationEngine:
        return self._handle.engine

    @property
    def state(self) -> EngineState:
        return self._handle.state

    @property
    def primary(self) -> TranslationEngine:
        return self._primary

    @property
    def secondary(self) -> Optional[TranslationEngine]:
        return self._secondary

    def fallback_for(self, engine: TranslationEngine) -> Optional[TranslationEngine]:
        """Engine to retry with after ``engine`` hit a rate limit, if any."""
        secondary = self._secondary
        if secondary is None or secondary is engine:
            return None
        return secondary

    def add_listener(self, listener: Callable[[FailoverEvent], None]) -> None:
        """Register a callback invoked after a failover transition."""
        self._listeners.append(listener)

    def fail_over(self, reason: str = "") -> bool:
        """Switch permanently to the secondary engine.

        Idempotent: only the first call while PRIMARY_ACTIVE does anything.

        Returns:
            True if this call performed the transition.
        """
        with self._lock:
            if self._handle.state is EngineState.FAILED_OVER or self._secondary is None:
                return False
            previous = self._handle.engine
            self._handle = EngineHandle(self._secondary, EngineState.FAILED_OVER)
            current = self._handle.engine

        logger.warning(
            f"Switching translation engine {previous.name} -> {current.name}"
            + (f" ({reason})" if reason else "")
        )
        translation_engine_failovers_total.labels(
            from_engine=previous.name, to_engine=current.name
        ).inc()

        if self.selection_store is not None:
            self.selection_store.save(current.name)

        self._notify(FailoverEvent(previous.name, current.name, reason))
        return True

    def reconfigure(
        self,
        primary: TranslationEngine,
        secondary: Optional[TranslationEngine] = None,
    ) -> None:
        """Apply an explicit user engine choice and return to PRIMARY_ACTIVE."""
        with self._lock:
            self._primary = primary
            self._secondary = secondary
            self._handle = EngineHandle(primary, EngineState.PRIMARY_ACTIVE)

        logger.info(
            f"Translation engines reconfigured: primary={primary.name}, "
            f"secondary={secondary.name if secondary else None}"
        )
        if self.selection_store is not None:
            self.selection_store.save(primary.name)

    def _notify(self, event: FailoverEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Failover listener raised")

    async def aclose(self) -> None:
        """Close the HTTP clients of every engine."""
        engines = {id(e): e for e in (self._primary, self._secondary) if e is not None}
        for engine in engines.values():
            await engine.aclose()
