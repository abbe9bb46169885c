"""Bounded, ordered history of displayed chat messages."""

import logging
import threading
from pathlib import Path
from typing import Callable, List, Optional

import portalocker
from pydantic import ValidationError

from chat_relay.channels.models import DisplayMessage
from chat_relay.utils.storage import atomic_write_json, load_json

logger = logging.getLogger(__name__)

MessageListener = Callable[[DisplayMessage], None]


class HistoryStore:
    """Owns every DisplayMessage once it is published.

    Messages are kept in arrival order and pruned from the head when the
    bound is exceeded. Listeners run outside the lock, after each mutation.
    """

    def __init__(self, max_messages: int = 50, history_file_path: Optional[str] = None):
        """Initialize the store.

        Args:
            max_messages: Maximum number of messages kept.
            history_file_path: Optional JSON file written after every mutation.
        """
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self.max_messages = max_messages
        self.history_file_path = Path(history_file_path) if history_file_path else None

        self._messages: List[DisplayMessage] = []
        self._lock = threading.Lock()
        self._save_lock = threading.Lock()
        self._dirty = False

        self._on_added: List[MessageListener] = []
        self._on_updated: List[MessageListener] = []
        self._on_cleared: List[Callable[[], None]] = []

        self._load()

    def _load(self) -> None:
        if self.history_file_path is None:
            return
        for raw in load_json(self.history_file_path, []):
            try:
                message = DisplayMessage.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Skipping malformed history entry: {e}")
                continue
            # Anything still in flight at shutdown will never resolve
            if message.is_translating:
                message.is_translating = False
                message.translated_text = message.translated_text or message.original_text
            self._messages.append(message)
        self._prune()

    def _prune(self) -> None:
        overflow = len(self._messages) - self.max_messages
        if overflow > 0:
            del self._messages[:overflow]

    def save(self) -> bool:
        """Write a full snapshot if there are unsaved changes.

        Snapshots are taken inside the save lock, so a later write always
        carries state at least as new as an earlier one.

        Returns:
            True if the store is clean afterwards, False if the write failed.
        """
        if self.history_file_path is None:
            return True

        with self._save_lock:
            with self._lock:
                if not self._dirty:
                    return True
                snapshot = [m.model_dump(mode="json") for m in self._messages]
                self._dirty = False

            try:
                atomic_write_json(self.history_file_path, snapshot)
                return True
            except (OSError, portalocker.exceptions.LockException) as e:
                logger.error(f"Failed to save message history: {e}")
                with self._lock:
                    self._dirty = True
                return False

    def on_message_added(self, listener: MessageListener) -> None:
        self._on_added.append(listener)

    def on_message_updated(self, listener: MessageListener) -> None:
        self._on_updated.append(listener)

    def on_history_cleared(self, listener: Callable[[], None]) -> None:
        self._on_cleared.append(listener)

    def add_message(self, message: DisplayMessage) -> None:
        """Append a message, pruning the oldest beyond the bound."""
        with self._lock:
            self._messages.append(message)
            self._prune()
            self._dirty = True

        self.save()
        self._emit(self._on_added, message)

    def update_message(
        self,
        message_id: str,
        translated_text: str,
    ) -> Optional[DisplayMessage]:
        """Finalize an in-flight message with its translation.

        Returns:
            The stored message, or None if it was already pruned.
        """
        with self._lock:
            existing = next((m for m in self._messages if m.id == message_id), None)
            if existing is None:
                return None
            existing.translated_text = translated_text
            existing.is_translating = False
            self._dirty = True

        self.save()
        self._emit(self._on_updated, existing)
        return existing

    def get_message(self, message_id: str) -> Optional[DisplayMessage]:
        with self._lock:
            found = next((m for m in self._messages if m.id == message_id), None)
            return found.model_copy() if found is not None else None

    def get_history(self) -> List[DisplayMessage]:
        """Copies of the stored messages in arrival order."""
        with self._lock:
            return [m.model_copy() for m in self._messages]

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()
            self._dirty = True

        self.save()
        for listener in list(self._on_cleared):
            try:
                listener()
            except Exception:
                logger.exception("History listener raised")

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)

    @staticmethod
    def _emit(listeners: List[MessageListener], message: DisplayMessage) -> None:
        for listener in list(listeners):
            try:
                listener(message)
            except Exception:
                logger.exception("History listener raised")
