"""
JSON persistence helpers shared by the cache, history and engine state.

- Atomic writes (write-to-temp-then-rename)
- File locking via portalocker so two processes never interleave writes
- Tolerant reads: missing or corrupt files yield the caller's default
"""

import json
import logging
import tempfile
from pathlib import Path
from typing import Any

import portalocker

logger = logging.getLogger(__name__)

LOCK_TIMEOUT_SECONDS = 10


def _lock_path(path: Path) -> Path:
    return path.with_suffix(path.suffix + ".lock")


def load_json(path: str | Path, default: Any) -> Any:
    """Load a JSON document, returning ``default`` when it is missing or corrupt.

    Args:
        path: File to read
        default: Value returned when the file cannot be used. Its type is also
            the expected type of the document (a dict default rejects a list).

    Returns:
        Parsed document or ``default``
    """
    path = Path(path)
    if not path.exists():
        return default

    try:
        with portalocker.Lock(
            str(_lock_path(path)), "a", timeout=LOCK_TIMEOUT_SECONDS
        ):
            raw = path.read_text(encoding="utf-8")
        data = json.loads(raw)
    except (OSError, ValueError, portalocker.exceptions.LockException) as e:
        logger.warning(f"Ignoring unreadable JSON file {path}: {e}")
        return default

    if default is not None and not isinstance(data, type(default)):
        logger.warning(
            f"Ignoring JSON file {path}: expected {type(default).__name__}, "
            f"got {type(data).__name__}"
        )
        return default
    return data


def atomic_write_json(path: str | Path, data: Any) -> None:
    """Write ``data`` as JSON, replacing ``path`` atomically.

    Raises:
        OSError: If the file cannot be written
        portalocker.exceptions.LockException: If the lock is not acquired in time
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with portalocker.Lock(str(_lock_path(path)), "a", timeout=LOCK_TIMEOUT_SECONDS):
        tmp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                dir=path.parent,
                suffix=".tmp",
                delete=False,
                encoding="utf-8",
            ) as tmp_file:
                tmp_path = Path(tmp_file.name)
                json.dump(data, tmp_file, ensure_ascii=False, indent=2)

            tmp_path.replace(path)
        except BaseException:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            raise
