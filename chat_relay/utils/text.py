"""Text helpers for payloads handed to the host chat transport."""

import unicodedata

# The host rejects anything above 500 bytes; keep a margin for the channel prefix
HOST_MAX_BYTES = 500
DEFAULT_MAX_OUTGOING_BYTES = 450
TRUNCATION_MARKER = "..."


def sanitize_outgoing(
    text: str,
    max_bytes: int = DEFAULT_MAX_OUTGOING_BYTES,
    marker: str = TRUNCATION_MARKER,
) -> str:
    """Make text safe for the host transport.

    Removes NUL/CR and other control characters, turns line feeds and tabs
    into single spaces and truncates to ``max_bytes`` of UTF-8, appending
    ``marker`` when truncation happened. Truncation never splits a
    multi-byte character.

    Args:
        text: Text to send
        max_bytes: UTF-8 byte budget including the marker
        marker: Suffix appended to truncated text

    Returns:
        Sanitized text
    """
    if not text:
        return ""

    cleaned = text.replace("\0", "").replace("\r", "")
    cleaned = "".join(
        " " if ch in "\n\t" else ch
        for ch in cleaned
        if ch in "\n\t" or unicodedata.category(ch) != "Cc"
    )

    encoded = cleaned.encode("utf-8")
    if len(encoded) <= max_bytes:
        return cleaned

    budget = max(0, max_bytes - len(marker.encode("utf-8")))
    truncated = encoded[:budget].decode("utf-8", errors="ignore")
    return truncated + marker


def is_blank(text: str | None) -> bool:
    return not (text or "").strip()
