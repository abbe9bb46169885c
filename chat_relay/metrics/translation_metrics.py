"""Prometheus metrics for the chat translation pipeline."""

from prometheus_client import Counter, Histogram

translation_decisions_total = Counter(
    "chat_translation_decisions_total",
    "Routing decisions taken for chat messages",
    ["direction", "decision"],
)

translation_cache_lookups_total = Counter(
    "chat_translation_cache_lookups_total",
    "Translation cache lookups by result",
    ["direction", "result"],
)

translation_engine_errors_total = Counter(
    "chat_translation_engine_errors_total",
    "Translation engine errors by engine and kind",
    ["engine", "kind"],
)

translation_engine_failovers_total = Counter(
    "chat_translation_engine_failovers_total",
    "Number of permanent engine failovers",
    ["from_engine", "to_engine"],
)

spam_messages_dropped_total = Counter(
    "chat_translation_spam_dropped_total",
    "Inbound messages dropped by the RMT/spam filter",
    ["reason"],
)

outgoing_dedup_hits_total = Counter(
    "chat_translation_outgoing_dedup_hits_total",
    "Inbound echoes reunited with their outbound original",
)

translation_operation_duration_seconds = Histogram(
    "chat_translation_operation_duration_seconds",
    "Duration of translation operations",
    ["direction"],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
)
