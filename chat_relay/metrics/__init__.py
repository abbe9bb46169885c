"""Centralized metrics module for Prometheus instrumentation.

Usage:
    from chat_relay.metrics.translation_metrics import translation_decisions_total
"""

from chat_relay.metrics import translation_metrics

__all__ = [
    "translation_metrics",
]
