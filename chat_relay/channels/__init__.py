"""Chat channel layer.

Host-facing interception of outgoing and incoming chat, built on the
translation services.
"""

from chat_relay.channels.dedup import PendingOutgoingDedupMap
from chat_relay.channels.history_store import HistoryStore
from chat_relay.channels.identity import normalize_sender
from chat_relay.channels.inbound_processor import InboundProcessor
from chat_relay.channels.models import (
    ChatChannel,
    ChatDirection,
    ChatEvent,
    DisplayMessage,
    OutboundResult,
)
from chat_relay.channels.outbound_interceptor import OutboundInterceptor
from chat_relay.channels.pipeline import TranslationPipeline
from chat_relay.channels.runtime import AsyncRunner
from chat_relay.channels.spam_filter import SpamDecision, SpamFilter

__all__ = [
    "AsyncRunner",
    "ChatChannel",
    "ChatDirection",
    "ChatEvent",
    "DisplayMessage",
    "HistoryStore",
    "InboundProcessor",
    "OutboundInterceptor",
    "OutboundResult",
    "PendingOutgoingDedupMap",
    "SpamDecision",
    "SpamFilter",
    "TranslationPipeline",
    "normalize_sender",
]
