"""Chat relay message models.

Standardized models for both interception directions.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatChannel(IntEnum):
    """Host chat channel identifiers."""

    SAY = 10
    SHOUT = 11
    TELL_OUTGOING = 12
    TELL_INCOMING = 13
    PARTY = 14
    ALLIANCE = 15
    LS1 = 16
    LS2 = 17
    LS3 = 18
    LS4 = 19
    LS5 = 20
    LS6 = 21
    LS7 = 22
    LS8 = 23
    FREE_COMPANY = 24
    YELL = 30
    CWLS1 = 37
    CWLS2 = 101
    CWLS3 = 102
    CWLS4 = 103
    CWLS5 = 104
    CWLS6 = 105
    CWLS7 = 106
    CWLS8 = 107

    @classmethod
    def from_id(cls, channel_id: int) -> Optional["ChatChannel"]:
        try:
            return cls(channel_id)
        except ValueError:
            return None

    @property
    def is_tell(self) -> bool:
        return self in (ChatChannel.TELL_OUTGOING, ChatChannel.TELL_INCOMING)


class ChatDirection(str, Enum):
    """Where a chat event was captured."""

    OUTBOUND_INTERCEPTED = "outbound_intercepted"
    INBOUND_OBSERVED = "inbound_observed"


class ChatEvent(BaseModel):
    """A text event captured at the host boundary. Immutable once captured."""

    model_config = ConfigDict(frozen=True)

    channel: int = Field(..., description="Host channel/type identifier")
    sender: str = Field("", description="Sender display string as delivered")
    text: str = Field("", description="Raw message text")
    direction: ChatDirection = ChatDirection.INBOUND_OBSERVED
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    sender_world: Optional[str] = Field(
        None, description="World reported by the host for this sender, if known"
    )
    recipient: Optional[str] = None


class DisplayMessage(BaseModel):
    """A translated chat entry shown to the user.

    Created in the in-flight state (empty translation) and mutated in place
    once the translation resolves. Only HistoryStore mutates stored instances.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    channel: int
    sender: str = ""
    recipient: Optional[str] = None
    original_text: str
    translated_text: str = ""
    is_translating: bool = False

    @property
    def channel_name(self) -> str:
        channel = ChatChannel.from_id(self.channel)
        return channel.name if channel is not None else str(self.channel)


class OutboundResult(BaseModel):
    """Outcome of intercepting one outbound message."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(..., description="Text to hand to the host for transmission")
    original_text: str
    translated: bool = False
    cached: bool = False
    reason: str = Field("", description="Routing decision or fallback reason")
