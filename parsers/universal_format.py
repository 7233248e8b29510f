#!/usr/bin/env python3
"""
Universal Chat Record Format
Standard data structures shared by all messaging-platform parsers

Each platform adapter turns its native export into a stream of ChatRecord
objects. The aggregation engine only ever sees ChatRecords, and the
retrieval layer only ever sees NormalizedMessages, so neither depends on
the quirks of a particular export format.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

if TYPE_CHECKING:
    from .chat_stats import ChatStats


class Platform(str, Enum):
    """Supported chat export sources"""
    TELEGRAM = "telegram"
    WHATSAPP = "whatsapp"
    INSTAGRAM = "instagram"


class MediaKind(str, Enum):
    """Six-bucket media taxonomy used across platforms"""
    IMAGES = "images"
    VIDEOS = "videos"
    DOCUMENTS = "documents"
    STICKERS = "stickers"
    ANIMATIONS = "animations"
    LINKS = "links"


@dataclass
class ChatRecord:
    """
    One platform message reduced to the fields the statistics engine needs

    Adapters fill this in; records without a resolvable sender are never
    emitted.
    """

    sender: str
    text: str = ""
    timestamp: Optional[datetime] = None
    media_kind: Optional[MediaKind] = None
    media_size: int = 0
    is_edited: bool = False
    is_system: bool = False

    # (actor, emoji) pairs from stickers/reactions attached to this record
    extra_emojis: List[Tuple[str, str]] = field(default_factory=list)

    def to_normalized(self) -> "NormalizedMessage":
        return NormalizedMessage(
            sender=self.sender,
            text=self.text,
            date=self.timestamp.isoformat() if self.timestamp else "",
        )


@dataclass(frozen=True)
class NormalizedMessage:
    """Platform-agnostic {from, text, date} message"""

    sender: str
    text: str
    date: str  # ISO-8601, empty when the source carried no usable timestamp

    def to_dict(self) -> Dict[str, str]:
        return {"from": self.sender, "text": self.text, "date": self.date}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NormalizedMessage":
        return cls(
            sender=str(data.get("from") or ""),
            text=str(data.get("text") or ""),
            date=str(data.get("date") or ""),
        )


@dataclass
class ParseResult:
    """Output of every parser: aggregate statistics plus the message stream"""

    stats: "ChatStats"
    messages: List[NormalizedMessage] = field(default_factory=list)

    @property
    def participant_count(self) -> int:
        return len(self.stats.messages_by_user)
