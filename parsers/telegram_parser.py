#!/usr/bin/env python3
"""
Telegram Export Parser
Converts Telegram Desktop JSON exports (result.json) to ChatRecords
"""

from typing import Any, Dict, List, Optional

from .base_parser import BaseChatParser, safe_load_json
from .system_messages import TELEGRAM_SYSTEM_PHRASES
from .universal_format import ChatRecord, MediaKind, Platform

# Legacy top-level message types that carry media directly
LEGACY_MEDIA_TYPES = {
    "image": MediaKind.IMAGES,
    "video": MediaKind.VIDEOS,
    "document": MediaKind.DOCUMENTS,
    "sticker": MediaKind.STICKERS,
}

MEDIA_TYPES = {
    "video_file": MediaKind.VIDEOS,
    "video_message": MediaKind.VIDEOS,
    "animation": MediaKind.ANIMATIONS,
    "sticker": MediaKind.STICKERS,
}

LINK_ENTITY_TYPES = ("link", "text_link")


def message_text(message: Dict[str, Any]) -> str:
    """
    Render a Telegram message's text

    Telegram stores formatted text as a list of plain strings and entity
    objects ({"type": "bold", "text": ...}); the segments concatenate back
    into the original message.
    """
    text = message.get("text")
    if not text:
        return ""
    if isinstance(text, str):
        return text
    if isinstance(text, list):
        parts = []
        for segment in text:
            if isinstance(segment, str):
                parts.append(segment)
            elif isinstance(segment, dict):
                parts.append(str(segment.get("text", "")))
        return "".join(parts)
    return ""


def has_link(message: Dict[str, Any]) -> bool:
    segments = message.get("text_entities") or message.get("text")
    if not isinstance(segments, list):
        return False
    return any(isinstance(s, dict) and s.get("type") in LINK_ENTITY_TYPES for s in segments)


def file_size(value: Any) -> int:
    """Byte count from an export field; unreadable sizes count as 0"""
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError, OverflowError):
        return 0


class TelegramParser(BaseChatParser):
    """
    Parser for Telegram chat exports

    The export is a single object with a ``messages`` array. Regular
    messages carry ``from``; service messages (joins, pins, calls) carry
    ``actor`` and an ``action`` field instead.
    """

    system_phrases = TELEGRAM_SYSTEM_PHRASES

    def __init__(self, classifier=None):
        super().__init__(Platform.TELEGRAM, classifier)

    def load(self, raw: Any) -> Any:
        return safe_load_json(raw)

    def raw_messages(self, data: Any) -> Optional[List[Any]]:
        if not isinstance(data, dict) or not isinstance(data.get("messages"), list):
            return None
        return data["messages"]

    def _validate_data_structure(self, data) -> bool:
        messages = self.raw_messages(data)
        if messages is None:
            return False
        # Telegram messages have numeric ids and a "type" discriminator
        sample = next((m for m in messages if isinstance(m, dict)), None)
        return sample is None or ("type" in sample and "id" in sample)

    def to_record(self, message: Any) -> Optional[ChatRecord]:
        if not isinstance(message, dict):
            return None

        sender = message.get("from") or message.get("actor")
        if not sender:
            return None
        sender = str(sender)

        text = message_text(message)
        is_system = bool(message.get("action")) or message.get("type") == "service" \
            or self.classifier.is_system(text)

        record = ChatRecord(
            sender=sender,
            text=text,
            timestamp=self._timestamp(message),
            is_edited=bool(message.get("edited")),
            is_system=is_system,
        )

        is_sticker = message.get("type") == "sticker" or message.get("media_type") == "sticker"
        if is_sticker and isinstance(message.get("sticker_emoji"), str):
            record.extra_emojis.append((sender, message["sticker_emoji"]))
        if message.get("type") == "reaction" and isinstance(message.get("reaction_emoji"), str):
            record.extra_emojis.append((sender, message["reaction_emoji"]))
        record.extra_emojis.extend(self._reactions(message))

        self._classify_media(message, record)
        return record

    def _timestamp(self, message: Dict[str, Any]):
        if message.get("date"):
            return self.safe_datetime(message["date"])
        if message.get("date_unixtime"):
            return self.safe_datetime(str(message["date_unixtime"]))
        return None

    def _reactions(self, message: Dict[str, Any]):
        pairs = []
        reactions = message.get("reactions")
        if not isinstance(reactions, list):
            return pairs
        for reaction in reactions:
            if not isinstance(reaction, dict) or not isinstance(reaction.get("emoji"), str):
                continue
            recent_senders = reaction.get("recent")
            if not isinstance(recent_senders, list):
                continue
            for recent in recent_senders:
                if isinstance(recent, dict) and recent.get("from"):
                    pairs.append((str(recent["from"]), reaction["emoji"]))
        return pairs

    def _classify_media(self, message: Dict[str, Any], record: ChatRecord) -> None:
        message_type = message.get("type")
        size = file_size(message.get("file_size"))

        if message_type in LEGACY_MEDIA_TYPES:
            record.media_kind = LEGACY_MEDIA_TYPES[message_type]
            record.media_size = size
            return

        if message_type != "message":
            return

        media_type = message.get("media_type")
        if message.get("photo"):
            record.media_kind = MediaKind.IMAGES
            record.media_size = file_size(message.get("photo_file_size")) or size
        elif media_type in MEDIA_TYPES:
            record.media_kind = MEDIA_TYPES[media_type]
            record.media_size = size
        elif has_link(message):
            record.media_kind = MediaKind.LINKS
        elif message.get("file_name") or message.get("file"):
            # voice notes and audio files fall through to documents
            record.media_kind = MediaKind.DOCUMENTS
            record.media_size = size
