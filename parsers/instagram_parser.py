#!/usr/bin/env python3
"""
Instagram Export Parser
Converts Instagram "Download your information" inbox threads
(messages/inbox/<thread>/message_N.json) to ChatRecords
"""

import logging
from typing import Any, Dict, List, Optional

from .base_parser import BaseChatParser, safe_load_json
from .system_messages import INSTAGRAM_SYSTEM_PHRASES
from .universal_format import ChatRecord, MediaKind, Platform

logger = logging.getLogger(__name__)

# Attachment field -> media bucket, checked in order
ATTACHMENT_FIELDS = (
    ("photos", MediaKind.IMAGES),
    ("videos", MediaKind.VIDEOS),
    ("gifs", MediaKind.ANIMATIONS),
    ("audio_files", MediaKind.DOCUMENTS),
    ("files", MediaKind.DOCUMENTS),
)


def fix_mojibake(text: str) -> str:
    """
    Undo Meta's export encoding

    Instagram writes UTF-8 bytes as individual latin-1 code points
    ("cafÃ©" for "café"). Strings that do not round-trip are returned as-is.
    """
    if not text:
        return text
    try:
        return text.encode("latin-1").decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError):
        return text


def _thread_messages(thread: Any) -> Optional[List[Dict[str, Any]]]:
    if not isinstance(thread, dict) or not isinstance(thread.get("messages"), list):
        return None
    return thread["messages"]


def _sort_key(message: Dict[str, Any]) -> float:
    """Chronological key; records with an unreadable timestamp sort first"""
    try:
        return float(message.get("timestamp_ms") or 0)
    except (TypeError, ValueError):
        return 0.0


class InstagramParser(BaseChatParser):
    """
    Parser for Instagram direct message threads

    Accepts a single message_N.json object or a list of them (one thread
    split over several files). Messages are stored newest first in the
    export and are re-ordered by ``timestamp_ms``.
    """

    system_phrases = INSTAGRAM_SYSTEM_PHRASES

    def __init__(self, classifier=None):
        super().__init__(Platform.INSTAGRAM, classifier)

    def load(self, raw: Any) -> Any:
        if isinstance(raw, (list, tuple)) and raw and not isinstance(raw[0], dict):
            # several message_N.json files as bytes/str
            return [safe_load_json(part) for part in raw]
        return safe_load_json(raw)

    def raw_messages(self, data: Any) -> Optional[List[Any]]:
        threads = data if isinstance(data, list) else [data]
        messages: List[Dict[str, Any]] = []
        for thread in threads:
            part = _thread_messages(thread)
            if part is None:
                return None
            messages.extend(m for m in part if isinstance(m, dict))
        messages.sort(key=_sort_key)
        return messages

    def _validate_data_structure(self, data) -> bool:
        threads = data if isinstance(data, list) else [data]
        if not threads:
            return False
        for thread in threads:
            messages = _thread_messages(thread)
            if messages is None or "participants" not in thread:
                return False
            sample = next((m for m in messages if isinstance(m, dict)), None)
            if sample is not None and not ("sender_name" in sample and "timestamp_ms" in sample):
                return False
        return True

    def to_record(self, message: Any) -> Optional[ChatRecord]:
        sender = fix_mojibake(str(message.get("sender_name") or ""))
        if not sender:
            return None

        content = message.get("content")
        text = fix_mojibake(content) if isinstance(content, str) else ""
        is_system = bool(message.get("is_unsent")) or "call_duration" in message \
            or self.classifier.is_system(text)

        record = ChatRecord(
            sender=sender,
            text=text,
            timestamp=self.safe_datetime(message.get("timestamp_ms")),
            is_system=is_system,
        )

        for reaction in message.get("reactions") or []:
            if isinstance(reaction, dict) and reaction.get("actor") and isinstance(reaction.get("reaction"), str):
                record.extra_emojis.append(
                    (fix_mojibake(str(reaction["actor"])), fix_mojibake(reaction["reaction"]))
                )

        self._classify_media(message, record)
        return record

    def _classify_media(self, message: Dict[str, Any], record: ChatRecord) -> None:
        for field, kind in ATTACHMENT_FIELDS:
            if message.get(field):
                record.media_kind = kind
                return

        if message.get("sticker"):
            record.media_kind = MediaKind.STICKERS
            return

        share = message.get("share")
        if isinstance(share, dict) and share.get("link"):
            record.media_kind = MediaKind.LINKS
            # "sent an attachment." placeholder text is not the sender's words
            if record.text.endswith("sent an attachment."):
                record.text = ""
