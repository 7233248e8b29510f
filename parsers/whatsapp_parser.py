#!/usr/bin/env python3
"""
WhatsApp Export Parser
Converts WhatsApp "Export chat" text files to ChatRecords

Handles both header styles:
    Android: 31/12/2021, 22:15 - Alice: text
    iOS:     [31/12/2021, 22:15:03] Alice: text
with optional seconds and AM/PM markers. Lines that do not start with a
header continue the previous message.
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from .base_parser import BaseChatParser, decode_text
from .system_messages import WHATSAPP_SYSTEM_PHRASES
from .universal_format import ChatRecord, MediaKind, Platform

_DATE = r"(\d{1,2})[./-](\d{1,2})[./-](\d{2,4}),?\s+(\d{1,2})[:.](\d{2})(?:[:.](\d{2}))?\s*([AaPp]\.?\s?[Mm]\.?)?"

IOS_HEADER = re.compile(r"^\[" + _DATE + r"\]\s*(.*)$")
ANDROID_HEADER = re.compile(r"^" + _DATE + r"\s+[-\u2013]\s+(.*)$")

SENDER_BODY = re.compile(r"^([^:]{1,100}?):\s(.*)$", re.DOTALL)

# Bidi/invisible marks WhatsApp sprinkles into exports
INVISIBLE = re.compile(r"[\u200e\u200f\u202a-\u202e\u2066-\u2069\ufeff]")

EDITED_MARKER = re.compile(r"\s*<This message was edited>\s*$", re.IGNORECASE)
URL_PATTERN = re.compile(r"https?://\S+", re.IGNORECASE)

# Placeholder text -> media bucket; the first match wins
MEDIA_PLACEHOLDERS = (
    (re.compile(r"sticker omitted|<attached: [^>]*STICKER[^>]*>|\.webp \(file attached\)", re.I), MediaKind.STICKERS),
    (re.compile(r"GIF omitted|<attached: [^>]*GIF[^>]*>", re.I), MediaKind.ANIMATIONS),
    (re.compile(r"image omitted|<attached: [^>]*PHOTO[^>]*>|\.(?:jpe?g|png|heic) \(file attached\)", re.I), MediaKind.IMAGES),
    (re.compile(r"video omitted|<attached: [^>]*VIDEO[^>]*>|\.(?:mp4|mov|3gp) \(file attached\)", re.I), MediaKind.VIDEOS),
    (re.compile(r"<Media omitted>|document omitted|audio omitted|<attached: [^>]*>|\(file attached\)", re.I), MediaKind.DOCUMENTS),
)


def _split_header(line: str) -> Optional[Dict[str, Any]]:
    match = IOS_HEADER.match(line) or ANDROID_HEADER.match(line)
    if not match:
        return None
    first, second, year, hour, minute, second_of_minute, meridiem, body = match.groups()
    return {
        "first": int(first),
        "second": int(second),
        "year": int(year),
        "hour": int(hour),
        "minute": int(minute),
        "seconds": int(second_of_minute or 0),
        "meridiem": (meridiem or "").replace(".", "").replace(" ", "").lower(),
        "body": body,
    }


def infer_day_first(entries: List[Dict[str, Any]]) -> bool:
    """
    Decide whether dates are day/month or month/day

    A component above 12 settles it; otherwise 12-hour clocks suggest a
    US-style (month-first) export.
    """
    if any(e["first"] > 12 for e in entries):
        return True
    if any(e["second"] > 12 for e in entries):
        return False
    return not any(e["meridiem"] for e in entries)


def entry_datetime(entry: Dict[str, Any]) -> datetime:
    if entry["day_first"]:
        day, month = entry["first"], entry["second"]
    else:
        month, day = entry["first"], entry["second"]

    year = entry["year"]
    if year < 100:
        year += 2000

    hour = entry["hour"]
    if entry["meridiem"] == "pm" and hour < 12:
        hour += 12
    elif entry["meridiem"] == "am" and hour == 12:
        hour = 0

    return datetime(year, month, day, hour, entry["minute"], entry["seconds"])


def classify_media(text: str) -> Optional[MediaKind]:
    for pattern, kind in MEDIA_PLACEHOLDERS:
        if pattern.search(text):
            return kind
    if URL_PATTERN.search(text):
        return MediaKind.LINKS
    return None


class WhatsAppParser(BaseChatParser):
    """
    Parser for WhatsApp text exports

    Header lines without a "Name:" part (group creation, encryption notice,
    member changes) have no resolvable sender and are skipped.
    """

    system_phrases = WHATSAPP_SYSTEM_PHRASES

    def __init__(self, classifier=None):
        super().__init__(Platform.WHATSAPP, classifier)

    def load(self, raw: Any) -> Any:
        return decode_text(raw)

    def raw_messages(self, data: Any) -> Optional[List[Any]]:
        if not isinstance(data, str):
            return None

        entries: List[Dict[str, Any]] = []
        for line in data.splitlines():
            line = INVISIBLE.sub("", line).rstrip()
            header = _split_header(line.lstrip())
            if header is not None:
                entries.append(header)
            elif entries and line:
                entries[-1]["body"] += "\n" + line

        if not entries:
            return None

        day_first = infer_day_first(entries)
        for entry in entries:
            entry["day_first"] = day_first
        return entries

    def _validate_data_structure(self, data) -> bool:
        return self.raw_messages(data) is not None

    def to_record(self, entry: Any) -> Optional[ChatRecord]:
        match = SENDER_BODY.match(entry["body"])
        if not match:
            return None

        sender, text = match.group(1).strip(), match.group(2).strip()
        if not sender:
            return None
        if self.classifier.is_system(entry["body"]) and not self.classifier.is_system(text):
            # sender-less notice whose own text holds a colon
            return None

        is_edited = bool(EDITED_MARKER.search(text))
        if is_edited:
            text = EDITED_MARKER.sub("", text)

        media_kind = classify_media(text)
        if media_kind is not None and media_kind != MediaKind.LINKS:
            # Drop the placeholder but keep any caption that follows it
            text = "\n".join(
                line for line in text.splitlines()
                if not any(p.search(line) for p, _ in MEDIA_PLACEHOLDERS)
            ).strip()

        try:
            timestamp = entry_datetime(entry)
        except ValueError:
            timestamp = None

        return ChatRecord(
            sender=sender,
            text=text,
            timestamp=timestamp,
            media_kind=media_kind,
            is_edited=is_edited,
            is_system=self.classifier.is_system(text),
        )
