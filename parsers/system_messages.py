#!/usr/bin/env python3
"""
System/service message detection

Exports render membership changes, pins and similar events as ordinary
text, so detection is a substring match against a phrase list. The lists
are English-only; deployments with other export languages extend them
through the EXTRA_SYSTEM_PHRASES setting.
"""

from typing import Iterable, Tuple

TELEGRAM_SYSTEM_PHRASES = (
    "joined the group",
    "created the group",
    "changed the group",
    "pinned a message",
    "left the group",
    "invited",
    "banned",
)

WHATSAPP_SYSTEM_PHRASES = (
    "messages and calls are end-to-end encrypted",
    "created group",
    "changed the subject",
    "changed this group's icon",
    "changed the group description",
    "joined using this group's invite link",
    "left the group",
    "this message was deleted",
    "you deleted this message",
    "missed voice call",
    "missed video call",
    "security code changed",
)

INSTAGRAM_SYSTEM_PHRASES = (
    "liked a message",
    "to your message",
    "started a video chat",
    "started an audio call",
    "video chat ended",
    "audio call ended",
    "named the group",
    "changed the group",
    " to the group",
    "left the group",
    "unsent a message",
)


class SystemMessageClassifier:
    """Case-insensitive substring classifier for service messages"""

    def __init__(self, phrases: Iterable[str]):
        self.phrases: Tuple[str, ...] = tuple(p.lower() for p in phrases if p)

    def extend(self, phrases: Iterable[str]) -> "SystemMessageClassifier":
        """Return a new classifier with additional phrases"""
        return SystemMessageClassifier(self.phrases + tuple(phrases))

    def is_system(self, text: str) -> bool:
        if not text:
            return False
        lowered = text.lower()
        return any(phrase in lowered for phrase in self.phrases)
