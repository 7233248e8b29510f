"""Shared test helpers for chat analyzer tests.

Regular functions (not fixtures) that build synthetic exports and message
streams; any test module can import them.
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timedelta
from types import SimpleNamespace

import numpy as np

from parsers.universal_format import NormalizedMessage
from retrieval.embedding import EmbeddingClient

BASE_TIME = datetime(2023, 1, 1, 10, 0, 0)


# ── Telegram ─────────────────────────────────


def tg_message(msg_id: int, sender: str | None, text="", date: datetime | None = None, **extra) -> dict:
    """One Telegram export message."""
    message = {
        "id": msg_id,
        "type": "message",
        "date": (date or BASE_TIME + timedelta(minutes=msg_id)).isoformat(),
        "text": text,
    }
    if sender is not None:
        message["from"] = sender
        message["from_id"] = f"user-{sender}"
    message.update(extra)
    return message


def tg_service(msg_id: int, actor: str, action: str, date: datetime | None = None) -> dict:
    """A Telegram service record (joins, pins, ...)."""
    return {
        "id": msg_id,
        "type": "service",
        "date": (date or BASE_TIME + timedelta(minutes=msg_id)).isoformat(),
        "actor": actor,
        "action": action,
        "text": "",
    }


def telegram_export(messages: list[dict], as_bytes: bool = True):
    export = {"name": "Test chat", "type": "personal_chat", "id": 1, "messages": messages}
    return json.dumps(export).encode("utf-8") if as_bytes else export


# ── WhatsApp ─────────────────────────────────


def wa_line(when: datetime, sender: str | None, text: str, style: str = "android") -> str:
    """One WhatsApp header line (day-first, 24h)."""
    stamp = when.strftime("%d/%m/%Y, %H:%M")
    body = f"{sender}: {text}" if sender else text
    if style == "ios":
        return f"[{when.strftime('%d/%m/%Y, %H:%M:%S')}] {body}"
    return f"{stamp} - {body}"


def whatsapp_export(lines: list[str]) -> bytes:
    return ("\n".join(lines) + "\n").encode("utf-8")


# ── Instagram ────────────────────────────────


def ig_message(sender: str, content: str | None = None, when: datetime | None = None, **extra) -> dict:
    when = when or BASE_TIME
    message = {"sender_name": sender, "timestamp_ms": int(when.timestamp() * 1000)}
    if content is not None:
        message["content"] = content
    message.update(extra)
    return message


def instagram_export(participants: list[str], messages: list[dict], as_bytes: bool = True):
    """Instagram stores messages newest first."""
    ordered = sorted(messages, key=lambda m: m["timestamp_ms"], reverse=True)
    export = {
        "participants": [{"name": p} for p in participants],
        "messages": ordered,
        "title": " & ".join(participants),
    }
    return json.dumps(export).encode("utf-8") if as_bytes else export


# ── Normalized messages ──────────────────────


def make_messages(count: int, senders=("Alice", "Bob"), step_minutes: float = 2.0) -> list[NormalizedMessage]:
    """Alternating conversation, ``step_minutes`` apart."""
    return [
        NormalizedMessage(
            sender=senders[i % len(senders)],
            text=f"message number {i}",
            date=(BASE_TIME + timedelta(minutes=i * step_minutes)).isoformat(),
        )
        for i in range(count)
    ]


# ── Fakes ────────────────────────────────────


class FakeEmbedder(EmbeddingClient):
    """Deterministic bag-of-words hashing embedder.

    Texts sharing words get similar vectors, so rankings are predictable.
    """

    DIMENSIONS = 32

    def __init__(self, dimensions: int = DIMENSIONS):
        super().__init__(dimensions)
        self.calls: list[str] = []

    def _embed(self, text: str):
        self.calls.append(text)
        vector = np.zeros(self.dimensions, dtype=np.float32)
        vector[0] = 0.01  # never all-zero
        for token in text.lower().split():
            digest = hashlib.md5(token.encode("utf-8")).digest()
            vector[1 + digest[0] % (self.dimensions - 1)] += 1.0
        return vector


class FailingEmbedder(EmbeddingClient):
    """Raises for every call, or only for texts containing ``needle``."""

    def __init__(self, needle: str | None = None, dimensions: int = FakeEmbedder.DIMENSIONS):
        super().__init__(dimensions)
        self.needle = needle
        self.inner = FakeEmbedder(dimensions)

    def _embed(self, text: str):
        if self.needle is None or self.needle in text:
            raise ConnectionError("embedding service unavailable")
        return self.inner._embed(text)


class FakeChatClient:
    """Stands in for an OpenAI client; records chat.completions.create calls."""

    def __init__(self, content: str = "ok"):
        self.content = content
        self.calls: list[dict] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])
