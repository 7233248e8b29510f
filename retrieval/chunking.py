#!/usr/bin/env python3
"""
Message chunking for embedding

Splits a normalized message stream into fixed-size, overlapping windows.
Each window is rendered as one text block prefixed with a header naming
everyone in the conversation, so a chunk retrieved on its own still says
who was talking.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from parsers.universal_format import NormalizedMessage

DEFAULT_CHUNK_SIZE = 7
DEFAULT_OVERLAP = 2
MIXED_SENDER = "mixed"


@dataclass(frozen=True)
class MessageChunk:
    """A contiguous span of messages rendered for embedding"""

    content: str
    sender: str  # single author, or "mixed"
    start_timestamp: Optional[datetime]
    end_timestamp: Optional[datetime]
    message_count: int
    chunk_index: int

    def to_payload(self) -> Dict[str, Any]:
        """Vector-store payload (everything except the owning analysis)"""
        return {
            "content": self.content,
            "sender": self.sender,
            "start_timestamp": self.start_timestamp.isoformat() if self.start_timestamp else None,
            "end_timestamp": self.end_timestamp.isoformat() if self.end_timestamp else None,
            "message_count": self.message_count,
            "chunk_index": self.chunk_index,
        }


def _parse_date(value: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def conversation_header(messages: Sequence[NormalizedMessage]) -> str:
    participants = list(dict.fromkeys(m.sender for m in messages))
    return f"[Conversation between {' and '.join(participants)}]"


def format_message(message: NormalizedMessage) -> str:
    return f"[{message.date}] {message.sender}: {message.text}"


def chunk_messages(
    messages: Sequence[NormalizedMessage],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
) -> List[MessageChunk]:
    """
    Slide a window of ``chunk_size`` messages forward by
    ``chunk_size - overlap`` and emit one chunk per window.

    Args:
        messages: Normalized messages in chronological order
        chunk_size: Messages per chunk
        overlap: Messages shared between consecutive chunks

    Returns:
        Chunks with sequential zero-based ``chunk_index``; empty for no input

    Raises:
        ValueError: If chunk_size is not positive or overlap is outside
            [0, chunk_size)
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError(
            f"overlap must be between 0 and chunk_size - 1, got {overlap} (chunk_size={chunk_size})"
        )

    if not messages:
        return []

    stride = chunk_size - overlap
    header = conversation_header(messages)
    chunks: List[MessageChunk] = []

    for start in range(0, len(messages), stride):
        window = messages[start:start + chunk_size]
        senders = set(m.sender for m in window)
        content = header + "\n" + "\n".join(format_message(m) for m in window)

        chunks.append(MessageChunk(
            content=content,
            sender=window[0].sender if len(senders) == 1 else MIXED_SENDER,
            start_timestamp=_parse_date(window[0].date),
            end_timestamp=_parse_date(window[-1].date),
            message_count=len(window),
            chunk_index=len(chunks),
        ))

    return chunks
