"""Tests for message chunking."""

from __future__ import annotations

import math

import pytest

from helpers import make_messages
from parsers.universal_format import NormalizedMessage
from retrieval.chunking import MIXED_SENDER, chunk_messages, conversation_header, format_message


class TestChunkWindows:
    def test_windows_for_twenty_five_messages(self):
        messages = make_messages(25)
        chunks = chunk_messages(messages, chunk_size=10, overlap=2)

        assert [c.chunk_index for c in chunks] == [0, 1, 2, 3]
        assert [c.message_count for c in chunks] == [10, 10, 9, 1]
        assert chunks[1].start_timestamp.isoformat() == messages[8].date
        assert chunks[3].start_timestamp.isoformat() == messages[24].date

    @pytest.mark.parametrize("count,size,overlap", [(1, 7, 2), (7, 7, 2), (8, 7, 2), (50, 7, 0), (13, 4, 3)])
    def test_chunk_count(self, count, size, overlap):
        chunks = chunk_messages(make_messages(count), chunk_size=size, overlap=overlap)
        assert len(chunks) == math.ceil(count / (size - overlap))

    def test_every_message_is_covered(self):
        messages = make_messages(23)
        chunks = chunk_messages(messages, chunk_size=7, overlap=2)

        for message in messages:
            assert any(format_message(message) in c.content for c in chunks)

    def test_empty_input(self):
        assert chunk_messages([]) == []

    @pytest.mark.parametrize("size,overlap", [(0, 0), (-1, 0), (5, 5), (5, 7), (5, -1)])
    def test_invalid_parameters(self, size, overlap):
        with pytest.raises(ValueError):
            chunk_messages(make_messages(3), chunk_size=size, overlap=overlap)

    def test_deterministic(self):
        messages = make_messages(30)
        assert chunk_messages(messages) == chunk_messages(messages)


class TestChunkContent:
    def test_header_names_every_participant(self):
        messages = make_messages(9, senders=("Alice", "Bob", "Carol"))
        chunks = chunk_messages(messages, chunk_size=2, overlap=0)

        for chunk in chunks:
            assert chunk.content.startswith("[Conversation between Alice and Bob and Carol]\n")

    def test_line_format(self):
        message = NormalizedMessage(sender="Alice", text="hi", date="2023-01-01T10:00:00")
        assert format_message(message) == "[2023-01-01T10:00:00] Alice: hi"
        assert conversation_header([message]) == "[Conversation between Alice]"

    def test_sender_is_single_author_or_mixed(self):
        messages = [
            NormalizedMessage(sender="Alice", text="a", date="2023-01-01T10:00:00"),
            NormalizedMessage(sender="Alice", text="b", date="2023-01-01T10:01:00"),
            NormalizedMessage(sender="Bob", text="c", date="2023-01-01T10:02:00"),
        ]
        chunks = chunk_messages(messages, chunk_size=2, overlap=0)

        assert chunks[0].sender == "Alice"
        assert chunks[1].sender == "Bob"
        assert chunk_messages(messages, chunk_size=3, overlap=0)[0].sender == MIXED_SENDER

    def test_timestamps_and_payload(self):
        messages = make_messages(4)
        chunk = chunk_messages(messages, chunk_size=4, overlap=1)[0]
        payload = chunk.to_payload()

        assert payload["start_timestamp"] == messages[0].date
        assert payload["end_timestamp"] == messages[3].date
        assert payload["message_count"] == 4

    def test_missing_dates_give_no_timestamps(self):
        chunk = chunk_messages([NormalizedMessage(sender="Alice", text="hi", date="")])[0]

        assert chunk.start_timestamp is None
        assert chunk.to_payload()["end_timestamp"] is None
