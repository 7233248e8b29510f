"""Tests for the WhatsApp text export parser."""

from __future__ import annotations

from datetime import datetime

from helpers import wa_line, whatsapp_export
from parsers import WhatsAppParser
from parsers.whatsapp_parser import infer_day_first


def _parse(lines):
    return WhatsAppParser().parse(whatsapp_export(lines))


# ── Header formats ────────────────────────────


class TestWhatsAppHeaders:
    def test_android_format(self):
        result = _parse([
            wa_line(datetime(2021, 12, 31, 22, 15), "Alice", "happy new year"),
            wa_line(datetime(2021, 12, 31, 22, 17), "Bob", "you too"),
        ])

        assert result.stats.source == "whatsapp"
        assert result.stats.messages_by_user == {"Alice": 1, "Bob": 1}
        assert result.stats.total_words == 5
        assert result.messages[0].date == "2021-12-31T22:15:00"

    def test_ios_format_with_seconds_and_direction_marks(self):
        result = _parse([
            "\u200e" + wa_line(datetime(2022, 3, 14, 9, 5, 30), "Alice", "pi day", style="ios"),
            wa_line(datetime(2022, 3, 14, 9, 6, 0), "Bob", "nerd", style="ios"),
        ])

        assert result.stats.total_messages == 2
        assert result.messages[0].date == "2022-03-14T09:05:30"

    def test_month_first_twelve_hour_clock(self):
        result = _parse([
            "12/31/21, 10:15 PM - Alice: late night",
            "1/1/22, 12:30 AM - Bob: still up",
        ])

        assert result.messages[0].date == "2021-12-31T22:15:00"
        assert result.messages[1].date == "2022-01-01T00:30:00"

    def test_ambiguous_dates_default_to_day_first_for_24h_clock(self):
        result = _parse(["01/02/2022, 09:05 - Alice: hi"])
        assert result.messages[0].date == "2022-02-01T09:05:00"

    def test_ambiguous_dates_default_to_month_first_for_12h_clock(self):
        result = _parse(["01/02/22, 9:05 AM - Alice: hi"])
        assert result.messages[0].date == "2022-01-02T09:05:00"

    def test_day_first_inferred_from_whole_file(self):
        entries = [
            {"first": 3, "second": 4, "meridiem": ""},
            {"first": 25, "second": 4, "meridiem": ""},
        ]
        assert infer_day_first(entries) is True
        assert infer_day_first([{"first": 4, "second": 25, "meridiem": ""}]) is False


# ── Message bodies ────────────────────────────


class TestWhatsAppBodies:
    def test_continuation_lines_join_previous_message(self):
        result = _parse([
            wa_line(datetime(2022, 5, 1, 10, 0), "Alice", "line one"),
            "line two",
            wa_line(datetime(2022, 5, 1, 10, 1), "Bob", "ok"),
        ])

        assert result.messages[0].text == "line one\nline two"
        assert result.stats.words_by_user["Alice"] == 4

    def test_header_without_sender_is_skipped(self):
        result = _parse([
            wa_line(datetime(2022, 5, 1, 9, 0), None, "Messages and calls are end-to-end encrypted. Tap to learn more."),
            wa_line(datetime(2022, 5, 1, 10, 0), "Alice", "hello"),
        ])

        assert result.stats.total_messages == 1
        assert list(result.stats.messages_by_user) == ["Alice"]

    def test_senderless_notice_with_colon_is_skipped(self):
        result = _parse([
            wa_line(datetime(2022, 5, 1, 9, 0), None, 'Alice changed the subject to "plans: june"'),
            wa_line(datetime(2022, 5, 1, 10, 0), "Bob", "nice: very nice"),
            wa_line(datetime(2022, 5, 1, 10, 1), "Carol", "I changed the subject to lunch"),
        ])

        assert result.stats.messages_by_user == {"Bob": 1, "Carol": 1}
        assert [m.sender for m in result.messages] == ["Bob"]

    def test_deleted_message_is_system(self):
        result = _parse([
            wa_line(datetime(2022, 5, 1, 10, 0), "Alice", "This message was deleted"),
            wa_line(datetime(2022, 5, 1, 10, 1), "Bob", "what was that"),
        ])

        assert result.stats.total_messages == 2
        assert result.stats.words_by_user == {"Bob": 3}
        assert [m.sender for m in result.messages] == ["Bob"]

    def test_edited_marker_is_stripped(self):
        result = _parse([wa_line(datetime(2022, 5, 1, 10, 0), "Alice", "hello <This message was edited>")])

        assert result.messages[0].text == "hello"
        assert result.stats.edited_messages == {"total": 1, "byUser": {"Alice": 1}}


# ── Media ─────────────────────────────────────


class TestWhatsAppMedia:
    def test_placeholders_and_links(self):
        day = datetime(2022, 5, 1, 10, 0)
        result = _parse([
            wa_line(day.replace(minute=0), "Alice", "<Media omitted>"),
            wa_line(day.replace(minute=1), "Bob", "IMG-20220501-WA0001.jpg (file attached)"),
            wa_line(day.replace(minute=2), "Alice", "image omitted"),
            wa_line(day.replace(minute=3), "Bob", "video omitted"),
            wa_line(day.replace(minute=4), "Alice", "sticker omitted"),
            wa_line(day.replace(minute=5), "Bob", "see https://example.com"),
        ])
        media = result.stats.media_stats

        assert media["total"] == 6
        assert media["byType"] == {
            "images": 2, "videos": 1, "documents": 1,
            "stickers": 1, "animations": 0, "links": 1,
        }
        # placeholders are not words; the link message keeps its text
        assert result.stats.total_words == 2
        assert [m.text for m in result.messages] == ["see https://example.com"]

    def test_ios_attachment_placeholder(self):
        result = _parse([
            wa_line(datetime(2022, 5, 1, 10, 0), "Alice", "<attached: 00000012-PHOTO-2022-05-01-10-00-00.jpg>", style="ios"),
        ])
        assert result.stats.media_stats["byType"]["images"] == 1
        assert result.messages == []


# ── Malformed input ───────────────────────────


class TestWhatsAppMalformed:
    def test_text_without_headers_returns_empty_stats(self):
        result = WhatsAppParser().parse(b"just some text\nwith no timestamps\n")
        assert result.stats.total_messages == 0
        assert result.messages == []

    def test_impossible_date_keeps_message_without_timestamp(self):
        result = _parse(["31/02/2022, 10:00 - Alice: hi", "01/03/2022, 10:00 - Bob: hey"])

        assert result.stats.total_messages == 2
        assert result.messages[0].date == ""
        assert sum(result.stats.messages_by_hour.values()) == 1

    def test_latin1_bytes_are_decoded(self):
        raw = "01/03/2022, 10:00 - José: olá".encode("latin-1")
        result = WhatsAppParser().parse(raw)
        assert result.messages[0].sender == "José"

    def test_validate(self):
        parser = WhatsAppParser()
        assert parser.validate(whatsapp_export([wa_line(datetime(2022, 5, 1, 10, 0), "Alice", "hi")]))
        assert not parser.validate(b'{"messages": []}')
