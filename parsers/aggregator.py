#!/usr/bin/env python3
"""
Statistics aggregation engine

A single reducer shared by every platform parser. Adapters feed it
ChatRecords in chronological order; ``finalize`` runs the post-pass
derivations (rankings, response times, gaps, apologies) and returns an
immutable ChatStats.
"""

import logging
import re
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

import emoji

from .chat_stats import (
    WEEKDAYS,
    ChatStats,
    empty_media_breakdown,
    empty_response_times,
)
from .universal_format import ChatRecord

logger = logging.getLogger(__name__)

APOLOGY_PHRASES = ("sorry", "apolog", "regret", "forgive", "my bad", "my fault")

_SINGLE_DIGIT = re.compile(r"^\d$")
_SINGLE_LETTER = re.compile(r"^[a-zA-Z]$")
_BASIC_PUNCTUATION = re.compile(r"^[.,!?;:\-_'\"()\[\]{}]$")
_NON_WORD = re.compile(r"[^\w\s]")

TOP_N = 10
LONGEST_KEPT = 3
MIN_RANKED_WORD_LENGTH = 3

# Gaps of a day or more are conversation restarts, not responses
GAP_CUTOFF_MINUTES = 24 * 60


def is_apology(text: str) -> bool:
    lowered = text.lower()
    return any(phrase in lowered for phrase in APOLOGY_PHRASES)


def clean_token(token: str) -> str:
    return _NON_WORD.sub("", token.lower())


def is_plain_character(value: str) -> bool:
    """True for single digits, letters and basic punctuation"""
    return bool(
        _SINGLE_DIGIT.match(value)
        or _SINGLE_LETTER.match(value)
        or _BASIC_PUNCTUATION.match(value)
    )


def extract_emojis(text: str) -> List[str]:
    """Whole emoji sequences (flags, skin tones, ZWJ families) in text order"""
    found = (match["emoji"] for match in emoji.emoji_list(text))
    return [symbol for symbol in found if not is_plain_character(symbol)]


def response_bucket(minutes: float) -> str:
    if minutes <= 5:
        return "0-5min"
    if minutes <= 15:
        return "5-15min"
    if minutes <= 30:
        return "15-30min"
    if minutes <= 60:
        return "30min-1hour"
    return "1hour+"


def month_label(month_key: str) -> str:
    """'2023-01' -> 'Jan 2023'"""
    return datetime.strptime(month_key, "%Y-%m").strftime("%b %Y")


def display_date(timestamp: Optional[datetime]) -> str:
    if timestamp is None:
        return "Unknown date"
    return f"{timestamp.month}/{timestamp.day}/{timestamp.year}"


def _top(counter: Dict[str, int], label: str, keep) -> List[Dict[str, Any]]:
    # sorted() is stable, so ties keep first-seen order
    ranked = sorted(
        ((key, count) for key, count in counter.items() if keep(key)),
        key=lambda item: item[1],
        reverse=True,
    )
    return [{label: key, "count": count} for key, count in ranked[:TOP_N]]


class StatsAggregator:
    """
    Streaming reducer over ChatRecords

    ``add`` is called once per record in chronological order; ``finalize``
    may be called once at the end.
    """

    def __init__(self, source: str):
        self.source = source
        self._records: List[ChatRecord] = []

        self.total_messages = 0
        self.total_words = 0
        self.messages_by_user: Dict[str, int] = defaultdict(int)
        self.words_by_user: Dict[str, int] = defaultdict(int)
        self.word_frequency: Dict[str, int] = defaultdict(int)
        self.word_frequency_by_user: Dict[str, Dict[str, int]] = {}
        self.emoji_frequency: Dict[str, int] = defaultdict(int)
        self.emoji_by_user: Dict[str, Dict[str, int]] = {}
        self.media = empty_media_breakdown()
        self.media_by_user: Dict[str, Dict[str, Any]] = {}
        self.edited_total = 0
        self.edited_by_user: Dict[str, int] = defaultdict(int)
        self.longest_messages: Dict[str, List[Dict[str, Any]]] = {}
        self.sorry_by_user: Dict[str, int] = defaultdict(int)

        self.messages_by_hour = {str(hour): 0 for hour in range(24)}
        self.messages_by_day = {day: 0 for day in WEEKDAYS}
        self.messages_by_month_key: Dict[str, int] = defaultdict(int)

    # ------------------------------------------------------------------
    # Single forward pass
    # ------------------------------------------------------------------

    def add(self, record: ChatRecord) -> None:
        user = record.sender
        self._records.append(record)

        self.total_messages += 1
        self.messages_by_user[user] += 1

        if record.timestamp is not None:
            self._count_activity(record.timestamp)

        if record.text and not record.is_system:
            self._count_text(user, record.text, record.timestamp)

        for actor, symbol in record.extra_emojis:
            self._count_emoji(actor, symbol)

        if record.is_edited:
            self.edited_total += 1
            self.edited_by_user[user] += 1

        if record.media_kind is not None:
            self._count_media(user, record.media_kind.value, record.media_size)

    def _count_activity(self, timestamp: datetime) -> None:
        self.messages_by_hour[str(timestamp.hour)] += 1
        # datetime.weekday() is Monday-based, WEEKDAYS is Sunday-based
        self.messages_by_day[WEEKDAYS[(timestamp.weekday() + 1) % 7]] += 1
        self.messages_by_month_key[f"{timestamp.year:04d}-{timestamp.month:02d}"] += 1

    def _count_text(self, user: str, text: str, timestamp: Optional[datetime]) -> None:
        if is_apology(text):
            self.sorry_by_user[user] += 1

        words = text.split()
        if words:
            self.total_words += len(words)
            self.words_by_user[user] += len(words)
            self._track_longest(user, text, len(words), timestamp)

        user_frequency = self.word_frequency_by_user.setdefault(user, {})
        for word in words:
            cleaned = clean_token(word)
            if cleaned:
                self.word_frequency[cleaned] += 1
                user_frequency[cleaned] = user_frequency.get(cleaned, 0) + 1

        for symbol in extract_emojis(text):
            self._count_emoji(user, symbol)

    def _track_longest(self, user: str, text: str, length: int, timestamp: Optional[datetime]) -> None:
        kept = self.longest_messages.setdefault(user, [])
        kept.append({"text": text, "length": length, "date": display_date(timestamp)})
        kept.sort(key=lambda m: m["length"], reverse=True)
        del kept[LONGEST_KEPT:]

    def _count_emoji(self, user: str, symbol: Any) -> None:
        if not isinstance(symbol, str) or not symbol or is_plain_character(symbol):
            return
        self.emoji_frequency[symbol] += 1
        per_user = self.emoji_by_user.setdefault(user, {})
        per_user[symbol] = per_user.get(symbol, 0) + 1

    def _count_media(self, user: str, kind: str, size: int) -> None:
        per_user = self.media_by_user.setdefault(user, empty_media_breakdown())
        for bucket in (self.media, per_user):
            bucket["total"] += 1
            bucket["byType"][kind] += 1
            if size > 0:
                bucket["totalSize"] += size

    # ------------------------------------------------------------------
    # Post-pass derivations
    # ------------------------------------------------------------------

    def finalize(self) -> ChatStats:
        users = dict(self.messages_by_user)

        def owned(mapping: Dict[str, Any]) -> Dict[str, Any]:
            # Reaction actors who never sent a message are not participants
            return {user: value for user, value in mapping.items() if user in users}

        months = {
            month_label(key): self.messages_by_month_key[key]
            for key in sorted(self.messages_by_month_key)
        }

        emoji_frequency = dict(self.emoji_frequency)
        timing = self._response_pass(users)
        most_apologetic, equal_apologies = self._apology_leader()

        logger.info(
            "Aggregated %s chat: %d messages, %d words, %d participants",
            self.source, self.total_messages, self.total_words, len(users),
        )

        return ChatStats(
            source=self.source,
            total_messages=self.total_messages,
            messages_by_user=users,
            total_words=self.total_words,
            words_by_user=owned(dict(self.words_by_user)),
            most_used_words=_top(self.word_frequency, "word",
                                 lambda word: len(word) >= MIN_RANKED_WORD_LENGTH),
            most_used_emojis=_top(emoji_frequency, "emoji",
                                  lambda symbol: not is_plain_character(symbol)),
            word_frequency=dict(self.word_frequency),
            word_frequency_by_user=owned(self.word_frequency_by_user),
            emoji_frequency=emoji_frequency,
            emoji_stats={
                "frequency": dict(emoji_frequency),
                "byUser": owned(self.emoji_by_user),
                "combinations": [],
                "sentiment": {"positive": 0, "negative": 0, "neutral": 0},
            },
            media_stats={**self.media, "byUser": owned(self.media_by_user)},
            edited_messages={"total": self.edited_total, "byUser": owned(dict(self.edited_by_user))},
            response_times=timing["response_times"],
            gap_trends=timing["gap_trends"],
            gap_analysis=timing["gap_analysis"],
            biggest_gaps=timing["biggest_gaps"],
            longest_messages=owned(self.longest_messages),
            messages_by_hour=dict(self.messages_by_hour),
            messages_by_day=dict(self.messages_by_day),
            messages_by_month=months,
            sorry_by_user=owned(dict(self.sorry_by_user)),
            most_apologetic_user=most_apologetic,
            equal_apologies=equal_apologies,
        )

    def _response_pass(self, users: Dict[str, int]) -> Dict[str, Any]:
        """Second pass over adjacent records from different senders"""
        response_times = {user: empty_response_times() for user in users}
        samples: Dict[str, List[float]] = {user: [] for user in users}
        gap_analysis: Dict[str, List[Dict[str, Any]]] = {user: [] for user in users}
        gap_trends: List[Dict[str, Any]] = []
        biggest_gaps: List[Dict[str, Any]] = []

        for prev, curr in zip(self._records, self._records[1:]):
            if prev.timestamp is None or curr.timestamp is None or prev.sender == curr.sender:
                continue

            minutes = (curr.timestamp - prev.timestamp).total_seconds() / 60
            if minutes < 0 or minutes >= GAP_CUTOFF_MINUTES:
                continue

            user = curr.sender
            samples[user].append(minutes)
            response_times[user]["distribution"][response_bucket(minutes)] += 1

            gap = {"time": curr.timestamp.date().isoformat(), "duration": minutes}
            gap_analysis[user].append(gap)
            gap_trends.append(dict(gap))

            if len(biggest_gaps) < TOP_N or minutes > biggest_gaps[-1]["duration"]:
                biggest_gaps.append({"user": user, "duration": minutes, "date": curr.timestamp.isoformat()})
                biggest_gaps.sort(key=lambda g: g["duration"], reverse=True)
                del biggest_gaps[TOP_N:]

        for user, times in samples.items():
            if times:
                response_times[user]["average"] = sum(times) / len(times)
                response_times[user]["longest"] = max(times)

        return {
            "response_times": response_times,
            "gap_trends": gap_trends,
            "gap_analysis": gap_analysis,
            "biggest_gaps": biggest_gaps,
        }

    def _apology_leader(self):
        """Return (most_apologetic_user, equal_apologies)"""
        counts = {user: n for user, n in self.sorry_by_user.items() if n > 0}
        if not counts:
            return None, False

        ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
        top_user, top_count = ranked[0]
        if len(ranked) > 1 and ranked[1][1] == top_count:
            return None, True

        total = sum(counts.values())
        return {
            "user": top_user,
            "apologies": top_count,
            "percentage": int(top_count / total * 100 + 0.5),
            "mostCommonSorry": "sorry",
        }, False


def aggregate(source: str, records: Iterable[ChatRecord]) -> ChatStats:
    """Fold a chronological record stream into ChatStats"""
    aggregator = StatsAggregator(source)
    for record in records:
        aggregator.add(record)
    return aggregator.finalize()


def recent_text_messages(records: Sequence[ChatRecord], limit: int = 50) -> List[Dict[str, str]]:
    """The most recent text-bearing messages, as sample input for the insights augmenter"""
    texted = [r for r in records if r.text and not r.is_system]
    return [r.to_normalized().to_dict() for r in texted[-limit:]]
