#!/usr/bin/env python3
"""
ChatStats - the canonical aggregate for one analysis

Stored as a single JSON document per analysis. Field names are snake_case
in Python and camelCase in the persisted/served document, which is what
the dashboard consumes.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional

RESPONSE_BUCKETS = ("0-5min", "5-15min", "15-30min", "30min-1hour", "1hour+")
MEDIA_TYPES = ("images", "videos", "documents", "stickers", "animations", "links")
WEEKDAYS = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

NO_DATA_SUMMARY = "No data available for AI analysis."


def empty_media_breakdown() -> Dict[str, Any]:
    return {"total": 0, "byType": {kind: 0 for kind in MEDIA_TYPES}, "totalSize": 0}


def empty_response_times() -> Dict[str, Any]:
    return {
        "average": 0,
        "longest": 0,
        "distribution": {bucket: 0 for bucket in RESPONSE_BUCKETS},
    }


@dataclass(frozen=True)
class ChatStats:
    """
    Aggregate statistics for one chat export

    Instances are produced by the aggregation engine and never mutated;
    insight fields are merged in with ``with_insights`` which returns a
    new object.
    """

    source: str
    total_messages: int = 0
    messages_by_user: Dict[str, int] = field(default_factory=dict)
    total_words: int = 0
    words_by_user: Dict[str, int] = field(default_factory=dict)

    most_used_words: List[Dict[str, Any]] = field(default_factory=list)
    most_used_emojis: List[Dict[str, Any]] = field(default_factory=list)
    word_frequency: Dict[str, int] = field(default_factory=dict)
    word_frequency_by_user: Dict[str, Dict[str, int]] = field(default_factory=dict)
    emoji_frequency: Dict[str, int] = field(default_factory=dict)
    emoji_stats: Dict[str, Any] = field(default_factory=lambda: {
        "frequency": {},
        "byUser": {},
        "combinations": [],
        "sentiment": {"positive": 0, "negative": 0, "neutral": 0},
    })

    media_stats: Dict[str, Any] = field(default_factory=lambda: {**empty_media_breakdown(), "byUser": {}})
    edited_messages: Dict[str, Any] = field(default_factory=lambda: {"total": 0, "byUser": {}})

    response_times: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    gap_trends: List[Dict[str, Any]] = field(default_factory=list)
    gap_analysis: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    biggest_gaps: List[Dict[str, Any]] = field(default_factory=list)

    longest_messages: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    messages_by_hour: Dict[str, int] = field(default_factory=dict)
    messages_by_day: Dict[str, int] = field(default_factory=dict)
    messages_by_month: Dict[str, int] = field(default_factory=dict)

    sorry_by_user: Dict[str, int] = field(default_factory=dict)
    most_apologetic_user: Optional[Dict[str, Any]] = None
    equal_apologies: bool = False

    # Populated by the insights augmenter
    ai_summary: Optional[str] = None
    relationship_health_score: Optional[Dict[str, Any]] = None
    interest_percentage: Optional[Dict[str, Any]] = None
    cooked_status: Optional[Dict[str, Any]] = None
    attachment_styles: Optional[Dict[str, Any]] = None
    match_percentage: Optional[Dict[str, Any]] = None

    @classmethod
    def empty(cls, source: str) -> "ChatStats":
        """Zero-valued stats with explicit "no data" sentinels for insight fields"""
        return cls(
            source=source,
            messages_by_hour={str(hour): 0 for hour in range(24)},
            messages_by_day={day: 0 for day in WEEKDAYS},
            ai_summary=NO_DATA_SUMMARY,
            relationship_health_score={
                "overall": 0,
                "details": {"balance": 0, "engagement": 0, "positivity": 0, "consistency": 0},
                "redFlags": ["No data provided"],
            },
            interest_percentage={},
            cooked_status={"isCooked": False, "user": "Unknown", "confidence": 0},
        )

    def with_insights(self, insights: Dict[str, Any]) -> "ChatStats":
        """Return a copy with the given camelCase insight fields merged in"""
        updates = {
            INSIGHT_FIELDS[key]: value
            for key, value in insights.items()
            if key in INSIGHT_FIELDS and value is not None
        }
        return replace(self, **updates)

    @property
    def participants(self) -> List[str]:
        return list(self.messages_by_user)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the persisted camelCase document"""
        return {_camel(f.name): getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatStats":
        """Rebuild from a persisted document, ignoring unknown keys"""
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = _snake(key)
            if name in known:
                kwargs[name] = value
        kwargs.setdefault("source", "unknown")
        return cls(**kwargs)


INSIGHT_FIELDS = {
    "aiSummary": "ai_summary",
    "relationshipHealthScore": "relationship_health_score",
    "interestPercentage": "interest_percentage",
    "cookedStatus": "cooked_status",
    "attachmentStyles": "attachment_styles",
    "matchPercentage": "match_percentage",
}


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _snake(name: str) -> str:
    out = []
    for ch in name:
        if ch.isupper():
            out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out)
