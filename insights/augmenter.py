#!/usr/bin/env python3
"""
AI insights for analyzed chats

An augmenter is any callable ``(stats, sample_messages) -> dict`` whose
result uses the camelCase insight keys of ChatStats (aiSummary,
relationshipHealthScore, interestPercentage, cookedStatus,
attachmentStyles, matchPercentage). The parser merges the result back into
the statistics and ignores failures.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from parsers.chat_stats import ChatStats

logger = logging.getLogger(__name__)

SAMPLE_CHAR_LIMIT = 300

INSIGHTS_PROMPT = """You analyze chat conversations between people and score their dynamic.

You get aggregate statistics and a sample of the most recent messages.
Respond with a single JSON object with exactly these keys:

- "aiSummary": 2-4 sentences describing the relationship and how they talk
- "relationshipHealthScore": {{"overall": 0-100, "details": {{"balance": 0-100, "engagement": 0-100, "positivity": 0-100, "consistency": 0-100}}, "redFlags": [strings]}}
- "interestPercentage": {{"<participant>": {{"score": 0-100, "details": string}}}} for every participant
- "cookedStatus": {{"isCooked": true/false, "user": "<participant most invested>", "confidence": 0-100}}
- "attachmentStyles": {{"<participant>": {{"primaryStyle": "secure|anxious|avoidant|disorganized", "details": string}}}}
- "matchPercentage": {{"score": 0-100, "details": string}}

Statistics:
{stats}

Recent messages:
{messages}"""


def round_score(value: Any) -> Any:
    """Models sometimes answer 72.5 for a 0-100 score; keep the nearest whole point"""
    if isinstance(value, float):
        return round(value)
    return value


class HealthDetails(BaseModel):
    model_config = ConfigDict(extra="allow")

    balance: int = Field(0, ge=0, le=100)
    engagement: int = Field(0, ge=0, le=100)
    positivity: int = Field(0, ge=0, le=100)
    consistency: int = Field(0, ge=0, le=100)

    @field_validator("balance", "engagement", "positivity", "consistency", mode="before")
    @classmethod
    def round_details(cls, value: Any) -> Any:
        return round_score(value)


class RelationshipHealth(BaseModel):
    model_config = ConfigDict(extra="allow")

    overall: int = Field(..., ge=0, le=100, description="Overall health score")
    details: HealthDetails = Field(default_factory=HealthDetails)
    redFlags: List[str] = Field(default_factory=list)

    @field_validator("overall", mode="before")
    @classmethod
    def round_overall(cls, value: Any) -> Any:
        return round_score(value)


class ScoredEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    score: int = Field(..., ge=0, le=100)

    @field_validator("score", mode="before")
    @classmethod
    def round_entry_score(cls, value: Any) -> Any:
        return round_score(value)


class AttachmentStyle(BaseModel):
    model_config = ConfigDict(extra="allow")

    primaryStyle: str


class CookedStatus(BaseModel):
    model_config = ConfigDict(extra="allow")

    isCooked: bool
    user: str
    confidence: int = Field(0, ge=0, le=100)

    @field_validator("confidence", mode="before")
    @classmethod
    def round_confidence(cls, value: Any) -> Any:
        return round_score(value)


class InsightsPayload(BaseModel):
    """Validated insight fields as returned by the model"""
    model_config = ConfigDict(extra="ignore")

    aiSummary: Optional[str] = None
    relationshipHealthScore: Optional[RelationshipHealth] = None
    interestPercentage: Optional[Dict[str, ScoredEntry]] = None
    cookedStatus: Optional[CookedStatus] = None
    attachmentStyles: Optional[Dict[str, AttachmentStyle]] = None
    matchPercentage: Optional[ScoredEntry] = None


def stats_digest(stats: ChatStats) -> Dict[str, Any]:
    """The subset of statistics worth sending to the model"""
    return {
        "platform": stats.source,
        "totalMessages": stats.total_messages,
        "messagesByUser": stats.messages_by_user,
        "wordsByUser": stats.words_by_user,
        "mostUsedWords": stats.most_used_words,
        "mostUsedEmojis": stats.most_used_emojis,
        "responseTimes": {
            user: {"average": times["average"], "longest": times["longest"]}
            for user, times in stats.response_times.items()
        },
        "sorryByUser": stats.sorry_by_user,
        "editedMessages": stats.edited_messages,
    }


def render_sample(sample: List[Dict[str, str]]) -> str:
    return "\n".join(
        f"{m.get('from', '')}: {str(m.get('text', ''))[:SAMPLE_CHAR_LIMIT]}"
        for m in sample
    )


def parse_insights(content: str) -> Dict[str, Any]:
    """
    Validate a model response into ChatStats insight fields

    Raises:
        ValueError: If the response is not valid JSON or has the wrong shape
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ValueError(f"Insights response is not JSON: {e}")
    try:
        payload = InsightsPayload.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Insights response has unexpected shape: {e}")
    return payload.model_dump(exclude_none=True)


class OpenAIInsightsAugmenter:
    """
    Insights Augmenter backed by an OpenAI chat model in JSON mode

    Args:
        client: OpenAI-compatible client; created from api_key when omitted
        model: Chat model name
        api_key: OpenAI API key
    """

    def __init__(self, client: Any = None, model: str = "gpt-4o-mini", api_key: Optional[str] = None):
        if client is None:
            if not api_key:
                raise ValueError("OPENAI_API_KEY is required for AI insights")
            from openai import OpenAI

            client = OpenAI(api_key=api_key)
        self.client = client
        self.model = model

    def __call__(self, stats: ChatStats, sample: List[Dict[str, str]]) -> Dict[str, Any]:
        prompt = INSIGHTS_PROMPT.format(
            stats=json.dumps(stats_digest(stats), ensure_ascii=False),
            messages=render_sample(sample),
        )
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0.3,
            response_format={"type": "json_object"},
        )
        insights = parse_insights(response.choices[0].message.content or "{}")
        logger.info("Generated AI insights (%s)", ", ".join(sorted(insights)) or "none")
        return insights


def build_augmenter(settings) -> Optional[OpenAIInsightsAugmenter]:
    """Augmenter for the configured model, or None when insights are off"""
    if not settings.insights_enabled:
        return None
    if not settings.openai_api_key:
        logger.info("OPENAI_API_KEY not set, skipping AI insights")
        return None
    return OpenAIInsightsAugmenter(model=settings.insights_model, api_key=settings.openai_api_key)
