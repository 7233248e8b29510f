"""Tests for the AI insights augmenter."""

from __future__ import annotations

import json

import pytest

from config.settings import Settings
from helpers import FakeChatClient, tg_message, telegram_export
from insights.augmenter import OpenAIInsightsAugmenter, build_augmenter, parse_insights, render_sample
from parsers import TelegramParser

VALID_RESPONSE = {
    "aiSummary": "Two friends planning lunch.",
    "relationshipHealthScore": {
        "overall": 82,
        "details": {"balance": 80, "engagement": 85, "positivity": 90, "consistency": 70},
        "redFlags": [],
    },
    "interestPercentage": {"Alice": {"score": 70, "details": "asks questions"}},
    "cookedStatus": {"isCooked": False, "user": "Alice", "confidence": 40},
    "attachmentStyles": {"Alice": {"primaryStyle": "secure", "details": "steady"}},
    "matchPercentage": {"score": 75, "details": "good match"},
    "somethingElse": "ignored",
}


class TestParseInsights:
    def test_valid_response(self):
        insights = parse_insights(json.dumps(VALID_RESPONSE))

        assert insights["aiSummary"] == "Two friends planning lunch."
        assert insights["relationshipHealthScore"]["overall"] == 82
        assert insights["interestPercentage"]["Alice"]["details"] == "asks questions"
        assert "somethingElse" not in insights

    def test_partial_response_keeps_present_fields(self):
        assert parse_insights('{"aiSummary": "short"}') == {"aiSummary": "short"}

    def test_invalid_json(self):
        with pytest.raises(ValueError):
            parse_insights("not json")

    def test_fractional_scores_are_rounded(self):
        insights = parse_insights(json.dumps({
            "relationshipHealthScore": {"overall": 82.6, "details": {"balance": 79.8}},
            "interestPercentage": {"Alice": {"score": 70.2}},
            "cookedStatus": {"isCooked": True, "user": "Bob", "confidence": 40.4},
            "matchPercentage": {"score": 72.5},
        }))

        assert insights["relationshipHealthScore"]["overall"] == 83
        assert insights["relationshipHealthScore"]["details"]["balance"] == 80
        assert insights["interestPercentage"]["Alice"]["score"] == 70
        assert insights["cookedStatus"]["confidence"] == 40
        assert insights["matchPercentage"]["score"] in (72, 73)

    def test_out_of_range_score(self):
        with pytest.raises(ValueError):
            parse_insights('{"matchPercentage": {"score": 140}}')


class TestOpenAIInsightsAugmenter:
    def test_call_uses_json_mode_and_merges(self):
        client = FakeChatClient(json.dumps(VALID_RESPONSE))
        augmenter = OpenAIInsightsAugmenter(client=client, model="test-model")
        export = telegram_export([tg_message(1, "Alice", "lunch?"), tg_message(2, "Bob", "sure")])

        stats = TelegramParser().parse(export, augmenter=augmenter).stats

        call = client.calls[0]
        assert call["response_format"] == {"type": "json_object"}
        assert "Alice: lunch?" in call["messages"][0]["content"]
        assert stats.ai_summary == "Two friends planning lunch."
        assert stats.match_percentage["score"] == 75

    def test_bad_model_output_leaves_stats_untouched(self):
        augmenter = OpenAIInsightsAugmenter(client=FakeChatClient("oops"))
        stats = TelegramParser().parse(telegram_export([tg_message(1, "Alice", "hi")]), augmenter=augmenter).stats

        assert stats.total_messages == 1
        assert stats.ai_summary is None

    def test_render_sample_truncates(self):
        text = render_sample([{"from": "Alice", "text": "x" * 500}])
        assert text == "Alice: " + "x" * 300


class TestBuildAugmenter:
    def test_disabled(self):
        assert build_augmenter(Settings(insights_enabled=False, openai_api_key="sk-test")) is None

    def test_no_key(self):
        assert build_augmenter(Settings(insights_enabled=True, openai_api_key=None)) is None
