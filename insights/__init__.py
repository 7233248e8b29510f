from .augmenter import OpenAIInsightsAugmenter, build_augmenter, parse_insights

__all__ = ["OpenAIInsightsAugmenter", "build_augmenter", "parse_insights"]
