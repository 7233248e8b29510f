#!/usr/bin/env python3
"""
Parser Package Initialization
Auto-registers all available parsers
"""

from typing import Any, Iterable, Optional

from .universal_format import ChatRecord, MediaKind, NormalizedMessage, ParseResult, Platform
from .chat_stats import ChatStats
from .system_messages import SystemMessageClassifier
from .base_parser import (
    BaseChatParser,
    InsightsAugmenter,
    ParserRegistry,
    UnsupportedPlatformError,
    parser_registry,
)
from .telegram_parser import TelegramParser
from .whatsapp_parser import WhatsAppParser
from .instagram_parser import InstagramParser

PARSER_CLASSES = (TelegramParser, WhatsAppParser, InstagramParser)


def build_registry(extra_system_phrases: Iterable[str] = ()) -> ParserRegistry:
    """
    Create a registry with every platform parser

    Args:
        extra_system_phrases: Additional service-message phrases (e.g. for
            non-English exports) appended to each platform's list

    Returns:
        ParserRegistry with Telegram, WhatsApp and Instagram registered
    """
    extra = tuple(extra_system_phrases)
    registry = ParserRegistry()
    for parser_class in PARSER_CLASSES:
        classifier = SystemMessageClassifier(parser_class.system_phrases).extend(extra)
        registry.register_parser(parser_class(classifier))
    return registry


# Auto-register all parsers
for _parser_class in PARSER_CLASSES:
    parser_registry.register_parser(_parser_class())


# Convenience functions
def load_raw(data: Any, platform: str) -> Any:
    """
    Decode raw export bytes into the platform's native structure

    Raises:
        UnsupportedPlatformError: If the platform is unknown
        ValueError: If the content is too large or is not valid JSON
    """
    return parser_registry.get(platform).load(data)


def parse_export(
    raw: Any,
    platform: Optional[str] = None,
    augmenter: Optional[InsightsAugmenter] = None,
) -> ParseResult:
    """
    Parse any supported chat export

    Args:
        raw: Export content (bytes, text, or already-decoded JSON)
        platform: Platform tag; detected from the content when omitted
        augmenter: Optional insights callable

    Returns:
        ParseResult with stats and normalized messages
    """
    return parser_registry.parse_export(raw, platform=platform, augmenter=augmenter)


__all__ = [
    'ChatRecord',
    'ChatStats',
    'MediaKind',
    'NormalizedMessage',
    'ParseResult',
    'Platform',
    'SystemMessageClassifier',
    'BaseChatParser',
    'InsightsAugmenter',
    'ParserRegistry',
    'UnsupportedPlatformError',
    'TelegramParser',
    'WhatsAppParser',
    'InstagramParser',
    'build_registry',
    'load_raw',
    'parser_registry',
    'parse_export',
]
