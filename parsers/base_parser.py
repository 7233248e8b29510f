#!/usr/bin/env python3
"""
Base Parser Interface
All platform parsers inherit from this
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .aggregator import aggregate, recent_text_messages
from .chat_stats import ChatStats
from .system_messages import SystemMessageClassifier
from .universal_format import ChatRecord, ParseResult, Platform

logger = logging.getLogger(__name__)

# Maximum export size to load (500 MB default, adjustable)
MAX_FILE_SIZE_MB = 500

# Callable taking (stats, sample_messages) and returning camelCase insight fields
InsightsAugmenter = Callable[[ChatStats, List[Dict[str, str]]], Dict[str, Any]]

# Per-record failures that are skipped rather than propagated
RECORD_ERRORS = (ValueError, TypeError, KeyError, AttributeError, OverflowError)


class UnsupportedPlatformError(ValueError):
    """Raised when no parser is registered for a platform"""


def decode_text(data: Union[bytes, str], max_size_mb: int = MAX_FILE_SIZE_MB) -> str:
    """
    Decode raw export bytes with size validation to prevent memory exhaustion.

    Args:
        data: Raw export content
        max_size_mb: Maximum size in MB (default: 500 MB)

    Returns:
        Decoded text

    Raises:
        ValueError: If the content is too large
    """
    size_mb = len(data) / (1024 * 1024)
    if size_mb > max_size_mb:
        raise ValueError(
            f"Export is too large ({size_mb:.1f} MB). "
            f"Maximum allowed: {max_size_mb} MB."
        )

    if isinstance(data, str):
        return data
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def safe_load_json(data: Union[bytes, str, dict, list], max_size_mb: int = MAX_FILE_SIZE_MB) -> Any:
    """
    Decode and parse JSON export content.

    Already-parsed objects are returned unchanged.

    Raises:
        ValueError: If the content is too large, is not valid JSON or is
            nested too deeply to decode
    """
    if isinstance(data, (dict, list)):
        return data
    text = decode_text(data, max_size_mb)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON export: {e}")
    except RecursionError:
        raise ValueError("Invalid JSON export: nesting too deep")


def coerce_datetime(value: Any) -> Optional[datetime]:
    """
    Convert an export timestamp into a naive datetime.

    Accepts ISO-8601 strings (with or without offset / trailing Z) and
    Unix epochs in seconds or milliseconds. Offset-aware values are
    converted to UTC. Returns None for empty values.

    Raises:
        ValueError: If the value is present but cannot be interpreted
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value > 10 ** 11 else value
        parsed = datetime.fromtimestamp(seconds, tz=timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return coerce_datetime(int(text))
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Unsupported timestamp value: {value!r}")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class BaseChatParser(ABC):
    """
    Abstract base class for all chat platform parsers

    Each platform implements a thin adapter: how to find the raw message
    list in a loaded export and how to turn one raw message into a
    ChatRecord. Everything else (statistics, normalization, insights) is
    shared.
    """

    system_phrases: Iterable[str] = ()

    def __init__(self, platform: Platform, classifier: Optional[SystemMessageClassifier] = None):
        self.platform = platform
        self.classifier = classifier or SystemMessageClassifier(self.system_phrases)

    @property
    def platform_name(self) -> str:
        return self.platform.value

    @abstractmethod
    def load(self, raw: Any) -> Any:
        """Decode raw export content into the platform's native structure"""
        pass

    @abstractmethod
    def raw_messages(self, data: Any) -> Optional[List[Any]]:
        """
        Return the export's raw messages in chronological order

        Returns None when the export has no usable message list.
        """
        pass

    @abstractmethod
    def to_record(self, raw_message: Any) -> Optional[ChatRecord]:
        """Convert one raw message; None when it has no resolvable sender"""
        pass

    @abstractmethod
    def _validate_data_structure(self, data: Any) -> bool:
        """Platform-specific validation logic"""
        pass

    def validate(self, raw: Any) -> bool:
        """
        Check whether raw content looks like this platform's export

        Returns:
            True if format is valid, False otherwise
        """
        try:
            return self._validate_data_structure(self.load(raw))
        except Exception:
            return False

    def safe_datetime(self, value: Any) -> Optional[datetime]:
        """coerce_datetime that logs and drops malformed timestamps"""
        try:
            return coerce_datetime(value)
        except RECORD_ERRORS as e:
            logger.debug("Ignoring malformed %s timestamp %r: %s", self.platform_name, value, e)
            return None

    def iter_records(self, raw_messages: Iterable[Any]) -> Iterable[ChatRecord]:
        for index, raw_message in enumerate(raw_messages):
            try:
                record = self.to_record(raw_message)
            except RECORD_ERRORS as e:
                logger.debug("Skipping malformed %s record #%d: %s", self.platform_name, index, e)
                continue
            if record is None:
                logger.debug("Skipping %s record #%d without sender", self.platform_name, index)
                continue
            yield record

    def parse(self, raw: Any, augmenter: Optional[InsightsAugmenter] = None) -> ParseResult:
        """
        Parse an export into statistics plus the normalized message list

        Never raises on malformed content: unreadable exports and exports
        without a message list produce zero-valued stats.
        """
        try:
            data = self.load(raw)
            messages = self.raw_messages(data)
        except RECORD_ERRORS as e:
            logger.warning("Unreadable %s export: %s", self.platform_name, e)
            messages = None

        if messages is None:
            logger.warning("Invalid %s chat data format, returning empty stats", self.platform_name)
            return ParseResult(stats=ChatStats.empty(self.platform_name), messages=[])

        records = list(self.iter_records(messages))
        stats = aggregate(self.platform_name, records)

        if augmenter is not None:
            stats = self._augment(stats, records, augmenter)

        normalized = [r.to_normalized() for r in records if r.text and not r.is_system]
        return ParseResult(stats=stats, messages=normalized)

    def _augment(self, stats: ChatStats, records: List[ChatRecord], augmenter: InsightsAugmenter) -> ChatStats:
        try:
            insights = augmenter(stats, recent_text_messages(records))
        except Exception as e:
            logger.warning("Insights generation failed for %s chat: %s", self.platform_name, e)
            return stats
        return stats.with_insights(insights or {})


class ParserRegistry:
    """
    Registry for all available parsers
    Automatically detects which parser to use for a given export
    """

    def __init__(self):
        self.parsers: Dict[str, BaseChatParser] = {}

    def register_parser(self, parser: BaseChatParser):
        self.parsers[parser.platform_name] = parser

    def get(self, platform: Union[str, Platform]) -> BaseChatParser:
        """
        Look up the parser for a platform tag

        Raises:
            UnsupportedPlatformError: If no parser handles the platform
        """
        key = platform.value if isinstance(platform, Platform) else str(platform).lower()
        if key not in self.parsers:
            raise UnsupportedPlatformError(f"Unsupported platform: {platform}")
        return self.parsers[key]

    def detect_parser(self, raw: Any) -> BaseChatParser:
        """
        Automatically detect which parser to use for raw export content

        Raises:
            UnsupportedPlatformError: If no suitable parser found
        """
        for platform_name, parser in self.parsers.items():
            if parser.validate(raw):
                logger.info("Detected %s export format", platform_name)
                return parser
        raise UnsupportedPlatformError("No suitable parser found for export")

    def parse_export(
        self,
        raw: Any,
        platform: Optional[Union[str, Platform]] = None,
        augmenter: Optional[InsightsAugmenter] = None,
    ) -> ParseResult:
        parser = self.get(platform) if platform else self.detect_parser(raw)
        return parser.parse(raw, augmenter=augmenter)

    @property
    def platforms(self) -> List[str]:
        return list(self.parsers)


# Global parser registry instance
parser_registry = ParserRegistry()
