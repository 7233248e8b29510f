#!/usr/bin/env python3
"""
Analyze a chat export from the command line

This script:
1. Parses a Telegram / WhatsApp / Instagram export
2. Prints a statistics report
3. Optionally writes the stats document to JSON
4. Optionally indexes the messages for semantic search
"""

import argparse
import json
import sys
import uuid
from pathlib import Path
from typing import List, Optional

from config.settings import Settings, configure_logging
from parsers import build_registry
from parsers.chat_stats import ChatStats
from parsers.universal_format import ParseResult


def print_report(result: ParseResult) -> None:
    stats: ChatStats = result.stats

    print("=" * 70)
    print(f"{stats.source.upper()} CHAT ANALYSIS")
    print("=" * 70)

    print(f"\nMessages: {stats.total_messages}")
    print(f"Words: {stats.total_words}")
    print(f"Participants: {result.participant_count}")

    if stats.messages_by_user:
        print("\nMessages by user:")
        for user, count in sorted(stats.messages_by_user.items(), key=lambda kv: -kv[1]):
            words = stats.words_by_user.get(user, 0)
            print(f"  {user}: {count} messages, {words} words")

    if stats.response_times:
        print("\nResponse times (minutes):")
        for user, times in stats.response_times.items():
            print(f"  {user}: average {times['average']:.1f}, longest {times['longest']:.1f}")

    if stats.most_used_words:
        top = ", ".join(f"{w['word']} ({w['count']})" for w in stats.most_used_words[:5])
        print(f"\nTop words: {top}")
    if stats.most_used_emojis:
        top = " ".join(f"{e['emoji']} {e['count']}" for e in stats.most_used_emojis[:5])
        print(f"Top emojis: {top}")

    media = stats.media_stats
    if media["total"]:
        by_type = ", ".join(f"{k}: {v}" for k, v in media["byType"].items() if v)
        print(f"\nMedia: {media['total']} ({by_type})")

    if stats.most_apologetic_user:
        leader = stats.most_apologetic_user
        print(f"\nMost apologetic: {leader['user']} ({leader['apologies']} times)")
    elif stats.equal_apologies:
        print("\nApologies: a tie")

    if stats.ai_summary:
        print(f"\nAI summary: {stats.ai_summary}")


def analyze(
    export_path: str,
    platform: str,
    settings: Settings,
    index: bool = False,
    analysis_id: Optional[str] = None,
    json_out: Optional[str] = None,
    insights: bool = True,
) -> ParseResult:
    """Parse, report and optionally save/index one export"""
    registry = build_registry(settings.extra_system_phrases)
    parser = registry.get(platform)

    augmenter = None
    if insights:
        from insights.augmenter import build_augmenter
        augmenter = build_augmenter(settings)

    print(f"\n1. Parsing {export_path}...")
    raw = Path(export_path).read_bytes()
    result = parser.parse(raw, augmenter=augmenter)
    print(f"   ✅ Parsed {len(result.messages)} text messages")

    print_report(result)

    if json_out:
        output_path = Path(json_out)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps(result.stats.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
        print(f"\n   ✅ Saved stats to: {output_path}")

    if index:
        from retrieval.embedding import build_embedder
        from retrieval.indexer import Indexer
        from retrieval.vector_store import VectorStore, create_qdrant_client

        analysis_id = analysis_id or str(uuid.uuid4())
        print(f"\n2. Indexing messages for analysis {analysis_id}...")
        embedder = build_embedder(settings)
        store = VectorStore(
            create_qdrant_client(settings.qdrant_url, settings.qdrant_api_key),
            settings.collection_name,
            embedder.dimensions,
        )
        indexer = Indexer(
            embedder,
            store,
            chunk_size=settings.chunk_size,
            overlap=settings.chunk_overlap,
            concurrency=settings.embedding_concurrency,
            show_progress=True,
        )
        count = indexer.index(analysis_id, result.messages)
        print(f"   ✅ Stored {count} chunks in '{settings.collection_name}'")

    return result


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Analyze a Telegram, WhatsApp or Instagram chat export")
    parser.add_argument("export", help="Path to the export file")
    parser.add_argument(
        "--platform",
        required=True,
        choices=["telegram", "whatsapp", "instagram"],
        help="Export platform",
    )
    parser.add_argument("--index", action="store_true", help="Embed and store messages for search")
    parser.add_argument("--analysis-id", help="Analysis id to index under (default: random)")
    parser.add_argument("--json", dest="json_out", help="Write the stats document to this file")
    parser.add_argument("--no-insights", action="store_true", help="Skip AI insights")
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    configure_logging(settings.log_level)

    if not Path(args.export).exists():
        print(f"❌ Export not found: {args.export}")
        return 1

    try:
        analyze(
            args.export,
            args.platform,
            settings,
            index=args.index,
            analysis_id=args.analysis_id,
            json_out=args.json_out,
            insights=not args.no_insights,
        )
    except ValueError as e:
        print(f"❌ Error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
