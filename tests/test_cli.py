"""Tests for the command-line entry points."""

from __future__ import annotations

import json

import pytest
from qdrant_client import QdrantClient

import analyze_chat
from config.create_indexes import create_indexes, vector_size_for
from config.settings import Settings
from helpers import FakeEmbedder, tg_message, telegram_export


@pytest.fixture()
def export_file(tmp_path):
    path = tmp_path / "result.json"
    path.write_bytes(telegram_export([
        tg_message(i, ["Alice", "Bob"][i % 2], f"sorry about lunch {i}") for i in range(1, 21)
    ]))
    return path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("QDRANT_URL", "OPENAI_API_KEY", "EMBEDDING_BACKEND", "COLLECTION_NAME"):
        monkeypatch.delenv(name, raising=False)


class TestAnalyzeChat:
    def test_report_and_json_output(self, export_file, tmp_path, capsys):
        out = tmp_path / "out" / "stats.json"

        code = analyze_chat.main([str(export_file), "--platform", "telegram", "--no-insights", "--json", str(out)])
        printed = capsys.readouterr().out

        assert code == 0
        assert "TELEGRAM CHAT ANALYSIS" in printed
        assert "Messages: 20" in printed
        document = json.loads(out.read_text(encoding="utf-8"))
        assert document["totalMessages"] == 20
        assert document["source"] == "telegram"

    def test_missing_file(self, tmp_path, capsys):
        code = analyze_chat.main([str(tmp_path / "nope.json"), "--platform", "telegram"])

        assert code == 1
        assert "Export not found" in capsys.readouterr().out

    def test_index_uses_configured_embedder(self, export_file, monkeypatch, capsys):
        embedder = FakeEmbedder()
        monkeypatch.setattr("retrieval.embedding.build_embedder", lambda settings: embedder)

        code = analyze_chat.main([
            str(export_file), "--platform", "telegram", "--no-insights",
            "--index", "--analysis-id", "cli-test",
        ])

        assert code == 0
        assert "Stored 4 chunks" in capsys.readouterr().out
        assert len(embedder.calls) == 4

    def test_analyze_returns_parse_result(self, export_file):
        result = analyze_chat.analyze(str(export_file), "telegram", Settings(insights_enabled=False))
        assert len(result.messages) == 20
        assert result.stats.sorry_by_user == {"Alice": 10, "Bob": 10}


class TestCreateIndexes:
    def test_creates_collection(self, capsys):
        client = QdrantClient(location=":memory:")
        settings = Settings(collection_name="cli-embeddings", embedding_dimensions=64)

        create_indexes(settings, client=client)

        assert client.collection_exists("cli-embeddings")
        assert "Index creation complete!" in capsys.readouterr().out

    def test_requires_url_without_client(self):
        with pytest.raises(ValueError):
            create_indexes(Settings(qdrant_url=None))

    def test_vector_size(self):
        assert vector_size_for(Settings(embedding_backend="bge-m3")) == 1024
        assert vector_size_for(Settings(embedding_dimensions=256)) == 256
