"""Tests for the HTTP API."""

from __future__ import annotations

import pytest

from helpers import tg_message, telegram_export


def _export(count: int = 20) -> bytes:
    senders = ["Alice", "Bob"]
    return telegram_export([tg_message(i, senders[i % 2], f"lunch plans number {i}") for i in range(1, count + 1)])


@pytest.fixture()
def ready_analysis(client):
    """Upload and fully process an export; returns the analysis id."""
    upload = client.post("/api/upload", params={"filename": "result.json"}, content=_export())
    response = client.post("/api/analyze", json={
        "platform": "telegram",
        "name": "Lunch crew",
        "blobUrl": upload.json()["blobUrl"],
    })
    return response.json()["analysisId"]


@pytest.fixture()
def pending_analysis(service):
    record, _ = service.start_analysis("telegram", service.upload("result.json", _export()), "Waiting")
    return record["id"]


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "qdrant_connected": True,
            "embedding_backend": "openai",
        }


class TestUploadAndAnalyze:
    def test_upload_returns_location(self, client):
        response = client.post("/api/upload", params={"filename": "chat.txt"}, content=b"31/12/2021, 22:15 - A: hi")

        assert response.status_code == 200
        assert response.json()["blobUrl"].endswith("-chat.txt")

    def test_empty_upload_is_rejected(self, client):
        response = client.post("/api/upload", params={"filename": "chat.txt"}, content=b"")
        assert response.status_code == 400

    def test_analyze_processes_in_background(self, client, ready_analysis):
        response = client.get(f"/api/analysis/{ready_analysis}")
        body = response.json()

        assert response.status_code == 200
        assert body["status"] == "ready"
        assert body["name"] == "Lunch crew"
        assert body["totalMessages"] == 20
        assert body["participantCount"] == 2
        assert body["stats"]["messagesByUser"] == {"Alice": 10, "Bob": 10}

    def test_analyze_rejects_unknown_platform(self, client):
        response = client.post("/api/analyze", json={"platform": "signal", "blobUrl": "x"})
        assert response.status_code == 422

    def test_failed_job_is_reported(self, client):
        response = client.post("/api/analyze", json={"platform": "telegram", "blobUrl": "/nowhere/result.json"})
        analysis_id = response.json()["analysisId"]

        assert response.status_code == 202
        assert client.get(f"/api/analysis/{analysis_id}").json()["status"] == "failed"


class TestAnalysisLookup:
    def test_unknown_analysis(self, client):
        assert client.get("/api/analysis/does-not-exist").status_code == 404

    def test_stats_hidden_until_ready(self, client, pending_analysis):
        body = client.get(f"/api/analysis/{pending_analysis}").json()

        assert body["status"] == "pending"
        assert body["stats"] is None

    def test_delete(self, client, ready_analysis, store):
        assert store.exists(ready_analysis)

        assert client.delete(f"/api/analysis/{ready_analysis}").status_code == 204
        assert client.get(f"/api/analysis/{ready_analysis}").status_code == 404
        assert store.exists(ready_analysis) is False
        assert client.delete(f"/api/analysis/{ready_analysis}").status_code == 404


class TestSearch:
    def test_search_returns_ranked_chunks(self, client, ready_analysis):
        response = client.get(f"/api/analysis/{ready_analysis}/search", params={"q": "lunch plans", "limit": 2})
        body = response.json()

        assert response.status_code == 200
        assert body["query"] == "lunch plans"
        assert body["totalResults"] == 2
        assert set(body["results"][0]) == {"content", "sender", "similarity", "startTimestamp", "chunkIndex"}
        assert body["results"][0]["similarity"] >= body["results"][1]["similarity"]

    def test_search_unknown_analysis(self, client):
        assert client.get("/api/analysis/nope/search", params={"q": "x"}).status_code == 404

    def test_search_pending_analysis(self, client, pending_analysis):
        response = client.get(f"/api/analysis/{pending_analysis}/search", params={"q": "x"})
        assert response.status_code == 409

    def test_search_limit_bounds(self, client, ready_analysis):
        response = client.get(f"/api/analysis/{ready_analysis}/search", params={"q": "x", "limit": 500})
        assert response.status_code == 422


class TestChat:
    def test_chat_reply(self, client, ready_analysis, chat_client):
        response = client.post(f"/api/analysis/{ready_analysis}/chat", json={
            "messages": [{"role": "user", "content": "what do we talk about?"}],
        })

        assert response.status_code == 200
        assert response.json() == {"reply": "You two mostly talk about lunch."}
        assert "[Relevant Conversation 1]" in chat_client.calls[0]["messages"][0]["content"]

    def test_chat_requires_messages(self, client, ready_analysis):
        response = client.post(f"/api/analysis/{ready_analysis}/chat", json={"messages": []})
        assert response.status_code == 422

    def test_chat_pending_analysis(self, client, pending_analysis):
        response = client.post(f"/api/analysis/{pending_analysis}/chat", json={
            "messages": [{"role": "user", "content": "hi"}],
        })
        assert response.status_code == 409
