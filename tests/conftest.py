"""Shared fixtures for chat analyzer tests."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from qdrant_client import QdrantClient

from config.settings import Settings
from helpers import FakeChatClient, FakeEmbedder
from parsers import build_registry
from pipeline.analysis_repository import AnalysisRepository
from pipeline.blob_storage import BlobStorage
from pipeline.orchestrator import AnalysisJob
from retrieval.context import ChatAssistant, RetrievalService
from retrieval.indexer import Indexer
from retrieval.vector_store import VectorStore


@pytest.fixture()
def settings(tmp_path) -> Settings:
    """Settings pointing every store at tmp_path, with no external services."""
    return Settings(
        collection_name="test-embeddings",
        embedding_dimensions=FakeEmbedder.DIMENSIONS,
        insights_enabled=False,
        database_path=str(tmp_path / "analyses.db"),
        blob_root=str(tmp_path / "uploads"),
        job_retries=2,
        job_retry_backoff=0.0,
        embedding_concurrency=2,
    )


@pytest.fixture()
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture()
def store() -> VectorStore:
    """VectorStore backed by embedded in-memory Qdrant."""
    return VectorStore(QdrantClient(location=":memory:"), "test-embeddings", FakeEmbedder.DIMENSIONS)


@pytest.fixture()
def indexer(embedder, store) -> Indexer:
    return Indexer(embedder, store, chunk_size=7, overlap=2, concurrency=2)


@pytest.fixture()
def retrieval(embedder, store) -> RetrievalService:
    return RetrievalService(embedder, store)


@pytest.fixture()
def repository(settings) -> AnalysisRepository:
    return AnalysisRepository(settings.database_path)


@pytest.fixture()
def blobs(settings) -> BlobStorage:
    return BlobStorage(settings.blob_root)


@pytest.fixture()
def registry():
    return build_registry()


@pytest.fixture()
def sleeps() -> list:
    return []


@pytest.fixture()
def job(repository, blobs, registry, indexer, sleeps) -> AnalysisJob:
    return AnalysisJob(
        repository,
        blobs,
        registry,
        indexer=indexer,
        retries=2,
        backoff=1.0,
        sleep=sleeps.append,
    )


@pytest.fixture()
def chat_client() -> FakeChatClient:
    return FakeChatClient(content="You two mostly talk about lunch.")


@pytest.fixture()
def service(settings, repository, blobs, registry, store, job, retrieval, chat_client):
    """AnalysisService wired with fakes for the embedder and LLM."""
    from api.analysis_service import AnalysisService

    assistant = ChatAssistant(retrieval, chat_client, model="test-model")
    return AnalysisService(settings, repository, blobs, registry, store, job, retrieval, assistant)


@pytest.fixture()
def client(service):
    """TestClient for the FastAPI app with the fake-backed service injected."""
    from api.main import app

    app.state.service = service
    with TestClient(app) as tc:
        yield tc
    app.state.service = None
