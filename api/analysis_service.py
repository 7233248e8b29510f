"""
Analysis service wrapper for API

Wires storage, parsing, indexing and retrieval together behind the
operations the HTTP routes need.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from config.settings import Settings
from insights.augmenter import build_augmenter
from parsers import build_registry
from parsers.base_parser import ParserRegistry
from pipeline.analysis_repository import AnalysisRepository, JobStatus
from pipeline.blob_storage import BlobStorage
from pipeline.orchestrator import AnalysisEvent, AnalysisJob, JobFailedError
from retrieval.context import ChatAssistant, RetrievalService
from retrieval.embedding import build_embedder
from retrieval.indexer import Indexer
from retrieval.vector_store import SearchResult, VectorStore, create_qdrant_client

logger = logging.getLogger(__name__)


class AnalysisNotFoundError(LookupError):
    """No analysis with the given id"""


class AnalysisNotReadyError(RuntimeError):
    """The analysis has not finished processing"""


class AnalysisService:
    """
    Facade used by the FastAPI routes

    Components are passed in so tests can swap the embedder and LLM for
    fakes; ``from_settings`` builds the production wiring.
    """

    def __init__(
        self,
        settings: Settings,
        repository: AnalysisRepository,
        blobs: BlobStorage,
        registry: ParserRegistry,
        store: VectorStore,
        job: AnalysisJob,
        retrieval: RetrievalService,
        assistant: Optional[ChatAssistant] = None,
    ):
        self.settings = settings
        self.repository = repository
        self.blobs = blobs
        self.registry = registry
        self.store = store
        self.job = job
        self.retrieval = retrieval
        self.assistant = assistant

    @classmethod
    def from_settings(cls, settings: Settings) -> "AnalysisService":
        embedder = build_embedder(settings)
        store = VectorStore(
            create_qdrant_client(settings.qdrant_url, settings.qdrant_api_key),
            settings.collection_name,
            embedder.dimensions,
        )
        registry = build_registry(settings.extra_system_phrases)
        repository = AnalysisRepository(settings.database_path)
        blobs = BlobStorage(settings.blob_root, settings.blob_api_token, settings.blob_allowed_hosts)

        indexer = Indexer(
            embedder,
            store,
            chunk_size=settings.chunk_size,
            overlap=settings.chunk_overlap,
            concurrency=settings.embedding_concurrency,
        )
        job = AnalysisJob(
            repository,
            blobs,
            registry,
            indexer=indexer,
            augmenter=build_augmenter(settings),
            retries=settings.job_retries,
            backoff=settings.job_retry_backoff,
        )
        retrieval = RetrievalService(embedder, store, settings.search_limit)

        assistant = None
        if settings.openai_api_key:
            from openai import OpenAI

            assistant = ChatAssistant(retrieval, OpenAI(api_key=settings.openai_api_key), settings.chat_model)

        return cls(settings, repository, blobs, registry, store, job, retrieval, assistant)

    # Uploads & jobs

    def upload(self, filename: str, data: bytes) -> str:
        """
        Store a raw export

        Raises:
            ValueError: If the upload is empty or too large
        """
        if not data:
            raise ValueError("Upload is empty")
        size_mb = len(data) / (1024 * 1024)
        if size_mb > self.settings.max_file_size_mb:
            raise ValueError(
                f"File too large ({size_mb:.1f} MB). Maximum allowed: {self.settings.max_file_size_mb} MB."
            )
        return self.blobs.upload(filename, data)

    def start_analysis(self, platform: str, blob_location: str, name: Optional[str] = None) -> Tuple[Dict[str, Any], AnalysisEvent]:
        """
        Create a pending analysis and the event that processes it

        Raises:
            UnsupportedPlatformError: If no parser handles the platform
        """
        parser = self.registry.get(platform)
        record = self.repository.create(parser.platform_name, name or f"{parser.platform_name} chat", blob_location)
        event = AnalysisEvent(record["id"], blob_location, parser.platform_name)
        return record, event

    def run_job(self, event: AnalysisEvent) -> None:
        """Background-task entry point; failures are recorded, not raised"""
        try:
            self.job.run(event)
        except JobFailedError as e:
            logger.error("%s", e)

    # Reads

    def get(self, analysis_id: str) -> Dict[str, Any]:
        """
        Analysis record; stats are only exposed once processing is ready

        Raises:
            AnalysisNotFoundError: If the id is unknown
        """
        record = self.repository.get(analysis_id)
        if record is None:
            raise AnalysisNotFoundError(analysis_id)
        if record["job_status"] != JobStatus.READY.value:
            record["stats"] = None
        return record

    def _require_ready(self, analysis_id: str) -> Dict[str, Any]:
        record = self.get(analysis_id)
        if record["job_status"] != JobStatus.READY.value:
            raise AnalysisNotReadyError(f"Analysis {analysis_id} is {record['job_status']}")
        return record

    def delete(self, analysis_id: str) -> None:
        """Delete an analysis together with its embeddings"""
        if self.repository.get(analysis_id) is None:
            raise AnalysisNotFoundError(analysis_id)
        self.store.delete_all(analysis_id)
        self.repository.delete(analysis_id)
        logger.info("Deleted analysis %s", analysis_id)

    def search(self, analysis_id: str, query: str, limit: Optional[int] = None) -> Tuple[List[SearchResult], float]:
        """
        Semantic search within one analysis

        Returns:
            Tuple of (results list, execution_time_ms)
        """
        self._require_ready(analysis_id)
        start_time = time.time()
        results = self.retrieval.find_relevant(analysis_id, query, limit)
        return results, (time.time() - start_time) * 1000

    def chat(self, analysis_id: str, conversation: List[Dict[str, Any]]) -> str:
        self._require_ready(analysis_id)
        if self.assistant is None:
            raise RuntimeError("Chat is unavailable: OPENAI_API_KEY is not configured")
        return self.assistant.reply(analysis_id, conversation)

    def health(self) -> Dict[str, Any]:
        try:
            self.store.client.get_collections()
            connected = True
        except Exception as e:
            logger.warning("Qdrant health check failed: %s", e)
            connected = False
        return {
            "status": "healthy" if connected else "degraded",
            "qdrant_connected": connected,
            "embedding_backend": self.settings.embedding_backend,
        }
