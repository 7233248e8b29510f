#!/usr/bin/env python3
"""
Environment configuration

Values are read from the process environment (and a project-level .env
file) once, into an immutable Settings object. Credentials are only
checked when a client that needs them is created.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

# Load environment variables from project root
project_root = Path(__file__).parent.parent
load_dotenv(project_root / ".env")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str) -> Tuple[str, ...]:
    value = os.getenv(name, "")
    return tuple(part.strip() for part in value.split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for parsing, indexing and serving analyses"""

    # Vector store
    qdrant_url: Optional[str] = None
    qdrant_api_key: Optional[str] = None
    collection_name: str = "message-embeddings"

    # Embeddings
    embedding_backend: str = "openai"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536
    embedding_concurrency: int = 4
    local_model_name: str = "BAAI/bge-m3"

    # LLM
    openai_api_key: Optional[str] = None
    insights_model: str = "gpt-4o-mini"
    chat_model: str = "gpt-4o-mini"
    insights_enabled: bool = True

    # Chunking / retrieval
    chunk_size: int = 7
    chunk_overlap: int = 2
    search_limit: int = 5

    # Persistence
    database_path: str = "data/analyses.db"
    blob_root: str = "data/uploads"
    blob_api_token: Optional[str] = None
    blob_allowed_hosts: Tuple[str, ...] = field(default_factory=tuple)

    # Jobs
    job_retries: int = 3
    job_retry_backoff: float = 2.0

    max_file_size_mb: int = 500
    extra_system_phrases: Tuple[str, ...] = field(default_factory=tuple)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables"""
        return cls(
            qdrant_url=os.getenv("QDRANT_URL") or None,
            qdrant_api_key=os.getenv("QDRANT_API_KEY") or None,
            collection_name=os.getenv("COLLECTION_NAME", "message-embeddings"),
            embedding_backend=os.getenv("EMBEDDING_BACKEND", "openai").lower(),
            embedding_model=os.getenv("EMBEDDING_MODEL", "text-embedding-3-small"),
            embedding_dimensions=int(os.getenv("EMBEDDING_DIMENSIONS", 1536)),
            embedding_concurrency=int(os.getenv("EMBEDDING_CONCURRENCY", 4)),
            local_model_name=os.getenv("LOCAL_MODEL_NAME", "BAAI/bge-m3"),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            insights_model=os.getenv("INSIGHTS_MODEL", "gpt-4o-mini"),
            chat_model=os.getenv("CHAT_MODEL", "gpt-4o-mini"),
            insights_enabled=_env_bool("INSIGHTS_ENABLED", True),
            chunk_size=int(os.getenv("CHUNK_SIZE", 7)),
            chunk_overlap=int(os.getenv("CHUNK_OVERLAP", 2)),
            search_limit=int(os.getenv("SEARCH_LIMIT", 5)),
            database_path=os.getenv("DATABASE_PATH", "data/analyses.db"),
            blob_root=os.getenv("BLOB_ROOT", "data/uploads"),
            blob_api_token=os.getenv("BLOB_API_TOKEN") or None,
            blob_allowed_hosts=_env_list("BLOB_ALLOWED_HOSTS"),
            job_retries=int(os.getenv("JOB_RETRIES", 3)),
            job_retry_backoff=float(os.getenv("JOB_RETRY_BACKOFF", 2.0)),
            max_file_size_mb=int(os.getenv("MAX_FILE_SIZE_MB", 500)),
            extra_system_phrases=_env_list("EXTRA_SYSTEM_PHRASES"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for CLI and server entry points"""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
