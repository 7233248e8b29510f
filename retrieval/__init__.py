"""
Chunking, embedding and semantic search over analyzed chats
"""

from .chunking import MessageChunk, chunk_messages
from .embedding import (
    BGEM3EmbeddingClient,
    EmbeddingClient,
    EmbeddingError,
    OpenAIEmbeddingClient,
    build_embedder,
)
from .vector_store import SearchResult, VectorStore, create_qdrant_client
from .indexer import Indexer
from .context import (
    NO_EMBEDDINGS_FOUND,
    ChatAssistant,
    RetrievalService,
    format_context,
)

__all__ = [
    'MessageChunk',
    'chunk_messages',
    'EmbeddingClient',
    'EmbeddingError',
    'OpenAIEmbeddingClient',
    'BGEM3EmbeddingClient',
    'build_embedder',
    'SearchResult',
    'VectorStore',
    'create_qdrant_client',
    'Indexer',
    'NO_EMBEDDINGS_FOUND',
    'ChatAssistant',
    'RetrievalService',
    'format_context',
]
