#!/usr/bin/env python3
"""
Embed and store one analysis's messages

Re-indexing always starts by deleting the analysis's previous embeddings,
so running the same job twice leaves exactly one record per chunk.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, List, Optional, Sequence

from tqdm import tqdm

from parsers.universal_format import NormalizedMessage
from .chunking import DEFAULT_CHUNK_SIZE, DEFAULT_OVERLAP, MessageChunk, chunk_messages
from .embedding import EmbeddingClient
from .vector_store import VectorStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class Indexer:
    """
    Chunk -> embed -> store pipeline for a single analysis

    Embedding calls run on a bounded thread pool. Every vector is
    computed before anything is written, so a failed embedding leaves the
    analysis with no records rather than a partial set.
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        store: VectorStore,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        overlap: int = DEFAULT_OVERLAP,
        concurrency: int = 4,
        show_progress: bool = False,
    ):
        self.embedder = embedder
        self.store = store
        self.chunk_size = chunk_size
        self.overlap = overlap
        self.concurrency = max(1, concurrency)
        self.show_progress = show_progress

    def index(
        self,
        analysis_id: str,
        messages: Sequence[NormalizedMessage],
        on_progress: Optional[ProgressCallback] = None,
    ) -> int:
        """
        Replace the analysis's embeddings with fresh ones

        Args:
            analysis_id: Owning analysis
            messages: Normalized messages in chronological order
            on_progress: Called with (completed, total) after each embedding

        Returns:
            Number of chunks stored

        Raises:
            EmbeddingError: If any embedding call fails
        """
        self.store.delete_all(analysis_id)

        chunks = chunk_messages(messages, self.chunk_size, self.overlap)
        if not chunks:
            logger.info("Analysis %s has no messages to index", analysis_id)
            return 0

        vectors = self._embed_all(chunks, on_progress)
        stored = self.store.store_many(
            analysis_id,
            ((chunk, vectors[chunk.chunk_index]) for chunk in chunks),
        )
        logger.info("Indexed %d chunks for analysis %s", stored, analysis_id)
        return stored

    def _embed_all(self, chunks: List[MessageChunk], on_progress: Optional[ProgressCallback]) -> Dict[int, List[float]]:
        total = len(chunks)
        vectors: Dict[int, List[float]] = {}
        progress = tqdm(total=total, desc="Embedding", disable=not self.show_progress)

        with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
            futures = {
                executor.submit(self.embedder.embed, chunk.content): chunk.chunk_index
                for chunk in chunks
            }
            try:
                for future in as_completed(futures):
                    vectors[futures[future]] = future.result()
                    progress.update(1)
                    if on_progress:
                        on_progress(len(vectors), total)
            except Exception:
                for future in futures:
                    future.cancel()
                raise
            finally:
                progress.close()

        return vectors
