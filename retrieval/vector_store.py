#!/usr/bin/env python3
"""
Qdrant-backed embedding store

One collection holds the chunks of every analysis. Each point carries the
chunk payload plus ``analysis_id``; every operation filters on it, so
analyses never see each other's chunks.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from qdrant_client import QdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchValue,
    PayloadSchemaType,
    PointStruct,
    VectorParams,
)

from .chunking import MessageChunk

logger = logging.getLogger(__name__)

VECTOR_NAME = "dense"
ANALYSIS_FIELD = "analysis_id"


@dataclass(frozen=True)
class SearchResult:
    """One ranked chunk returned by a similarity search"""

    content: str
    sender: str
    similarity: float
    start_timestamp: Optional[datetime]
    chunk_index: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "sender": self.sender,
            "similarity": self.similarity,
            "startTimestamp": self.start_timestamp.isoformat() if self.start_timestamp else None,
            "chunkIndex": self.chunk_index,
        }


def create_qdrant_client(url: Optional[str] = None, api_key: Optional[str] = None) -> QdrantClient:
    """
    Connect to Qdrant, or start an embedded in-memory instance when no URL
    is configured
    """
    if not url:
        logger.warning("QDRANT_URL not set, using in-memory Qdrant (embeddings are not persisted)")
        return QdrantClient(location=":memory:")
    return QdrantClient(
        url=url,
        api_key=api_key,
        timeout=60,
        prefer_grpc=False,  # Use HTTP REST API
    )


def analysis_filter(analysis_id: str) -> Filter:
    return Filter(must=[FieldCondition(key=ANALYSIS_FIELD, match=MatchValue(value=analysis_id))])


class VectorStore:
    """
    Embedding records keyed by analysis id

    Writes are plain appends; re-indexing an analysis is delete_all()
    followed by fresh stores.
    """

    def __init__(self, client: QdrantClient, collection_name: str, vector_size: int):
        self.client = client
        self.collection_name = collection_name
        self.vector_size = vector_size
        self._ready = False

    def ensure_collection(self) -> None:
        """Create the collection and its analysis_id index if missing"""
        if self._ready:
            return

        if not self.client.collection_exists(self.collection_name):
            logger.info("Creating collection '%s' (%d dims, cosine)", self.collection_name, self.vector_size)
            self.client.create_collection(
                collection_name=self.collection_name,
                vectors_config={
                    VECTOR_NAME: VectorParams(
                        size=self.vector_size,
                        distance=Distance.COSINE,
                    )
                },
            )
            self.client.create_payload_index(
                collection_name=self.collection_name,
                field_name=ANALYSIS_FIELD,
                field_schema=PayloadSchemaType.KEYWORD,
            )
        self._ready = True

    def _point(self, analysis_id: str, chunk: MessageChunk, vector: Sequence[float]) -> PointStruct:
        if len(vector) != self.vector_size:
            raise ValueError(f"Vector has {len(vector)} dimensions, collection expects {self.vector_size}")
        payload = chunk.to_payload()
        payload[ANALYSIS_FIELD] = analysis_id
        return PointStruct(
            id=str(uuid.uuid4()),
            vector={VECTOR_NAME: list(vector)},
            payload=payload,
        )

    def store(self, analysis_id: str, chunk: MessageChunk, vector: Sequence[float]) -> None:
        """Append one embedding record"""
        self.store_many(analysis_id, [(chunk, vector)])

    def store_many(self, analysis_id: str, items: Iterable[Tuple[MessageChunk, Sequence[float]]]) -> int:
        """Append several embedding records in one request"""
        self.ensure_collection()
        points = [self._point(analysis_id, chunk, vector) for chunk, vector in items]
        if points:
            self.client.upsert(collection_name=self.collection_name, points=points, wait=True)
        return len(points)

    def delete_all(self, analysis_id: str) -> None:
        """Remove every embedding record for the analysis"""
        self.ensure_collection()
        self.client.delete(
            collection_name=self.collection_name,
            points_selector=FilterSelector(filter=analysis_filter(analysis_id)),
            wait=True,
        )
        logger.debug("Deleted embeddings for analysis %s", analysis_id)

    def count(self, analysis_id: str) -> int:
        self.ensure_collection()
        result = self.client.count(
            collection_name=self.collection_name,
            count_filter=analysis_filter(analysis_id),
            exact=True,
        )
        return result.count

    def exists(self, analysis_id: str) -> bool:
        """True iff at least one embedding record exists for the analysis"""
        return self.count(analysis_id) > 0

    def search(self, analysis_id: str, query_vector: Sequence[float], limit: int = 5) -> List[SearchResult]:
        """
        Cosine-similarity search restricted to one analysis

        Returns:
            At most ``limit`` results, most similar first
        """
        if limit <= 0:
            return []
        self.ensure_collection()

        points = self.client.query_points(
            collection_name=self.collection_name,
            query=list(query_vector),
            using=VECTOR_NAME,
            query_filter=analysis_filter(analysis_id),
            limit=limit,
            with_payload=True,
        ).points

        results = []
        for point in points:
            payload = point.payload or {}
            start = payload.get("start_timestamp")
            results.append(SearchResult(
                content=payload.get("content", ""),
                sender=payload.get("sender", ""),
                similarity=float(point.score),
                start_timestamp=datetime.fromisoformat(start) if start else None,
                chunk_index=int(payload.get("chunk_index", 0)),
            ))

        results.sort(key=lambda r: r.similarity, reverse=True)
        return results
