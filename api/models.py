"""
Pydantic models for API requests and responses
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any, Literal


class CamelModel(BaseModel):
    """Accepts and emits camelCase aliases, like the stats document"""
    model_config = ConfigDict(populate_by_name=True)


class UploadResponse(CamelModel):
    """Stored upload location"""
    blob_url: str = Field(..., alias="blobUrl", description="Location of the stored export")


class AnalyzeRequest(CamelModel):
    """Start processing an uploaded export"""
    platform: Literal["telegram", "whatsapp", "instagram"] = Field(..., description="Export platform")
    name: Optional[str] = Field(None, max_length=200, description="Display name for the analysis")
    blob_url: str = Field(..., alias="blobUrl", min_length=1, description="Location returned by /api/upload")


class AnalyzeResponse(CamelModel):
    """Accepted analysis job"""
    analysis_id: str = Field(..., alias="analysisId", description="New analysis id")
    status: str = Field(..., description="Job status (pending)")


class AnalysisResponse(CamelModel):
    """Analysis status, with stats once processing is ready"""
    id: str = Field(..., description="Analysis id")
    platform: str = Field(..., description="Export platform")
    name: str = Field(..., description="Display name")
    created_at: str = Field(..., alias="createdAt", description="Creation time (ISO format)")
    status: str = Field(..., description="pending | processing | ready | failed")
    total_messages: int = Field(0, alias="totalMessages")
    total_words: int = Field(0, alias="totalWords")
    participant_count: int = Field(0, alias="participantCount")
    stats: Optional[Dict[str, Any]] = Field(None, description="ChatStats document (ready analyses only)")


class SearchResult(CamelModel):
    """Single search result"""
    content: str = Field(..., description="Chunk text")
    sender: str = Field(..., description="Chunk author, or 'mixed'")
    similarity: float = Field(..., description="Cosine similarity to the query")
    start_timestamp: Optional[str] = Field(None, alias="startTimestamp", description="First message time (ISO format)")
    chunk_index: int = Field(..., alias="chunkIndex", description="Position of the chunk in the conversation")


class SearchResponse(CamelModel):
    """Search API response"""
    query: str = Field(..., description="Search query")
    total_results: int = Field(..., alias="totalResults", description="Number of results returned")
    execution_time_ms: float = Field(..., alias="executionTimeMs", description="Search execution time in milliseconds")
    results: List[SearchResult] = Field(..., description="Search results")


class ChatMessage(BaseModel):
    """One conversation turn"""
    role: Literal["user", "assistant"] = Field(..., description="Who said it")
    content: str = Field(..., description="Message text")


class ChatRequest(BaseModel):
    """Conversation with the assistant so far"""
    messages: List[ChatMessage] = Field(..., min_length=1, description="Prior turns, latest last")


class ChatResponse(BaseModel):
    """Assistant reply"""
    reply: str = Field(..., description="Assistant message")


class HealthResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Service status")
    qdrant_connected: bool = Field(..., description="Whether Qdrant is accessible")
    embedding_backend: str = Field(..., description="Configured embedding backend")

