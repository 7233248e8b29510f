"""
FastAPI application for the chat analyzer

Main entry point for the web API
"""

from contextlib import asynccontextmanager
from fastapi import BackgroundTasks, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from api.analysis_service import AnalysisNotFoundError, AnalysisNotReadyError, AnalysisService
from api.models import (
    AnalysisResponse, AnalyzeRequest, AnalyzeResponse, ChatRequest, ChatResponse,
    HealthResponse, SearchResponse, SearchResult, UploadResponse,
)
from config.settings import Settings, configure_logging


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the analysis service once at startup (unless one was injected)"""
    if getattr(app.state, "service", None) is None:
        settings = Settings.from_env()
        configure_logging(settings.log_level)
        app.state.service = AnalysisService.from_settings(settings)

    yield


# Create FastAPI app
app = FastAPI(
    title="Chat Analyzer API",
    description="Statistics, AI insights and semantic search for Telegram, WhatsApp and Instagram chat exports",
    version="0.1.0",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify exact origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def service() -> AnalysisService:
    return app.state.service


def to_http_error(e: Exception, action: str) -> HTTPException:
    """Map service errors to HTTP status codes"""
    if isinstance(e, AnalysisNotFoundError):
        return HTTPException(status_code=404, detail=f"Analysis not found: {e}")
    if isinstance(e, AnalysisNotReadyError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    return HTTPException(status_code=500, detail=f"{action} failed: {str(e)}")


def to_analysis_response(record: dict) -> AnalysisResponse:
    return AnalysisResponse(
        id=record["id"],
        platform=record["platform"],
        name=record["name"],
        created_at=record["created_at"],
        status=record["job_status"],
        total_messages=record["total_messages"],
        total_words=record["total_words"],
        participant_count=record["participant_count"],
        stats=record.get("stats"),
    )


# API Endpoints

@app.get("/api/health", response_model=HealthResponse)
def health_check():
    """Health check endpoint"""
    return HealthResponse(**service().health())


@app.post("/api/upload", response_model=UploadResponse)
async def upload(request: Request, filename: str = Query(..., min_length=1, description="Original file name")):
    """Store a raw export (request body) and return its location"""
    data = await request.body()
    try:
        location = service().upload(filename, data)
    except Exception as e:
        raise to_http_error(e, "Upload")
    return UploadResponse(blob_url=location)


@app.post("/api/analyze", response_model=AnalyzeResponse, status_code=202)
def analyze(payload: AnalyzeRequest, background_tasks: BackgroundTasks):
    """Create an analysis and process it in the background"""
    try:
        record, event = service().start_analysis(payload.platform, payload.blob_url, payload.name)
    except Exception as e:
        raise to_http_error(e, "Analysis")
    background_tasks.add_task(service().run_job, event)
    return AnalyzeResponse(analysis_id=record["id"], status=record["job_status"])


@app.get("/api/analysis/{analysis_id}", response_model=AnalysisResponse)
def get_analysis(analysis_id: str):
    """Analysis status; stats are included once it is ready"""
    try:
        return to_analysis_response(service().get(analysis_id))
    except Exception as e:
        raise to_http_error(e, "Lookup")


@app.delete("/api/analysis/{analysis_id}", status_code=204)
def delete_analysis(analysis_id: str):
    """Delete an analysis and its embeddings"""
    try:
        service().delete(analysis_id)
    except Exception as e:
        raise to_http_error(e, "Delete")


@app.get("/api/analysis/{analysis_id}/search", response_model=SearchResponse)
def search(
    analysis_id: str,
    q: str = Query(..., description="Search query", min_length=1),
    limit: int = Query(5, ge=1, le=50, description="Number of results"),
):
    """
    Semantic search within one analysis.

    Returns the most similar conversation chunks, best match first.
    """
    try:
        results, execution_time_ms = service().search(analysis_id, q, limit)
    except Exception as e:
        raise to_http_error(e, "Search")

    return SearchResponse(
        query=q,
        total_results=len(results),
        execution_time_ms=round(execution_time_ms, 2),
        results=[SearchResult(**r.to_dict()) for r in results],
    )


@app.post("/api/analysis/{analysis_id}/chat", response_model=ChatResponse)
def chat(analysis_id: str, payload: ChatRequest):
    """Ask the assistant about an analyzed chat"""
    try:
        reply = service().chat(analysis_id, [m.model_dump() for m in payload.messages])
    except Exception as e:
        raise to_http_error(e, "Chat")
    return ChatResponse(reply=reply)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
