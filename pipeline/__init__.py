from .blob_storage import BlobFetchError, BlobStorage
from .analysis_repository import AnalysisRepository, JobStatus
from .orchestrator import AnalysisEvent, AnalysisJob, JobFailedError, StepContext

__all__ = [
    "BlobFetchError",
    "BlobStorage",
    "AnalysisRepository",
    "JobStatus",
    "AnalysisEvent",
    "AnalysisJob",
    "JobFailedError",
    "StepContext",
]
