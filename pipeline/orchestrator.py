#!/usr/bin/env python3
"""
Analysis processing job

fetch export -> parse -> save stats -> (re)build embeddings -> mark ready
-> delete export

The job is at-least-once: an attempt that fails is retried from the top,
with steps that already completed replayed from memory instead of re-run.
Embedding generation deletes the analysis's previous embeddings first, so
a retried or repeated run never leaves duplicates behind.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from parsers.base_parser import InsightsAugmenter, ParserRegistry, UnsupportedPlatformError
from parsers.universal_format import ParseResult
from retrieval.indexer import Indexer
from .analysis_repository import AnalysisRepository, JobStatus
from .blob_storage import BlobStorage

logger = logging.getLogger(__name__)

# Errors that no amount of retrying will fix
NON_RETRYABLE = (UnsupportedPlatformError,)


class JobFailedError(RuntimeError):
    """Raised after the retry budget is exhausted and the failure hook ran"""


@dataclass(frozen=True)
class AnalysisEvent:
    """Trigger for one processing run, emitted once the export is stored"""

    analysis_id: str
    blob_location: str
    platform: str


class StepContext:
    """
    Named, memoized steps

    A step that completed in an earlier attempt returns its recorded
    result without running again.
    """

    def __init__(self):
        self.completed: Dict[str, Any] = {}

    def run(self, name: str, fn: Callable[[], Any]) -> Any:
        if name in self.completed:
            logger.debug("Step '%s' already completed, reusing result", name)
            return self.completed[name]
        logger.debug("Running step '%s'", name)
        result = fn()
        self.completed[name] = result
        return result


class AnalysisJob:
    """
    Runs the processing pipeline for analyses

    Args:
        repository: Analysis persistence
        blobs: Uploaded export storage
        registry: Parser registry used to pick the platform parser
        indexer: Embedding indexer; embeddings are skipped when None
        augmenter: Optional insights augmenter passed to the parser
        retries: Retries after the first attempt
        backoff: Seconds before the first retry, doubled after each one
        sleep: Injectable sleep function
    """

    def __init__(
        self,
        repository: AnalysisRepository,
        blobs: BlobStorage,
        registry: ParserRegistry,
        indexer: Optional[Indexer] = None,
        augmenter: Optional[InsightsAugmenter] = None,
        retries: int = 3,
        backoff: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.repository = repository
        self.blobs = blobs
        self.registry = registry
        self.indexer = indexer
        self.augmenter = augmenter
        self.retries = retries
        self.backoff = backoff
        self.sleep = sleep

    def run(self, event: AnalysisEvent) -> Dict[str, Any]:
        """
        Process one analysis, retrying failed attempts

        Raises:
            JobFailedError: When every attempt failed (the analysis is marked
                failed and its export deleted before this is raised)
        """
        step = StepContext()
        attempts = self.retries + 1

        for attempt in range(1, attempts + 1):
            try:
                return self._process(event, step)
            except NON_RETRYABLE as e:
                self.on_failure(event, e)
                raise JobFailedError(f"Analysis {event.analysis_id} failed: {e}") from e
            except Exception as e:
                if attempt == attempts:
                    self.on_failure(event, e)
                    raise JobFailedError(
                        f"Analysis {event.analysis_id} failed after {attempts} attempts: {e}"
                    ) from e
                delay = self.backoff * (2 ** (attempt - 1))
                logger.warning(
                    "Analysis %s attempt %d/%d failed (%s), retrying in %.1fs",
                    event.analysis_id, attempt, attempts, e, delay,
                )
                self.sleep(delay)

    def _process(self, event: AnalysisEvent, step: StepContext) -> Dict[str, Any]:
        analysis_id = event.analysis_id

        step.run("mark-processing", lambda: self.repository.update_status(analysis_id, JobStatus.PROCESSING))

        result: ParseResult = step.run("parse-chat", lambda: self._parse(event))

        step.run("save-stats", lambda: self.repository.save_stats(analysis_id, result.stats))

        if result.messages and self.indexer is not None:
            step.run("generate-embeddings", lambda: self.indexer.index(analysis_id, result.messages))

        step.run("mark-ready", lambda: self.repository.update_status(analysis_id, JobStatus.READY))

        step.run("cleanup-blob", lambda: self._cleanup(event))

        return {"success": True, "analysisId": analysis_id}

    def _parse(self, event: AnalysisEvent) -> ParseResult:
        parser = self.registry.get(event.platform)
        raw = self.blobs.fetch(event.blob_location)
        logger.info("Fetched %d bytes for analysis %s", len(raw), event.analysis_id)

        result = parser.parse(raw, augmenter=self.augmenter)
        logger.info(
            "Parsed %s chat: %d messages, %d participants",
            event.platform, len(result.messages), result.participant_count,
        )
        return result

    def _cleanup(self, event: AnalysisEvent) -> None:
        try:
            self.blobs.delete(event.blob_location)
        except Exception as e:
            logger.error("Error deleting export %s: %s", event.blob_location, e)

    def on_failure(self, event: AnalysisEvent, error: Exception) -> None:
        """Mark the analysis failed and delete its export"""
        logger.error("Analysis %s failed permanently: %s", event.analysis_id, error)
        try:
            self.repository.update_status(event.analysis_id, JobStatus.FAILED)
        except Exception as e:
            logger.error("Failed to update status of analysis %s: %s", event.analysis_id, e)
        self._cleanup(event)
