#!/usr/bin/env python3
"""
Analysis persistence (SQLite)

One row per analysis. Statistics are stored as a single JSON document and
overwritten in full on every successful parse; the denormalized totals
columns exist for listing without decoding it.
"""

import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from parsers.chat_stats import ChatStats

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


SCHEMA = """
CREATE TABLE IF NOT EXISTS chat_analysis (
    id TEXT PRIMARY KEY,
    platform TEXT NOT NULL,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL,
    job_status TEXT NOT NULL DEFAULT 'pending',
    blob_location TEXT,
    stats TEXT,
    total_messages INTEGER NOT NULL DEFAULT 0,
    total_words INTEGER NOT NULL DEFAULT 0,
    participant_count INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_chat_analysis_created ON chat_analysis(created_at);
"""


class AnalysisRepository:
    """
    CRUD for analysis records

    Args:
        db_path: SQLite database file; parent directories are created
    """

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def get_connection(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init_db(self):
        with self.get_connection() as conn:
            conn.executescript(SCHEMA)

    def _row_to_dict(self, row: Optional[sqlite3.Row]) -> Optional[Dict[str, Any]]:
        if row is None:
            return None
        record = dict(row)
        record["stats"] = json.loads(record["stats"]) if record["stats"] else None
        return record

    def create(self, platform: str, name: str, blob_location: Optional[str] = None) -> Dict[str, Any]:
        """Insert a pending analysis and return it"""
        analysis_id = str(uuid.uuid4())
        created_at = datetime.now(timezone.utc).isoformat()
        with self.get_connection() as conn:
            conn.execute(
                "INSERT INTO chat_analysis (id, platform, name, created_at, job_status, blob_location) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (analysis_id, platform, name, created_at, JobStatus.PENDING.value, blob_location),
            )
        logger.info("Created analysis %s (%s)", analysis_id, platform)
        return self.get(analysis_id)

    def get(self, analysis_id: str) -> Optional[Dict[str, Any]]:
        with self.get_connection() as conn:
            row = conn.execute("SELECT * FROM chat_analysis WHERE id = ?", (analysis_id,)).fetchone()
        return self._row_to_dict(row)

    def list(self) -> List[Dict[str, Any]]:
        """All analyses, newest first, without their stats documents"""
        with self.get_connection() as conn:
            rows = conn.execute(
                "SELECT id, platform, name, created_at, job_status, total_messages, "
                "total_words, participant_count FROM chat_analysis ORDER BY created_at DESC"
            ).fetchall()
        return [dict(row) for row in rows]

    def update_status(self, analysis_id: str, status: Union[JobStatus, str]) -> None:
        status = JobStatus(status)
        with self.get_connection() as conn:
            conn.execute(
                "UPDATE chat_analysis SET job_status = ? WHERE id = ?",
                (status.value, analysis_id),
            )
        logger.debug("Analysis %s -> %s", analysis_id, status.value)

    def save_stats(self, analysis_id: str, stats: ChatStats) -> None:
        """Overwrite the stats document and its denormalized totals"""
        with self.get_connection() as conn:
            conn.execute(
                "UPDATE chat_analysis SET stats = ?, total_messages = ?, total_words = ?, "
                "participant_count = ? WHERE id = ?",
                (
                    json.dumps(stats.to_dict(), ensure_ascii=False),
                    stats.total_messages,
                    stats.total_words,
                    len(stats.messages_by_user),
                    analysis_id,
                ),
            )

    def delete(self, analysis_id: str) -> bool:
        with self.get_connection() as conn:
            cursor = conn.execute("DELETE FROM chat_analysis WHERE id = ?", (analysis_id,))
            return cursor.rowcount > 0
