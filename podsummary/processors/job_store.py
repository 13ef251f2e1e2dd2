import asyncio
import json
import os
import sqlite3
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from ..models.summary import Job, ProcessingProgress, ProcessingStatus, SummaryResult
from ..utils.config import JOB_TTL_SECONDS
from ..utils.logger import get_logger

logger = get_logger(__name__)


class MemoryJobBackend:
    """Process-local key/value store with per-key expiry"""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._items: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            value, expires_at = item
            if expires_at <= self.clock():
                del self._items[key]
                return None
            return value

    def set(self, key: str, value: str, ttl_seconds: int):
        with self._lock:
            self._items[key] = (value, self.clock() + ttl_seconds)
            self._purge_expired()

    def _purge_expired(self):
        now = self.clock()
        for key in [k for k, (_, expires_at) in self._items.items() if expires_at <= now]:
            del self._items[key]


_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS jobs (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    expires_at REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_jobs_expires_at ON jobs(expires_at);
"""


class SQLiteJobBackend:
    """Job records in SQLite so they survive restarts; expired rows are removed lazily"""

    def __init__(self, db_path: str, clock: Callable[[], float] = time.time):
        self.db_path = db_path
        self.clock = clock
        self._lock = threading.Lock()
        directory = os.path.dirname(db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.executescript(_CREATE_TABLE)
        self.conn.commit()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            now = self.clock()
            self.conn.execute("DELETE FROM jobs WHERE expires_at <= ?", (now,))
            self.conn.commit()
            row = self.conn.execute("SELECT value FROM jobs WHERE key = ?", (key,)).fetchone()
            return row[0] if row else None

    def set(self, key: str, value: str, ttl_seconds: int):
        with self._lock:
            self.conn.execute(
                "INSERT OR REPLACE INTO jobs (key, value, expires_at) VALUES (?, ?, ?)",
                (key, value, self.clock() + ttl_seconds),
            )
            self.conn.commit()

    def close(self):
        self.conn.close()


def _job_key(job_id: str) -> str:
    return f"job:{job_id}"


class JobStore:
    """Persists job status, progress and results for polling clients.

    Every write refreshes the retention window; a job that has not been
    touched for ttl_seconds reads as missing.
    """

    def __init__(self, backend=None, ttl_seconds: int = JOB_TTL_SECONDS):
        self.backend = backend or MemoryJobBackend()
        self.ttl_seconds = ttl_seconds

    async def _load(self, job_id: str) -> Optional[Job]:
        raw = await asyncio.to_thread(self.backend.get, _job_key(job_id))
        if raw is None:
            return None
        return Job.from_dict(json.loads(raw))

    async def _save(self, job: Job):
        raw = json.dumps(job.to_dict())
        await asyncio.to_thread(self.backend.set, _job_key(job.id), raw, self.ttl_seconds)

    async def create(self, job_id: str) -> Job:
        job = Job.new(job_id)
        await self._save(job)
        return job

    async def get(self, job_id: str) -> Optional[Job]:
        return await self._load(job_id)

    async def update_progress(self, job_id: str, progress: ProcessingProgress):
        job = await self._load(job_id)
        if job is None:
            logger.warning("Progress for unknown or expired job %s dropped", job_id)
            return
        job.progress = progress
        await self._save(job)

    async def complete(self, job_id: str, result: SummaryResult):
        job = await self._load(job_id)
        if job is None:
            return
        job.status = ProcessingStatus.COMPLETED
        job.result = result
        job.progress = ProcessingProgress(step="Complete", percentage=100, message="Your summary is ready!")
        await self._save(job)

    async def fail(self, job_id: str, error: str):
        job = await self._load(job_id)
        if job is None:
            return
        job.status = ProcessingStatus.FAILED
        job.error = error
        await self._save(job)
