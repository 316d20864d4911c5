"""
Persistent ledger of scheduled jobs.

The ledger holds at most one job per type and at most `max_jobs` entries
overall. It records which triggers are believed to be live; jobs that
fire, or units removed outside this tool, are not noticed until the
record is cancelled or superseded.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Dict, Any

from models import Job

logger = logging.getLogger(__name__)

DEFAULT_MAX_JOBS = 2


class JobStore(ABC):
    """
    Base class for job ledgers.

    Subclasses provide raw reads and whole-ledger writes; the replacement
    and truncation rules live here.
    """

    def __init__(self, max_jobs: int = DEFAULT_MAX_JOBS):
        if max_jobs < 1:
            raise ValueError("max_jobs must be at least 1")
        self.max_jobs = max_jobs

    @abstractmethod
    def _read_entries(self) -> List[Dict[str, Any]]:
        """Return raw ledger entries, raising on unreadable storage."""

    @abstractmethod
    def _write_entries(self, entries: List[Dict[str, Any]]):
        """Replace the whole ledger."""

    def load(self) -> List[Job]:
        """
        Load all jobs.

        Returns an empty list when the ledger is missing, empty or
        unreadable. Malformed entries are skipped.
        """
        try:
            entries = self._read_entries()
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable job ledger: {e}")
            return []

        if not isinstance(entries, list):
            logger.warning("Job ledger is not a list, treating as empty")
            return []

        jobs = []
        for entry in entries:
            if not isinstance(entry, dict):
                logger.warning(f"Skipping malformed job entry: {entry!r}")
                continue
            try:
                jobs.append(Job.from_dict(entry))
            except ValueError as e:
                logger.warning(f"Skipping job entry: {e}")
        return jobs

    def save(self, jobs: List[Job]):
        """Persist the given jobs, keeping only the last `max_jobs`."""
        jobs = list(jobs)[-self.max_jobs:]
        self._write_entries([job.to_dict() for job in jobs])

    def replace_by_type(self, job: Job):
        """
        Add a job, dropping any existing job of the same type.

        Args:
            job: The new job
        """
        jobs = [j for j in self.load() if j.type != job.type]
        jobs.append(job)
        self.save(jobs)
        logger.debug(f"Stored job {job.trigger_id} ({job.type})")

    def remove_at(self, index: int) -> Job:
        """
        Remove a job by its 1-based display index.

        Returns:
            The removed job

        Raises:
            IndexError: If index is out of range (ledger is left unchanged)
        """
        jobs = self.load()
        if index < 1 or index > len(jobs):
            raise IndexError(f"Invalid job number: {index}")

        job = jobs.pop(index - 1)
        self.save(jobs)
        logger.debug(f"Removed job {job.trigger_id}")
        return job

    def clear(self):
        """Remove all jobs."""
        self._write_entries([])


class JsonJobStore(JobStore):
    """Job ledger stored as a JSON array in a single file."""

    def __init__(self, path: Path, max_jobs: int = DEFAULT_MAX_JOBS):
        super().__init__(max_jobs)
        self.path = Path(path).expanduser()

    def _read_entries(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        with open(self.path, 'r', encoding='utf-8') as f:
            text = f.read()
        if not text.strip():
            return []
        return json.loads(text)

    def _write_entries(self, entries: List[Dict[str, Any]]):
        """Write to a temp file beside the ledger, then swap it in."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), suffix='.tmp', prefix='.jobs_')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(entries, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    def __repr__(self):
        return f"JsonJobStore(path={self.path}, max_jobs={self.max_jobs})"


class MemoryJobStore(JobStore):
    """Job ledger kept in memory. Used for dry runs and tests."""

    def __init__(self, max_jobs: int = DEFAULT_MAX_JOBS, entries: List[Dict[str, Any]] = None):
        super().__init__(max_jobs)
        self._entries = [dict(e) for e in entries] if entries else []

    def _read_entries(self) -> List[Dict[str, Any]]:
        return [dict(e) for e in self._entries]

    def _write_entries(self, entries: List[Dict[str, Any]]):
        self._entries = [dict(e) for e in entries]

    def __repr__(self):
        return f"MemoryJobStore(jobs={len(self._entries)}, max_jobs={self.max_jobs})"
