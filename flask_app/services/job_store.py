"""Job storage: the single source of truth for job state.

The orchestrator and supervisor only talk to the ``JobStore`` interface so a
persistent backend can replace ``InMemoryJobStore`` without touching them.
"""
from __future__ import annotations

import copy
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from models.job import Job, JobSummary, SourceRef, utcnow
from utils.exceptions import JobNotFoundError

logger = logging.getLogger(__name__)

Mutator = Callable[[Job], None]


class JobStore(ABC):
    """Concurrency-safe storage and retrieval of job records."""

    @abstractmethod
    def create(self, source: SourceRef, title: Optional[str] = None) -> str:
        """Insert a new INITIATED job and return its id."""

    @abstractmethod
    def get(self, job_id: str) -> Job:
        """Return a snapshot copy of the job or raise ``JobNotFoundError``."""

    @abstractmethod
    def update(self, job_id: str, mutator: Mutator) -> Job:
        """Atomically apply ``mutator`` to the job and return the new snapshot."""

    @abstractmethod
    def list(self, limit: int = 10) -> List[JobSummary]:
        """Most-recently-updated jobs first, at most ``limit`` of them."""

    @abstractmethod
    def delete(self, job_id: str) -> None:
        """Remove a job. Unknown ids are ignored."""


class InMemoryJobStore(JobStore):
    """Process-lifetime job store.

    Records are never mutated in place: ``update`` works on a copy under the
    job's own lock and swaps it in, so readers only ever see complete
    records. Different jobs are updated independently; the registry lock is
    held only for dictionary access.

    At most ``max_jobs`` records are kept. When the bound is exceeded the
    least-recently-updated records whose status is not active are evicted.
    """

    def __init__(self, max_jobs: int = 100, on_evict: Optional[Callable[[Job], None]] = None):
        if max_jobs < 1:
            raise ValueError("max_jobs must be at least 1")
        self.max_jobs = max_jobs
        self.on_evict = on_evict
        self._jobs: Dict[str, Job] = {}
        self._locks: Dict[str, threading.Lock] = {}
        # Monotonic touch counter; orders records by last update even when
        # timestamps collide.
        self._touched: Dict[str, int] = {}
        self._seq = 0
        self._registry_lock = threading.Lock()

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        with self._registry_lock:
            return job_id in self._jobs

    def create(self, source: SourceRef, title: Optional[str] = None) -> str:
        job_id = str(uuid.uuid4())
        job = Job(id=job_id, source=source, title=title)
        with self._registry_lock:
            self._jobs[job_id] = job
            self._locks[job_id] = threading.Lock()
            self._touch(job_id)
            evicted = self._evict_overflow()
        logger.debug("Created job %s for %s source", job_id, source.kind.value)
        self._notify_evicted(evicted)
        return job_id

    def get(self, job_id: str) -> Job:
        with self._registry_lock:
            job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return copy.deepcopy(job)

    def update(self, job_id: str, mutator: Mutator) -> Job:
        lock = self._lock_for(job_id)
        with lock:
            with self._registry_lock:
                current = self._jobs.get(job_id)
            if current is None:
                raise JobNotFoundError(job_id)
            if current.is_terminal:
                logger.debug("Ignoring update of job %s in terminal state %s", job_id, current.status)
                return copy.deepcopy(current)

            working = copy.deepcopy(current)
            mutator(working)
            now = utcnow()
            working.updated_at = now if now > current.updated_at else current.updated_at

            with self._registry_lock:
                if job_id not in self._jobs:
                    raise JobNotFoundError(job_id)
                self._jobs[job_id] = working
                self._touch(job_id)
                evicted = self._evict_overflow()
            snapshot = copy.deepcopy(working)
        self._notify_evicted(evicted)
        return snapshot

    def list(self, limit: int = 10) -> List[JobSummary]:
        if limit <= 0:
            return []
        with self._registry_lock:
            ordered = sorted(self._jobs, key=self._touched.__getitem__, reverse=True)
            return [self._jobs[job_id].summary() for job_id in ordered[:limit]]

    def delete(self, job_id: str) -> None:
        with self._registry_lock:
            self._jobs.pop(job_id, None)
            self._locks.pop(job_id, None)
            self._touched.pop(job_id, None)

    def _lock_for(self, job_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(job_id)
        if lock is None:
            raise JobNotFoundError(job_id)
        return lock

    def _touch(self, job_id: str) -> None:
        self._seq += 1
        self._touched[job_id] = self._seq

    def _evict_overflow(self) -> List[Job]:
        """Drop oldest non-active records until within bound. Registry lock held."""
        overflow = len(self._jobs) - self.max_jobs
        if overflow <= 0:
            return []
        candidates = sorted(
            (job_id for job_id, job in self._jobs.items() if not job.is_active),
            key=self._touched.__getitem__,
        )
        evicted = []
        for job_id in candidates[:overflow]:
            evicted.append(self._jobs.pop(job_id))
            self._locks.pop(job_id, None)
            self._touched.pop(job_id, None)
        if len(self._jobs) > self.max_jobs:
            logger.warning(
                "Job store holds %d jobs (bound %d); remaining jobs are all active",
                len(self._jobs), self.max_jobs,
            )
        return evicted

    def _notify_evicted(self, evicted: List[Job]) -> None:
        for job in evicted:
            logger.info("Evicted job %s (%s) from job store", job.id, job.status)
            if self.on_evict:
                self.on_evict(copy.deepcopy(job))
