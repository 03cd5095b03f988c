"""Process-wide entry point for transcription jobs.

The supervisor validates submissions, creates jobs, runs one orchestration
task per job on a thread pool and answers status, cancel, results and file
queries. Submission returns as soon as the job exists; clients poll.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Optional

from models.artifact import Artifacts, normalize_file_type
from models.job import Job, JobStatus, JobSummary, SourceKind, SourceRef
from flask_app.services.cleanup import DeferredCleanup, remove_file
from flask_app.services.job_orchestrator import JobOrchestrator
from flask_app.services.job_store import InMemoryJobStore, JobStore
from utils.exceptions import (
    ArtifactNotFoundError,
    InvalidInputError,
    InvalidJobStateError,
    JobNotFoundError,
    JobNotReadyError,
    ServiceError,
)
from utils.validators import (
    is_allowed_audio_file,
    is_valid_youtube_url,
    strip_start_time,
    validate_time_range,
)

logger = logging.getLogger(__name__)

PDF_PREVIEW_MESSAGE = "PDF preview not available, please download the full file"


class JobSupervisor:
    """Owns the worker pool, the per-job cancel flags and upload cleanup."""

    def __init__(
        self,
        store: JobStore,
        orchestrator: JobOrchestrator,
        max_workers: int = 4,
        cleanup: Optional[DeferredCleanup] = None,
        preview_chars: int = 2000,
    ):
        self.store = store
        self.orchestrator = orchestrator
        self.cleanup = cleanup or DeferredCleanup(3600.0)
        self.preview_chars = preview_chars
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="job")
        self._flags: Dict[str, threading.Event] = {}
        self._futures: Dict[str, Future] = {}
        # Re-entrant: eviction during create calls back into _forget.
        self._lock = threading.RLock()
        self._closed = False
        if isinstance(store, InMemoryJobStore):
            store.on_evict = self._forget

    # Submission

    def submit(self, source: SourceRef, title: Optional[str] = None) -> str:
        """Validate ``source``, create its job and start processing it."""
        self._validate_source(source)
        with self._lock:
            if self._closed:
                raise ServiceError("Job supervisor is shut down")
            job_id = self.store.create(source, title=title)
            flag = threading.Event()
            self._flags[job_id] = flag
            self._futures[job_id] = self._executor.submit(self._run, job_id, flag)
        logger.info("Job %s created for %s source %s", job_id, source.kind.value, source.value)
        return job_id

    def submit_url(self, url: Optional[str], start_time: Any = None, end_time: Any = None) -> str:
        url = (url or "").strip()
        if not url:
            raise InvalidInputError("YouTube URL is required")
        if not is_valid_youtube_url(url):
            raise InvalidInputError("Invalid YouTube URL")
        time_range = validate_time_range(start_time, end_time)
        return self.submit(SourceRef(SourceKind.URL, strip_start_time(url), time_range))

    def submit_upload(self, path: Path, title: Optional[str] = None) -> str:
        return self.submit(SourceRef(SourceKind.UPLOAD, str(path)), title=title)

    @staticmethod
    def _validate_source(source: SourceRef) -> None:
        if not source.value or not source.value.strip():
            raise InvalidInputError("Source reference must not be empty")
        if source.kind is SourceKind.URL:
            if not is_valid_youtube_url(source.value):
                raise InvalidInputError("Invalid YouTube URL")
        else:
            path = Path(source.value)
            if not path.is_file():
                raise InvalidInputError(f"Uploaded file not found: {path.name}")
            if not is_allowed_audio_file(path.name):
                raise InvalidInputError("Invalid file type. Only audio files are allowed")
        if source.time_range is not None:
            start, end = source.time_range
            if start < 0 or start >= end:
                raise InvalidInputError("startTime must be less than endTime")

    # Background task

    def _run(self, job_id: str, flag: threading.Event) -> None:
        final: Optional[Job] = None
        try:
            final = self.orchestrator.run(job_id, flag)
        except JobNotFoundError:
            logger.warning("Job %s disappeared before it could run", job_id)
        except Exception:
            logger.exception("Job %s task crashed", job_id)
        finally:
            with self._lock:
                self._flags.pop(job_id, None)
                self._futures.pop(job_id, None)
        if final is not None:
            self._after_run(final)

    def _after_run(self, job: Job) -> None:
        if job.source.kind is not SourceKind.UPLOAD:
            return
        path = Path(job.source.value)
        with self._lock:
            if not self._exists(job.id):
                # Evicted while finishing; _forget already removed the file.
                return
            if job.status is JobStatus.COMPLETED:
                self.cleanup.schedule(job.id, path)
            else:
                self.cleanup.remove_now(job.id, path)

    def _exists(self, job_id: str) -> bool:
        try:
            self.store.get(job_id)
        except JobNotFoundError:
            return False
        return True

    def _forget(self, job: Job) -> None:
        """Store eviction hook: the job can no longer be queried."""
        with self._lock:
            self._flags.pop(job.id, None)
            if job.source.kind is SourceKind.UPLOAD:
                self.cleanup.remove_now(job.id, Path(job.source.value))
            else:
                self.cleanup.cancel(job.id)

    # Queries

    def status(self, job_id: str) -> Job:
        return self.store.get(job_id)

    def cancel(self, job_id: str) -> Job:
        """Request cancellation.

        A job that has not started is cancelled right away; a running job
        stops at its next checkpoint. Finished jobs cannot be cancelled.
        """
        job = self.store.get(job_id)
        if job.status is JobStatus.CANCELLED:
            return job
        self._reject_finished(job)

        with self._lock:
            flag = self._flags.get(job_id)
        if flag is not None:
            flag.set()

        def request_cancel(record: Job) -> None:
            record.cancel_requested = True
            if record.status is JobStatus.INITIATED:
                record.status = JobStatus.CANCELLED
                record.message = "Job cancelled by user"

        snapshot = self.store.update(job_id, request_cancel)
        if snapshot.status is not JobStatus.CANCELLED:
            self._reject_finished(snapshot)
        logger.info("Cancellation requested for job %s (%s)", job_id, snapshot.status)
        return snapshot

    @staticmethod
    def _reject_finished(job: Job) -> None:
        if job.status in (JobStatus.COMPLETED, JobStatus.FAILED):
            raise InvalidJobStateError(
                f"Cannot cancel job in {job.status.value} state", status=job.status.value
            )

    def results(self, job_id: str) -> Artifacts:
        job = self.store.get(job_id)
        if job.status is not JobStatus.COMPLETED or job.artifacts is None:
            raise JobNotReadyError(
                f"Job is not completed yet (status: {job.status.value})", status=job.status.value
            )
        self.cleanup.touch(job_id)
        return job.artifacts

    def recent(self, limit: int = 10) -> List[JobSummary]:
        return self.store.list(limit)

    def artifact_path(self, job_id: str, file_type: str) -> Path:
        try:
            key = normalize_file_type(file_type)
        except ValueError as exc:
            raise InvalidInputError(str(exc)) from exc
        artifacts = self.results(job_id)
        location = artifacts.files.get(key)
        if not location or not Path(location).is_file():
            raise ArtifactNotFoundError(f"{key} file not found for job {job_id}")
        return Path(location)

    def artifact_preview(self, job_id: str, file_type: str, max_chars: Optional[int] = None) -> str:
        """First ``max_chars`` characters of a text artifact, ``...`` when cut."""
        path = self.artifact_path(job_id, file_type)
        if normalize_file_type(file_type) == "pdf":
            return PDF_PREVIEW_MESSAGE
        limit = self.preview_chars if max_chars is None else max_chars
        content = path.read_text(encoding="utf-8")
        if len(content) > limit:
            return content[:limit] + "..."
        return content

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting jobs, drop queued ones and cancel pending cleanups."""
        with self._lock:
            self._closed = True
            pending = dict(self._futures)
        self._executor.shutdown(wait=wait, cancel_futures=True)

        def mark_cancelled(record: Job) -> None:
            record.status = JobStatus.CANCELLED
            record.message = "Service shutting down"

        for job_id, future in pending.items():
            if not future.cancelled():
                continue
            try:
                job = self.store.update(job_id, mark_cancelled)
            except JobNotFoundError:
                continue
            if job.source.kind is SourceKind.UPLOAD:
                remove_file(Path(job.source.value))
        self.cleanup.shutdown()
        logger.info("Job supervisor shut down")


def create_job_supervisor(config) -> JobSupervisor:
    """Wire store, stages and providers from an ``AppConfig``."""
    from flask_app.clients.video_processor import VideoProcessor
    from flask_app.services.postprocessing import DocumentService
    from flask_app.services.stages import (
        ExtractAudioStage,
        RenderDocumentsStage,
        TranscribeStage,
        TranslateStage,
    )
    from flask_app.services.storage import LocalFileStorage
    from flask_app.services.transcription import create_transcriber
    from flask_app.services.translation import create_translator

    LocalFileStorage(config.storage, config.jobs.max_upload_bytes).ensure_directories()

    stages = [
        ExtractAudioStage(VideoProcessor()),
        TranscribeStage(create_transcriber(config)),
        TranslateStage(create_translator(config)),
        RenderDocumentsStage(DocumentService(), config.storage.output_dir),
    ]
    store = InMemoryJobStore(max_jobs=config.jobs.max_jobs_in_memory)
    orchestrator = JobOrchestrator(store, stages, workspace_root=config.storage.temp_dir)
    logger.info(
        "Job supervisor ready: transcription=%s translation=%s workers=%d",
        config.transcription_provider, config.translation_provider, config.jobs.max_workers,
    )
    return JobSupervisor(
        store,
        orchestrator,
        max_workers=config.jobs.max_workers,
        cleanup=DeferredCleanup(config.jobs.upload_cleanup_delay_seconds),
        preview_chars=config.jobs.preview_chars,
    )
