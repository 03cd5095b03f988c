"""Drives one job through the ordered pipeline stages.

The orchestrator is the only writer of a running job. Every transition goes
through ``JobStore.update`` and is logged; stages run strictly one after the
other and each stage is invoked at most once. Cancellation is cooperative:
the job's flag is checked before every stage and once more before the job is
marked COMPLETED.
"""
from __future__ import annotations

import logging
import shutil
import threading
from functools import partial
from pathlib import Path
from typing import Iterable, Optional, Sequence

from models.artifact import Artifacts
from models.job import (
    ErrorInfo,
    Job,
    JobStatus,
    PIPELINE,
    PROGRESS_KEY_BY_STATUS,
    STAGE_ENTRY_PROGRESS,
    can_transition,
)
from flask_app.services.job_store import JobStore
from flask_app.services.stages import ExtractedAudio, StageContext, StageRunner
from utils.exceptions import JobCancelled, StageFailure

logger = logging.getLogger(__name__)

_STATUS_BY_KEY = {stage.progress_key: stage.status for stage in PIPELINE}
_VALIDATION_KEY = PROGRESS_KEY_BY_STATUS[JobStatus.INITIATED]


class JobOrchestrator:
    """Runs the pipeline for one job at a time per calling thread."""

    def __init__(self, store: JobStore, stages: Sequence[StageRunner], workspace_root: Path):
        expected = [stage.progress_key for stage in PIPELINE[1:]]
        names = [runner.name for runner in stages]
        if names != expected:
            raise ValueError(f"Stages must be {expected} in order, got {names}")
        self.store = store
        self.stages = list(stages)
        self.workspace_root = Path(workspace_root)

    def run(self, job_id: str, cancel_event: threading.Event) -> Job:
        """Run the job to a terminal state and return its final snapshot."""
        job = self.store.get(job_id)
        ctx = StageContext(
            job_id=job_id,
            source=job.source,
            workspace=self.workspace_root / job_id,
            title=job.title,
            cancelled=cancel_event.is_set,
        )
        try:
            return self._drive(ctx, cancel_event)
        except Exception as exc:
            logger.exception("Unexpected error processing job %s", job_id)
            return self._fail(ctx, "InternalError", f"Unexpected error: {exc}", None)
        finally:
            self._remove_files(ctx.temp_files)
            if ctx.workspace.exists():
                shutil.rmtree(ctx.workspace, ignore_errors=True)

    def _drive(self, ctx: StageContext, cancel_event: threading.Event) -> Job:
        if cancel_event.is_set():
            return self._cancel(ctx)

        snapshot = self._update(ctx.job_id, self._mark_validated, "Source validated")
        if snapshot.status is not JobStatus.INITIATED:
            return self._settle(ctx, snapshot)

        for runner in self.stages:
            if cancel_event.is_set():
                return self._cancel(ctx)

            status = _STATUS_BY_KEY[runner.name]
            snapshot = self._update(
                ctx.job_id, partial(self._enter_stage, status, runner.name),
                f"Running {runner.name} stage",
            )
            if snapshot.status is not status:
                return self._settle(ctx, snapshot)

            ctx.report_progress = partial(self._report_progress, ctx.job_id, status, runner.name)
            try:
                output = runner.execute(ctx)
            except JobCancelled:
                return self._cancel(ctx)
            except StageFailure as exc:
                return self._fail(ctx, "StageFailure", exc.message, exc.stage or runner.name)
            finally:
                ctx.report_progress = lambda pct: None

            ctx.outputs[runner.name] = output
            if isinstance(output, ExtractedAudio):
                ctx.title = output.title
            self._update(
                ctx.job_id,
                partial(self._finish_stage, status, runner.name, ctx.title),
                f"Finished {runner.name} stage",
            )

        if cancel_event.is_set():
            return self._cancel(ctx)
        return self._complete(ctx)

    # Mutators. Each runs on a working copy under the job's lock.

    @staticmethod
    def _mark_validated(job: Job) -> None:
        if job.status is JobStatus.INITIATED:
            job.stage_progress[_VALIDATION_KEY] = 100
            job.message = "Source validated"

    @staticmethod
    def _enter_stage(status: JobStatus, key: str, job: Job) -> None:
        if not can_transition(job.status, status):
            return
        job.status = status
        job.stage_progress[key] = max(job.stage_progress[key], STAGE_ENTRY_PROGRESS)
        job.message = f"Running {key} stage"

    @staticmethod
    def _finish_stage(status: JobStatus, key: str, title: Optional[str], job: Job) -> None:
        if job.status is not status:
            return
        job.stage_progress[key] = 100
        if title:
            job.title = title

    def _report_progress(self, job_id: str, status: JobStatus, key: str, pct: int) -> None:
        def bump(job: Job) -> None:
            if job.status is status:
                job.stage_progress[key] = max(job.stage_progress[key], min(int(pct), 99))

        self.store.update(job_id, bump)

    # Terminal transitions.

    def _complete(self, ctx: StageContext) -> Job:
        artifacts = Artifacts(
            transcript=list(ctx.outputs["transcribing"]),
            translation=list(ctx.outputs["translating"]),
            files=dict(ctx.outputs["generating"]),
        )

        def complete(job: Job) -> None:
            if not can_transition(job.status, JobStatus.COMPLETED):
                return
            job.status = JobStatus.COMPLETED
            for key in job.stage_progress:
                job.stage_progress[key] = 100
            job.artifacts = artifacts
            job.message = "Transcription job completed successfully"

        snapshot = self._update(ctx.job_id, complete, "Transcription job completed successfully")
        if snapshot.status is not JobStatus.COMPLETED:
            return self._settle(ctx, snapshot)
        return snapshot

    def _fail(self, ctx: StageContext, kind: str, message: str, stage: Optional[str]) -> Job:
        def fail(job: Job) -> None:
            if not can_transition(job.status, JobStatus.FAILED):
                return
            job.status = JobStatus.FAILED
            job.error = ErrorInfo(kind=kind, message=message, stage=stage)
            job.artifacts = None
            job.message = f"Error: {message}"

        logger.error("[JOB FAILED: %s] %s stage: %s", ctx.job_id, stage or "pipeline", message)
        snapshot = self._update(ctx.job_id, fail, f"Error: {message}")
        self._remove_files(ctx.output_files)
        return snapshot

    def _cancel(self, ctx: StageContext) -> Job:
        def cancel(job: Job) -> None:
            if not can_transition(job.status, JobStatus.CANCELLED):
                return
            job.status = JobStatus.CANCELLED
            job.artifacts = None
            job.message = "Job cancelled by user"

        snapshot = self._update(ctx.job_id, cancel, "Job cancelled by user")
        self._remove_files(ctx.output_files)
        return snapshot

    def _settle(self, ctx: StageContext, snapshot: Job) -> Job:
        """Someone else already finalized the job; drop what this run produced."""
        logger.info("Job %s was finalized as %s elsewhere; stopping", ctx.job_id, snapshot.status)
        if snapshot.status is not JobStatus.COMPLETED:
            self._remove_files(ctx.output_files)
        return snapshot

    def _update(self, job_id: str, mutator, message: str) -> Job:
        snapshot = self.store.update(job_id, mutator)
        key = PROGRESS_KEY_BY_STATUS.get(snapshot.status)
        if key:
            pct = snapshot.stage_progress[key]
        else:
            pct = 100 if snapshot.status is JobStatus.COMPLETED else 0
        logger.info("Job %s status updated to %s (%d%%): %s", job_id, snapshot.status, pct, message)
        return snapshot

    @staticmethod
    def _remove_files(paths: Iterable[Path]) -> None:
        for path in list(paths):
            try:
                if path.exists():
                    path.unlink()
                    logger.debug("Cleaned up file: %s", path)
            except OSError as exc:
                logger.warning("Failed to clean up file %s: %s", path, exc)
