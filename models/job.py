"""Job record and the pipeline state machine tables."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from models.artifact import Artifacts


class JobStatus(str, Enum):
    INITIATED = "INITIATED"
    DOWNLOADING = "DOWNLOADING"
    TRANSCRIBING = "TRANSCRIBING"
    TRANSLATING = "TRANSLATING"
    GENERATING_DOCUMENTS = "GENERATING_DOCUMENTS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class PipelineStage:
    status: JobStatus
    progress_key: str


# Ordered pipeline. The first entry is the validation step recorded while the
# job is still INITIATED; each following entry is a stage run by the
# orchestrator.
PIPELINE: Tuple[PipelineStage, ...] = (
    PipelineStage(JobStatus.INITIATED, "validating"),
    PipelineStage(JobStatus.DOWNLOADING, "extracting"),
    PipelineStage(JobStatus.TRANSCRIBING, "transcribing"),
    PipelineStage(JobStatus.TRANSLATING, "translating"),
    PipelineStage(JobStatus.GENERATING_DOCUMENTS, "generating"),
)

STATUS_ORDER: Tuple[JobStatus, ...] = tuple(s.status for s in PIPELINE) + (JobStatus.COMPLETED,)
PROGRESS_KEYS: Tuple[str, ...] = tuple(s.progress_key for s in PIPELINE)
PROGRESS_KEY_BY_STATUS: Dict[JobStatus, str] = {s.status: s.progress_key for s in PIPELINE}

TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})
ACTIVE_STATUSES = frozenset(STATUS_ORDER[:-1])

STAGE_ENTRY_PROGRESS = 5


def _validate_pipeline() -> None:
    if len(set(PROGRESS_KEYS)) != len(PROGRESS_KEYS):
        raise RuntimeError(f"Duplicate progress keys in pipeline: {PROGRESS_KEYS}")
    if PIPELINE[0].status is not JobStatus.INITIATED:
        raise RuntimeError("Pipeline must begin with INITIATED")
    declared = [status for status in JobStatus if status not in (JobStatus.FAILED, JobStatus.CANCELLED)]
    if list(STATUS_ORDER) != declared:
        raise RuntimeError(
            f"Pipeline order {STATUS_ORDER} does not match status order {declared}"
        )


_validate_pipeline()


def is_terminal(status: JobStatus) -> bool:
    return status in TERMINAL_STATUSES


def is_active(status: JobStatus) -> bool:
    return status in ACTIVE_STATUSES


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    """Forward-only transitions; FAILED/CANCELLED from any active status."""
    if is_terminal(current):
        return False
    if target in (JobStatus.FAILED, JobStatus.CANCELLED):
        return True
    return STATUS_ORDER.index(target) > STATUS_ORDER.index(current)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SourceKind(str, Enum):
    URL = "url"
    UPLOAD = "upload"


@dataclass(frozen=True)
class SourceRef:
    """What a job was submitted with. Immutable after creation."""

    kind: SourceKind
    value: str
    time_range: Optional[Tuple[float, float]] = None

    @property
    def time_offset(self) -> float:
        return self.time_range[0] if self.time_range else 0.0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.kind.value, "ref": self.value}
        if self.time_range:
            data["startTime"], data["endTime"] = self.time_range
        return data


@dataclass(frozen=True)
class ErrorInfo:
    kind: str
    message: str
    stage: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "stage": self.stage}


def initial_progress() -> Dict[str, int]:
    return {key: 0 for key in PROGRESS_KEYS}


@dataclass
class Job:
    """Mutable job record. Only the job store hands these out, as copies."""

    id: str
    source: SourceRef
    status: JobStatus = JobStatus.INITIATED
    stage_progress: Dict[str, int] = field(default_factory=initial_progress)
    title: Optional[str] = None
    message: Optional[str] = None
    cancel_requested: bool = False
    artifacts: Optional[Artifacts] = None
    error: Optional[ErrorInfo] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    @property
    def is_active(self) -> bool:
        return is_active(self.status)

    def to_dict(self) -> Dict[str, Any]:
        """Full status view (GET /api/status/<id>)."""
        return {
            "jobId": self.id,
            "status": self.status.value,
            "progress": dict(self.stage_progress),
            "source": self.source.to_dict(),
            "title": self.title,
            "message": self.message,
            "cancelRequested": self.cancel_requested,
            "error": self.error.to_dict() if self.error else None,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    def summary(self) -> "JobSummary":
        return JobSummary(
            id=self.id,
            status=self.status,
            title=self.title,
            progress=dict(self.stage_progress),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self):
        return f"<Job {self.id} status={self.status.value}>"


@dataclass(frozen=True)
class JobSummary:
    """Lightweight representation for list view (GET /api/jobs)."""

    id: str
    status: JobStatus
    title: Optional[str]
    progress: Dict[str, int]
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobId": self.id,
            "status": self.status.value,
            "title": self.title,
            "progress": dict(self.progress),
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
