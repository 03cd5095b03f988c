"""Domain models for jobs and their artifacts."""
from models.artifact import Artifacts, FILE_TYPES, normalize_file_type
from models.job import (
    ErrorInfo,
    Job,
    JobStatus,
    JobSummary,
    PIPELINE,
    SourceKind,
    SourceRef,
    is_active,
    is_terminal,
)
from models.segment import TimedSegment

__all__ = [
    "Artifacts",
    "ErrorInfo",
    "FILE_TYPES",
    "Job",
    "JobStatus",
    "JobSummary",
    "PIPELINE",
    "SourceKind",
    "SourceRef",
    "TimedSegment",
    "is_active",
    "is_terminal",
    "normalize_file_type",
]
