"""Custom exception classes used across the service."""
from typing import Optional


class ServiceError(RuntimeError):
    """Base class for domain-specific exceptions."""


class TranscriptionError(ServiceError):
    """Raised when audio transcription fails."""


class TranslationError(ServiceError):
    """Raised when translation fails."""


class ProcessingError(ServiceError):
    """Raised when video/audio processing fails."""


class RenderError(ServiceError):
    """Raised when an output document cannot be written."""


class InvalidInputError(ServiceError):
    """Raised when a source reference or time range is malformed.

    Rejected synchronously, the job is never created.
    """


class StageFailure(ServiceError):
    """Raised when a pipeline stage's collaborator call fails."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage


class JobCancelled(ServiceError):
    """Raised by a stage that noticed the job's cancellation flag."""


class JobNotFoundError(ServiceError):
    """Raised when a job id is unknown to the store."""

    def __init__(self, job_id: str):
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class InvalidJobStateError(ServiceError):
    """Raised when an operation is not allowed in the job's current state."""

    def __init__(self, message: str, status: Optional[str] = None):
        super().__init__(message)
        self.status = status


class JobNotReadyError(InvalidJobStateError):
    """Raised when results are requested before the job completed."""


class ArtifactNotFoundError(ServiceError):
    """Raised when a completed job has no file of the requested type on disk."""
