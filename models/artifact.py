"""Outputs of a completed job."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from models.segment import TimedSegment

# Rendered file types, keyed by the name used in ``/api/files/<id>/<type>``.
FILE_TYPES = ("pdf", "markdown", "srt")
FILE_TYPE_ALIASES = {"md": "markdown"}
FILE_MIME_TYPES = {
    "pdf": "application/pdf",
    "markdown": "text/markdown",
    "srt": "application/x-subrip",
}
FILE_EXTENSIONS = {"pdf": ".pdf", "markdown": ".md", "srt": ".srt"}


def normalize_file_type(file_type: str) -> str:
    """Map a requested file type (case-insensitive, ``md`` alias) to its key."""
    key = (file_type or "").strip().lower()
    key = FILE_TYPE_ALIASES.get(key, key)
    if key not in FILE_TYPES:
        raise ValueError(
            f"Invalid file type. Must be one of: {', '.join(FILE_TYPES)}"
        )
    return key


@dataclass
class Artifacts:
    """Transcript, translation and rendered files of one job."""

    transcript: List[TimedSegment] = field(default_factory=list)
    translation: List[TimedSegment] = field(default_factory=list)
    files: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transcription": [segment.to_dict() for segment in self.transcript],
            "translation": [segment.to_dict() for segment in self.translation],
            "files": dict(self.files),
        }
