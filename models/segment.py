"""Timed text segment shared by transcripts and translations."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional


@dataclass(frozen=True)
class TimedSegment:
    """One utterance: ``start``/``end`` in seconds and its text."""

    start: float
    end: float
    text: str
    original: Optional[str] = None

    def __post_init__(self):
        if self.start < 0:
            raise ValueError(f"Segment start must not be negative: {self.start}")
        if self.end <= self.start:
            raise ValueError(
                f"Segment end must be after start: start={self.start} end={self.end}"
            )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"start": self.start, "end": self.end, "text": self.text}
        if self.original is not None:
            data["original"] = self.original
        return data


def ensure_ordered(segments: Iterable[TimedSegment]) -> List[TimedSegment]:
    """Return the segments as a list, checking non-decreasing ``start``."""
    result = list(segments)
    for previous, current in zip(result, result[1:]):
        if current.start < previous.start:
            raise ValueError(
                f"Segments out of order: {current.start} follows {previous.start}"
            )
    return result
