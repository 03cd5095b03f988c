"""Timestamp formatting and line wrapping shared by the document renderers."""
from __future__ import annotations

from typing import List


def format_clock(seconds: float) -> str:
    """``m:ss`` with whole minutes, as shown next to each transcript line."""
    total = max(0, int(seconds))
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}"


def format_range(start: float, end: float) -> str:
    return f"[{format_clock(start)} - {format_clock(end)}]"


def format_srt_time(seconds: float) -> str:
    """``HH:MM:SS,mmm``."""
    total_ms = max(0, int(round(seconds * 1000)))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, millis = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def wrap_text(text: str, max_length: int = 90) -> List[str]:
    """Greedy word wrap. A single word longer than ``max_length`` stays whole."""
    lines: List[str] = []
    current = ""
    for word in text.split():
        candidate = f"{current} {word}" if current else word
        if current and len(candidate) > max_length:
            lines.append(current)
            current = word
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines
