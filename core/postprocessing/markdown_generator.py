"""Markdown rendering of timed transcripts."""
from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable

from core.postprocessing.timestamps import format_range
from models.segment import TimedSegment

_INVALID_TITLE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1F]')


def clean_title(title: str, max_length: int = 100) -> str:
    title = _INVALID_TITLE_CHARS.sub("", title)
    return re.sub(r"\s+", " ", title).strip()[:max_length]


def render_markdown(segments: Iterable[TimedSegment], title: str, time_offset: float = 0.0) -> str:
    parts = [f"# {clean_title(title)}\n\n## English Transcript with Timestamps\n\n"]
    for segment in segments:
        stamp = format_range(segment.start + time_offset, segment.end + time_offset)
        parts.append(f"**{stamp}** {segment.text}\n\n")
    return "".join(parts)


def write_markdown(segments: Iterable[TimedSegment], title: str, output_path: Path,
                   time_offset: float = 0.0) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_markdown(segments, title, time_offset), encoding="utf-8")
    return output_path
