"""SubRip (.srt) rendering of timed transcripts."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable

from core.postprocessing.timestamps import format_srt_time
from models.segment import TimedSegment


def render_srt(segments: Iterable[TimedSegment], time_offset: float = 0.0) -> str:
    blocks = []
    for index, segment in enumerate(segments, start=1):
        start = format_srt_time(segment.start + time_offset)
        end = format_srt_time(segment.end + time_offset)
        blocks.append(f"{index}\n{start} --> {end}\n{segment.text}\n")
    return "\n".join(blocks)


def write_srt(segments: Iterable[TimedSegment], output_path: Path, time_offset: float = 0.0) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_srt(segments, time_offset), encoding="utf-8")
    return output_path
