"""PDF rendering of timed transcripts."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from fpdf import FPDF

from core.postprocessing.timestamps import format_range, wrap_text
from models.segment import TimedSegment


def _latin1(text: str) -> str:
    # Core PDF fonts only cover latin-1.
    return text.encode("latin-1", "replace").decode("latin-1")


@dataclass
class PDFGenerator:
    """Generate an A4 transcript: one ``[m:ss - m:ss] text`` entry per segment."""

    title: str
    line_width: int = 90
    font_size: int = 12
    line_height: float = 6.35

    def build(self, segments: Iterable[TimedSegment], output_path: Path,
              time_offset: float = 0.0) -> Path:
        pdf = FPDF(format="A4")
        pdf.set_margins(14, 14)
        pdf.set_auto_page_break(auto=True, margin=14)
        pdf.add_page()
        pdf.set_font("Helvetica", "B", 16)
        pdf.multi_cell(0, 10, _latin1(self.title), align="C", new_x="LMARGIN", new_y="NEXT")
        pdf.ln(4)

        segments = list(segments)
        pdf.set_font("Helvetica", size=self.font_size)
        if not segments:
            pdf.cell(0, 10, "No transcript available", new_x="LMARGIN", new_y="NEXT")

        for segment in segments:
            entry = f"{format_range(segment.start + time_offset, segment.end + time_offset)} {segment.text}"
            for line in wrap_text(entry, self.line_width):
                pdf.cell(0, self.line_height, _latin1(line), new_x="LMARGIN", new_y="NEXT")

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        pdf.output(str(output_path))
        return output_path
