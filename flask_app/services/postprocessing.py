"""Document generation for finished translations."""
import logging
from pathlib import Path
from typing import Sequence

from core.postprocessing.markdown_generator import write_markdown
from core.postprocessing.pdf_generator import PDFGenerator
from core.postprocessing.srt_generator import write_srt
from models.artifact import FILE_TYPES
from models.segment import TimedSegment
from utils.exceptions import RenderError


logger = logging.getLogger(__name__)


class DocumentService:
    """Renders timed segments to one of ``FILE_TYPES``."""

    def __init__(self):
        logger.info("Document generation service initialized")

    def render(self, file_type: str, segments: Sequence[TimedSegment], title: str,
               output_path: Path, time_offset: float = 0.0) -> Path:
        """Write ``segments`` as ``file_type`` to ``output_path``.

        Timestamps are shifted by ``time_offset`` so trimmed audio keeps the
        positions of the original video.
        """
        if file_type not in FILE_TYPES:
            raise RenderError(f"Unsupported document type: {file_type}")

        logger.info(f"Generating {file_type} document to {output_path}")
        try:
            if file_type == "pdf":
                path = PDFGenerator(title).build(segments, output_path, time_offset)
            elif file_type == "markdown":
                path = write_markdown(segments, title, output_path, time_offset)
            else:
                path = write_srt(segments, output_path, time_offset)
        except OSError as exc:
            logger.error(f"Failed to write {file_type} document: {exc}")
            raise RenderError(f"Failed to generate {file_type}: {exc}") from exc

        logger.info(f"{file_type} document saved to {path}")
        return path
