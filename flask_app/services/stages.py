"""Pipeline stage contract and the adapters around each collaborator.

Every stage is a single ``run(ctx)`` call that either returns the stage's
output or raises. ``StageRunner.execute`` turns any collaborator exception
into ``StageFailure`` so the orchestrator only deals with one failure type.
"""
from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from models.artifact import FILE_EXTENSIONS
from models.job import SourceKind, SourceRef
from models.segment import TimedSegment, ensure_ordered
from utils.exceptions import JobCancelled, StageFailure
from utils.validators import sanitize_filename

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractedAudio:
    path: Path
    title: str


class Downloader(Protocol):
    def extract(self, source_url: str, output_dir: Path, basename: str,
                time_range: Optional[Tuple[float, float]] = None) -> ExtractedAudio:
        ...


class Transcriber(Protocol):
    def transcribe(self, audio_path: Path) -> List[TimedSegment]:
        ...


class Translator(Protocol):
    def translate(self, segments: Sequence[TimedSegment],
                  progress: Optional[Callable[[int], None]] = None) -> List[TimedSegment]:
        ...


class DocumentRenderer(Protocol):
    def render(self, file_type: str, segments: Sequence[TimedSegment], title: str,
               output_path: Path, time_offset: float = 0.0) -> Path:
        ...


@dataclass
class StageContext:
    """Everything a stage may read, plus hooks back into the orchestrator."""

    job_id: str
    source: SourceRef
    workspace: Path
    title: Optional[str] = None
    outputs: Dict[str, Any] = field(default_factory=dict)
    temp_files: List[Path] = field(default_factory=list)
    output_files: List[Path] = field(default_factory=list)
    report_progress: Callable[[int], None] = lambda pct: None
    cancelled: Callable[[], bool] = lambda: False

    def check_cancelled(self) -> None:
        if self.cancelled():
            raise JobCancelled(f"Job {self.job_id} cancelled")


class StageRunner(ABC):
    """One pipeline step. ``name`` is the job's progress key for the step."""

    name: str = ""

    @abstractmethod
    def run(self, ctx: StageContext) -> Any:
        """Do the work and return the stage output."""

    def execute(self, ctx: StageContext) -> Any:
        started = time.monotonic()
        try:
            output = self.run(ctx)
        except (JobCancelled, StageFailure) as exc:
            if isinstance(exc, StageFailure) and exc.stage is None:
                exc.stage = self.name
            raise
        except Exception as exc:
            logger.error("Stage %s failed for job %s: %s", self.name, ctx.job_id, exc)
            raise StageFailure(str(exc) or exc.__class__.__name__, stage=self.name) from exc
        logger.info("Stage %s finished for job %s in %.1fs",
                    self.name, ctx.job_id, time.monotonic() - started)
        return output


class ExtractAudioStage(StageRunner):
    """Produce a local audio file: download a URL, or hand over an upload."""

    name = "extracting"

    def __init__(self, downloader: Downloader):
        self.downloader = downloader

    def run(self, ctx: StageContext) -> ExtractedAudio:
        source = ctx.source
        if source.kind is SourceKind.UPLOAD:
            path = Path(source.value)
            if not path.is_file():
                raise StageFailure(f"Uploaded file not found: {path.name}")
            title = ctx.title or f"Uploaded Audio: {path.stem}"
            return ExtractedAudio(path=path, title=title)

        audio = self.downloader.extract(
            source.value,
            output_dir=ctx.workspace,
            basename=ctx.job_id,
            time_range=source.time_range,
        )
        if not audio.path.exists():
            raise StageFailure("Audio file missing after download.")
        ctx.temp_files.append(audio.path)
        return audio


class TranscribeStage(StageRunner):
    name = "transcribing"

    def __init__(self, transcriber: Transcriber):
        self.transcriber = transcriber

    def run(self, ctx: StageContext) -> List[TimedSegment]:
        audio: ExtractedAudio = ctx.outputs["extracting"]
        segments = ensure_ordered(self.transcriber.transcribe(audio.path))
        if not segments:
            raise StageFailure("No transcription output.")
        return segments


class TranslateStage(StageRunner):
    name = "translating"

    def __init__(self, translator: Translator):
        self.translator = translator

    def run(self, ctx: StageContext) -> List[TimedSegment]:
        transcript: List[TimedSegment] = ctx.outputs["transcribing"]
        translation = list(self.translator.translate(transcript, progress=ctx.report_progress))
        if len(translation) != len(transcript):
            raise StageFailure(
                f"Translation returned {len(translation)} segments for {len(transcript)} inputs"
            )
        for source, translated in zip(transcript, translation):
            if (source.start, source.end) != (translated.start, translated.end):
                raise StageFailure("Translation changed segment timing")
        return translation


class RenderDocumentsStage(StageRunner):
    """Render the translation to every output format, one file per type."""

    name = "generating"

    def __init__(self, renderer: DocumentRenderer, output_dir: Path,
                 file_types: Sequence[str] = ("pdf", "markdown", "srt")):
        self.renderer = renderer
        self.output_dir = Path(output_dir)
        self.file_types = tuple(file_types)

    def output_path(self, file_type: str, title: str, stamp: int) -> Path:
        base = sanitize_filename(title) or "transcript"
        return self.output_dir / file_type / f"{base}_{stamp}{FILE_EXTENSIONS[file_type]}"

    def run(self, ctx: StageContext) -> Dict[str, str]:
        translation: List[TimedSegment] = ctx.outputs["translating"]
        title = ctx.title or "Transcript"
        stamp = int(time.time() * 1000)
        files: Dict[str, str] = {}
        for index, file_type in enumerate(self.file_types, start=1):
            ctx.check_cancelled()
            path = self.renderer.render(
                file_type,
                translation,
                title,
                self.output_path(file_type, title, stamp),
                time_offset=ctx.source.time_offset,
            )
            ctx.output_files.append(Path(path))
            files[file_type] = str(path)
            ctx.report_progress(int(100 * index / len(self.file_types)))
        return files
