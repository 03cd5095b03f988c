"""OpenAI API client for Whisper transcription and GPT segment translation."""
import logging
import os
from pathlib import Path
from typing import Any, List, Sequence

import openai
from pydub import AudioSegment

from core.translation.prompts import batch_prompt, parse_numbered_lines, system_prompt
from models.segment import TimedSegment
from utils.config import OpenAISettings
from utils.exceptions import TranscriptionError, TranslationError


logger = logging.getLogger(__name__)

# Whisper rejects uploads over 25MB; stay below it with some margin.
MAX_SINGLE_UPLOAD_MB = 20


def _field(item: Any, name: str, default: Any = None) -> Any:
    if isinstance(item, dict):
        return item.get(name, default)
    return getattr(item, name, default)


class OpenAIClient:
    """Client for OpenAI Whisper and GPT APIs."""

    def __init__(self, settings: OpenAISettings):
        """
        Initialize OpenAI client.

        Raises:
            TranscriptionError: If API key is missing or client initialization fails
        """
        if not settings.api_key or not settings.api_key.strip():
            raise TranscriptionError("OpenAI API key is required")

        try:
            self._client = openai.OpenAI(
                api_key=settings.api_key.strip(),
                timeout=settings.timeout_seconds,
            )
        except Exception as e:
            logger.error(f"Failed to initialize OpenAI client: {e}")
            raise TranscriptionError(f"OpenAI client initialization failed: {str(e)}")
        self._model = settings.model
        self._transcription_model = settings.transcription_model
        logger.info(f"OpenAI client initialized, model {self._model}")

    def transcribe_segments(self, audio_path: Path, language: str) -> List[TimedSegment]:
        """Transcribe audio into timed segments, chunking large files.

        Args:
            audio_path: Path to audio file
            language: Language code spoken in the audio

        Returns:
            Segments ordered by start time
        """
        logger.info(f"Starting Whisper transcription for {audio_path}")
        try:
            size_mb = os.path.getsize(audio_path) / (1024 * 1024)
            logger.info(f"Audio file size: {size_mb:.1f}MB")
            if size_mb > MAX_SINGLE_UPLOAD_MB:
                return self._transcribe_chunked(Path(audio_path), language)
            return self._transcribe_file(Path(audio_path), language)
        except TranscriptionError:
            raise
        except openai.AuthenticationError as exc:
            raise TranscriptionError("OpenAI authentication failed - check API key") from exc
        except openai.RateLimitError as exc:
            raise TranscriptionError("OpenAI rate limit exceeded") from exc
        except Exception as exc:
            logger.error(f"Whisper transcription failed: {exc}")
            raise TranscriptionError(f"Whisper transcription failed: {str(exc)}") from exc

    def _transcribe_file(self, audio_path: Path, language: str, offset: float = 0.0) -> List[TimedSegment]:
        with open(audio_path, "rb") as audio_file:
            response = self._client.audio.transcriptions.create(
                model=self._transcription_model,
                file=audio_file,
                language=language,
                response_format="verbose_json",
                timestamp_granularities=["segment"],
            )
        segments = []
        for raw in _field(response, "segments") or []:
            text = (_field(raw, "text") or "").strip()
            start = float(_field(raw, "start", 0.0)) + offset
            end = float(_field(raw, "end", 0.0)) + offset
            if not text or end <= start:
                logger.debug(f"Skipping empty Whisper segment at {start:.2f}s")
                continue
            segments.append(TimedSegment(start=start, end=end, text=text))
        logger.info(f"Whisper returned {len(segments)} segments for {audio_path.name}")
        return segments

    def _transcribe_chunked(self, audio_path: Path, language: str,
                            chunk_minutes: int = 10) -> List[TimedSegment]:
        """Split into mono 16kHz chunks and shift each chunk's segments by its offset."""
        logger.info("Processing with chunking strategy")
        audio = AudioSegment.from_file(str(audio_path)).set_channels(1).set_frame_rate(16000)
        chunk_ms = chunk_minutes * 60 * 1000

        segments: List[TimedSegment] = []
        for index, start_ms in enumerate(range(0, len(audio), chunk_ms)):
            chunk_path = audio_path.with_name(f"{audio_path.stem}_chunk_{index}.mp3")
            try:
                audio[start_ms:start_ms + chunk_ms].export(str(chunk_path), format="mp3")
                logger.info(f"Processing chunk {index + 1}")
                segments.extend(self._transcribe_file(chunk_path, language, offset=start_ms / 1000))
            finally:
                chunk_path.unlink(missing_ok=True)
        return segments

    def translate_lines(self, lines: Sequence[str], source_language: str,
                        target_language: str) -> List[str]:
        """Translate one numbered batch; the result has one entry per input line."""
        try:
            completion = self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt(source_language, target_language)},
                    {"role": "user", "content": batch_prompt(lines, source_language, target_language)},
                ],
                temperature=0.3,
                max_tokens=1000,
            )
        except openai.AuthenticationError as exc:
            logger.error("OpenAI authentication error: %s", exc)
            raise TranslationError("OpenAI authentication failed - check API key") from exc
        except openai.RateLimitError as exc:
            logger.error("OpenAI rate limit error: %s", exc)
            raise TranslationError("OpenAI rate limit exceeded") from exc
        except openai.APIError as exc:
            logger.error("OpenAI API error: %s", exc)
            raise TranslationError(f"OpenAI API error: {exc}") from exc

        content = completion.choices[0].message.content
        if not content:
            raise TranslationError("OpenAI returned empty translation")
        return parse_numbered_lines(content, expected=len(lines))
