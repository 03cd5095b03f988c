"""Transcription services for the supported providers."""
import logging
from pathlib import Path
from typing import List

from models.segment import TimedSegment
from utils.exceptions import TranscriptionError


logger = logging.getLogger(__name__)


class TranscriptionService:
    """Adapts a provider client to the pipeline's ``Transcriber`` interface."""

    def __init__(self, client, language: str, provider: str):
        self.client = client
        self.language = language
        self.provider = provider
        logger.info(f"{provider} transcription service initialized (language: {language})")

    def transcribe(self, audio_path: Path) -> List[TimedSegment]:
        """Transcribe a local audio file into ordered timed segments.

        Args:
            audio_path: Path to the audio file

        Returns:
            Segments sorted by start time
        """
        logger.info(f"Starting {self.provider} transcription of {Path(audio_path).name}")
        try:
            segments = self.client.transcribe_segments(Path(audio_path), self.language)
        except TranscriptionError:
            raise
        except Exception as exc:
            logger.error(f"{self.provider} transcription failed: {exc}")
            raise TranscriptionError(f"{self.provider} transcription failed: {str(exc)}") from exc

        segments = sorted(segments, key=lambda segment: segment.start)
        logger.info(f"{self.provider} transcription completed: {len(segments)} segments")
        return segments


def create_transcriber(config) -> TranscriptionService:
    """Build the transcriber selected by ``config.transcription_provider``."""
    provider = config.transcription_provider
    if provider == "openai":
        from flask_app.clients.openai import OpenAIClient
        if config.openai is None:
            raise TranscriptionError("OPENAI_API_KEY is required for OpenAI transcription")
        client = OpenAIClient(config.openai)
    elif provider == "deepgram":
        from flask_app.clients.deepgram import DeepgramClient
        if config.deepgram is None:
            raise TranscriptionError("DEEPGRAM_API_KEY is required for Deepgram transcription")
        client = DeepgramClient(config.deepgram)
    elif provider == "simulation":
        from flask_app.clients.simulation import SimulatedTranscriptionClient
        client = SimulatedTranscriptionClient()
    else:
        raise TranscriptionError(f"Unknown transcription provider: {provider}")
    return TranscriptionService(client, config.source_language, provider)
