"""Deepgram API client for transcription services."""
import logging
from pathlib import Path
from typing import Any, Dict, List

from deepgram import (
    DeepgramClient as DGClient,
    PrerecordedOptions
)

from models.segment import TimedSegment
from utils.config import DeepgramSettings
from utils.exceptions import TranscriptionError


logger = logging.getLogger(__name__)


class DeepgramClient:
    """Client for Deepgram Nova-2 prerecorded transcription."""

    def __init__(self, settings: DeepgramSettings):
        if not settings.api_key:
            raise TranscriptionError("Deepgram API key not configured")

        try:
            self._client = DGClient(settings.api_key)
            logger.info("Deepgram client initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize Deepgram client: {e}")
            raise TranscriptionError(f"Deepgram client initialization failed: {str(e)}")
        self._model = settings.model
        self._language = settings.language

    def transcribe_segments(self, audio_path: Path, language: str = None) -> List[TimedSegment]:
        """Transcribe an audio file into utterance-level segments.

        Args:
            audio_path: Path to the audio file
            language: Language code, defaults to the configured one

        Returns:
            One segment per Deepgram utterance
        """
        language = language or self._language
        logger.info(f"Starting Deepgram transcription: model={self._model}, language={language}")

        try:
            options = PrerecordedOptions(
                model=self._model,
                language=language,
                smart_format=True,
                punctuate=True,
                utterances=True,
            )
            with open(audio_path, "rb") as audio_file:
                payload = {"buffer": audio_file.read()}

            logger.debug("Sending transcription request to Deepgram API")
            response = self._client.listen.rest.v("1").transcribe_file(payload, options)
            if not response:
                raise TranscriptionError("Empty response from Deepgram API")

            segments = self._format_utterances(response)
            logger.info(f"Deepgram transcription completed: {len(segments)} utterances")
            return segments

        except TranscriptionError:
            raise
        except Exception as exc:
            logger.error(f"Deepgram API error: {exc}")
            raise TranscriptionError(f"Deepgram transcription failed: {str(exc)}") from exc

    def _format_utterances(self, response) -> List[TimedSegment]:
        """Map Deepgram utterances to segments, skipping empty ones."""
        results = self._as_dict(response).get("results") or {}
        utterances = results.get("utterances") or []
        if not utterances:
            logger.warning("No utterances found in Deepgram response")

        segments = []
        for utterance in utterances:
            text = (utterance.get("transcript") or "").strip()
            start = float(utterance.get("start", 0.0))
            end = float(utterance.get("end", 0.0))
            if not text or end <= start:
                continue
            segments.append(TimedSegment(start=start, end=end, text=text))
        return segments

    @staticmethod
    def _as_dict(response) -> Dict[str, Any]:
        # SDK responses are dataclasses with to_dict(); tests may pass plain dicts.
        if hasattr(response, "to_dict"):
            return response.to_dict()
        if isinstance(response, dict):
            return response
        raise TranscriptionError(f"Invalid response format from Deepgram: {type(response)}")
