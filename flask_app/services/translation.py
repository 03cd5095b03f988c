"""Segment translation in numbered batches."""
import logging
import time
from typing import Callable, List, Optional, Sequence

from models.segment import TimedSegment
from utils.exceptions import TranslationError


logger = logging.getLogger(__name__)

BATCH_SIZE = 5


class SegmentTranslator:
    """Translates transcript segments while keeping their timing.

    Segments are sent in batches of ``batch_size`` numbered lines. Every
    batch must come back with exactly one line per segment; any failed batch
    fails the whole translation.
    """

    def __init__(self, client, source_language: str, target_language: str,
                 provider: str, batch_size: int = BATCH_SIZE, batch_delay: float = 0.2):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.client = client
        self.source_language = source_language
        self.target_language = target_language
        self.provider = provider
        self.batch_size = batch_size
        self.batch_delay = batch_delay

    def translate(self, segments: Sequence[TimedSegment],
                  progress: Optional[Callable[[int], None]] = None) -> List[TimedSegment]:
        logger.info(
            f"Starting {self.provider} translation for {len(segments)} segments "
            f"({self.source_language} -> {self.target_language})"
        )
        translated: List[TimedSegment] = []
        total = len(segments)
        for offset in range(0, total, self.batch_size):
            batch = list(segments[offset:offset + self.batch_size])
            lines = self._translate_batch(batch, offset // self.batch_size + 1)
            for segment, line in zip(batch, lines):
                translated.append(
                    TimedSegment(start=segment.start, end=segment.end, text=line, original=segment.text)
                )
            if progress:
                progress(int(100 * len(translated) / total))
            if self.batch_delay and len(translated) < total:
                time.sleep(self.batch_delay)

        logger.info(f"{self.provider} translation completed: {len(translated)} segments")
        return translated

    def _translate_batch(self, batch: List[TimedSegment], number: int) -> List[str]:
        try:
            lines = self.client.translate_lines(
                [segment.text for segment in batch], self.source_language, self.target_language
            )
        except TranslationError:
            raise
        except Exception as exc:
            logger.error(f"{self.provider} translation of batch {number} failed: {exc}")
            raise TranslationError(f"Failed to translate text: {str(exc)}") from exc
        if len(lines) != len(batch):
            raise TranslationError(
                f"Translation returned {len(lines)} lines for a batch of {len(batch)} segments"
            )
        return list(lines)


def create_translator(config) -> SegmentTranslator:
    """Build the translator selected by ``config.translation_provider``."""
    provider = config.translation_provider
    batch_delay = 0.2
    if provider == "openai":
        from flask_app.clients.openai import OpenAIClient
        if config.openai is None:
            raise TranslationError("OPENAI_API_KEY is required for OpenAI translation")
        client = OpenAIClient(config.openai)
    elif provider == "deepseek":
        from flask_app.clients.deepseek import DeepSeekClient
        if config.deepseek is None:
            raise TranslationError("DEEPSEEK_API_KEY is required for DeepSeek translation")
        client = DeepSeekClient(config.deepseek)
    elif provider == "simulation":
        from flask_app.clients.simulation import SimulatedTranslationClient
        client = SimulatedTranslationClient()
        batch_delay = 0.0
    else:
        raise TranslationError(f"Unknown translation provider: {provider}")
    return SegmentTranslator(
        client, config.source_language, config.target_language, provider, batch_delay=batch_delay
    )
