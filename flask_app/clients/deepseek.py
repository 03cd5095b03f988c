"""DeepSeek translation client."""
import logging
import requests
from typing import List, Sequence

from core.translation.prompts import batch_prompt, parse_numbered_lines, system_prompt
from utils.config import DeepSeekSettings
from utils.exceptions import TranslationError


logger = logging.getLogger(__name__)


class DeepSeekClient:
    """DeepSeek API client for translation services."""

    def __init__(self, settings: DeepSeekSettings, timeout: float = 120):
        """Initialize DeepSeek client with API credentials."""
        if not settings.api_key:
            raise ValueError("DEEPSEEK_API_KEY environment variable is required")

        self.endpoint = settings.endpoint
        self.model = settings.model
        self.timeout = timeout
        self.headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {settings.api_key}"
        }

    def translate_lines(self, lines: Sequence[str], source_language: str,
                        target_language: str) -> List[str]:
        """Translate one numbered batch of lines.

        Raises:
            TranslationError: If the request fails or the line count differs
        """
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt(source_language, target_language)},
                {"role": "user", "content": batch_prompt(lines, source_language, target_language)},
            ],
            "temperature": 0.3,
            "max_tokens": 1000,
        }

        try:
            response = requests.post(
                self.endpoint,
                headers=self.headers,
                json=payload,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"DeepSeek translation error: {e}")
            raise TranslationError(f"DeepSeek translation failed: {str(e)}") from e

        if response.status_code != 200:
            raise TranslationError(f"DeepSeek API error: {response.text}")

        try:
            content = response.json()['choices'][0]['message']['content']
        except (ValueError, KeyError, IndexError) as e:
            raise TranslationError(f"Unexpected DeepSeek response: {e}") from e
        return parse_numbered_lines(content, expected=len(lines))
