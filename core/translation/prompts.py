"""Prompts for translating transcript segments in numbered batches."""
from __future__ import annotations

import re
from typing import List, Sequence

from utils.exceptions import TranslationError

LANGUAGE_NAMES = {
    "ar": "Arabic",
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "tr": "Turkish",
    "ur": "Urdu",
    "fa": "Persian",
}

SYSTEM_PROMPT_TEMPLATE = (
    "You are a skilled translator from {source_language} to {target_language}. "
    "Provide accurate, natural-sounding translations."
)

BATCH_PROMPT_TEMPLATE = (
    "Translate the following {source_language} text segments to {target_language}.\n"
    "Keep the same meaning and style. Return ONLY the translations in the same order,\n"
    "one per line, without adding any explanation or additional text:\n\n"
    "{numbered_lines}"
)

_NUMBERING_RE = re.compile(r"^\d+\.\s*")


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code.lower(), code)


def system_prompt(source_language: str, target_language: str) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(
        source_language=language_name(source_language),
        target_language=language_name(target_language),
    )


def batch_prompt(lines: Sequence[str], source_language: str, target_language: str) -> str:
    numbered = "\n".join(f"{index}. {line}" for index, line in enumerate(lines, start=1))
    return BATCH_PROMPT_TEMPLATE.format(
        source_language=language_name(source_language),
        target_language=language_name(target_language),
        numbered_lines=numbered,
    )


def parse_numbered_lines(response_text: str, expected: int) -> List[str]:
    """Split a batch response into one translation per input line.

    Raises:
        TranslationError: the response does not hold exactly ``expected`` lines
    """
    lines = [line.strip() for line in (response_text or "").splitlines() if line.strip()]
    if len(lines) != expected:
        raise TranslationError(
            f"Translation returned {len(lines)} lines for a batch of {expected} segments"
        )
    return [_NUMBERING_RE.sub("", line).strip() for line in lines]
