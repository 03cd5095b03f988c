"""Input validation helpers for job submissions."""
from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Optional, Tuple

from utils.exceptions import InvalidInputError

YOUTUBE_URL_RE = re.compile(r"^https?://(www\.|m\.)?(youtube\.com|youtu\.be)/\S+$")
_EMBEDDED_URL_RE = re.compile(r"(https?://)?(www\.)?(youtube\.com|youtu\.?be)/[^\s\"']+")
_START_PARAM_RE = re.compile(r"([&?])t=\d+s?&?")
_UNSAFE_FILENAME_RE = re.compile(r"[^a-zA-Z0-9\-_ ]")

ALLOWED_AUDIO_MIME_TYPES = frozenset({
    "audio/mpeg",
    "audio/mp3",
    "audio/wav",
    "audio/x-wav",
    "audio/ogg",
    "audio/m4a",
    "audio/x-m4a",
    "audio/aac",
})
ALLOWED_AUDIO_EXTENSIONS = frozenset({".mp3", ".wav", ".ogg", ".m4a", ".aac"})


def is_valid_youtube_url(url: Optional[str]) -> bool:
    if not url or not isinstance(url, str):
        return False
    return bool(YOUTUBE_URL_RE.match(url.strip()))


def extract_youtube_url(raw: Optional[str]) -> Optional[str]:
    """Find a YouTube URL inside an arbitrary request body string."""
    if not raw:
        return None
    text = raw.strip()
    if text.startswith("http") and is_valid_youtube_url(text):
        return text
    match = _EMBEDDED_URL_RE.search(text)
    if not match:
        return None
    url = match.group(0)
    if not url.startswith("http"):
        url = "https://" + url
    return url


def strip_start_time(url: str) -> str:
    """Remove the ``t=`` start offset parameter, which yt-dlp does not need."""
    cleaned = _START_PARAM_RE.sub(lambda m: m.group(1), url)
    return cleaned.rstrip("?&")


def sanitize_filename(name: str, max_length: int = 100) -> str:
    return _UNSAFE_FILENAME_RE.sub("_", name)[:max_length].strip()


def _coerce_seconds(value: Any, field_name: str) -> Optional[float]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InvalidInputError(f"{field_name} must be a number in seconds")
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{field_name} must be a number in seconds")
    if seconds != seconds or seconds < 0:
        raise InvalidInputError(f"{field_name} must be a non-negative number in seconds")
    return seconds


def validate_time_range(start: Any, end: Any) -> Optional[Tuple[float, float]]:
    """Return ``(start, end)`` or ``None`` when no range was requested.

    A range needs both ends and ``start < end``.
    """
    start_s = _coerce_seconds(start, "startTime")
    end_s = _coerce_seconds(end, "endTime")
    if start_s is None and end_s is None:
        return None
    if start_s is None or end_s is None:
        raise InvalidInputError("startTime and endTime must be provided together")
    if start_s >= end_s:
        raise InvalidInputError("startTime must be less than endTime")
    return start_s, end_s


def is_allowed_audio_file(filename: str, mimetype: Optional[str] = None) -> bool:
    if mimetype and mimetype in ALLOWED_AUDIO_MIME_TYPES:
        return True
    return Path(filename).suffix.lower() in ALLOWED_AUDIO_EXTENSIONS
