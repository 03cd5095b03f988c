"""Application configuration utilities."""
from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional
import logging
import os

from dotenv import load_dotenv


load_dotenv()

logger = logging.getLogger(__name__)

TRANSCRIPTION_PROVIDERS = ("openai", "deepgram", "simulation")
TRANSLATION_PROVIDERS = ("openai", "deepseek", "simulation")


@dataclass(frozen=True)
class OpenAISettings:
    api_key: str
    model: str = "gpt-4o-mini"
    transcription_model: str = "whisper-1"
    timeout_seconds: float = 120.0


@dataclass(frozen=True)
class DeepgramSettings:
    api_key: str
    model: str = "nova-2"
    language: str = "ar"


@dataclass(frozen=True)
class DeepSeekSettings:
    api_key: str
    endpoint: str = "https://api.deepseek.com/v1/chat/completions"
    model: str = "deepseek-chat"


@dataclass(frozen=True)
class StorageSettings:
    upload_dir: Path
    output_dir: Path
    temp_dir: Path


@dataclass(frozen=True)
class JobSettings:
    max_jobs_in_memory: int = 100
    max_workers: int = 4
    upload_cleanup_delay_seconds: float = 3600.0
    max_upload_bytes: int = 50 * 1024 * 1024
    preview_chars: int = 2000


@dataclass(frozen=True)
class AppConfig:
    storage: StorageSettings
    jobs: JobSettings = field(default_factory=JobSettings)
    openai: Optional[OpenAISettings] = None
    deepgram: Optional[DeepgramSettings] = None
    deepseek: Optional[DeepSeekSettings] = None
    transcription_provider: str = "simulation"
    translation_provider: str = "simulation"
    source_language: str = "ar"
    target_language: str = "en"
    allowed_origins: tuple[str, ...] = field(default_factory=lambda: ("*",))


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ValueError(f"Environment variable {name} must be positive, got {value}")
    return value


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number, got {raw!r}")
    if value < 0:
        raise ValueError(f"Environment variable {name} must not be negative, got {value}")
    return value


def _pick_provider(name: str, choices: tuple[str, ...], default: str) -> str:
    value = os.getenv(name, default).strip().lower()
    if value not in choices:
        raise ValueError(
            f"{name} must be one of: {', '.join(choices)} (got {value!r})"
        )
    return value


def load_app_config() -> AppConfig:
    """Build an ``AppConfig`` from the current environment.

    No variable is mandatory. When ``USE_SIMULATION`` is ``true`` or no
    provider key is present the pipeline runs against simulated providers.
    """
    base_dir = Path(os.getenv("APP_BASE_DIR", Path.cwd()))
    storage = StorageSettings(
        upload_dir=base_dir / os.getenv("UPLOAD_DIR", "uploads"),
        output_dir=base_dir / os.getenv("OUTPUT_DIR", "outputs"),
        temp_dir=base_dir / os.getenv("TEMP_DIR", "temp"),
    )

    jobs = JobSettings(
        max_jobs_in_memory=_int_env("MAX_JOBS_IN_MEMORY", 100),
        max_workers=_int_env("MAX_JOB_WORKERS", 4),
        upload_cleanup_delay_seconds=_float_env("UPLOAD_CLEANUP_DELAY_SECONDS", 3600.0),
        max_upload_bytes=_int_env("MAX_UPLOAD_SIZE_MB", 50) * 1024 * 1024,
        preview_chars=_int_env("PREVIEW_CHARS", 2000),
    )

    openai_key = os.getenv("OPENAI_API_KEY")
    deepgram_key = os.getenv("DEEPGRAM_API_KEY")
    deepseek_key = os.getenv("DEEPSEEK_API_KEY")
    source_language = os.getenv("SOURCE_LANGUAGE", "ar")

    use_simulation = os.getenv("USE_SIMULATION", "false").lower() == "true" or not (
        openai_key or deepgram_key
    )
    if use_simulation:
        transcription_provider = "simulation"
        translation_provider = "simulation"
    else:
        transcription_provider = _pick_provider(
            "TRANSCRIPTION_PROVIDER", TRANSCRIPTION_PROVIDERS,
            "openai" if openai_key else "deepgram",
        )
        translation_default = (
            "openai" if openai_key else "deepseek" if deepseek_key else "simulation"
        )
        if translation_default == "simulation" and not os.getenv("TRANSLATION_PROVIDER"):
            logger.warning(
                "No OpenAI or DeepSeek key configured; translation runs in simulation mode"
            )
        translation_provider = _pick_provider(
            "TRANSLATION_PROVIDER", TRANSLATION_PROVIDERS, translation_default,
        )

    return AppConfig(
        storage=storage,
        jobs=jobs,
        openai=(
            OpenAISettings(
                api_key=openai_key,
                model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
                transcription_model=os.getenv("OPENAI_TRANSCRIPTION_MODEL", "whisper-1"),
                timeout_seconds=_float_env("OPENAI_TIMEOUT_SECONDS", 120.0),
            )
            if openai_key
            else None
        ),
        deepgram=(
            DeepgramSettings(
                api_key=deepgram_key,
                model=os.getenv("DEEPGRAM_MODEL", "nova-2"),
                language=os.getenv("DEEPGRAM_LANGUAGE", source_language),
            )
            if deepgram_key
            else None
        ),
        deepseek=(
            DeepSeekSettings(
                api_key=deepseek_key,
                model=os.getenv("DEEPSEEK_MODEL", "deepseek-chat"),
            )
            if deepseek_key
            else None
        ),
        transcription_provider=transcription_provider,
        translation_provider=translation_provider,
        source_language=source_language,
        target_language=os.getenv("TARGET_LANGUAGE", "en"),
        allowed_origins=tuple(
            origin.strip()
            for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",")
        ),
    )


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    return load_app_config()
