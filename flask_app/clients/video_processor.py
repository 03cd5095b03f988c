"""Audio extraction client for YouTube URLs (yt-dlp download, pydub trimming)."""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yt_dlp
from pydub import AudioSegment

from flask_app.services.stages import ExtractedAudio
from utils.exceptions import ProcessingError

logger = logging.getLogger(__name__)

_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36"
)
_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-us,en;q=0.5",
    "Accept-Encoding": "gzip, deflate",
    "DNT": "1",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}


class VideoProcessor:
    """Downloads the audio track of a video URL as mp3."""

    def __init__(self, audio_quality: str = "192"):
        self.audio_quality = audio_quality

    def extract(self, source_url: str, output_dir: Path, basename: str,
                time_range: Optional[Tuple[float, float]] = None) -> ExtractedAudio:
        """Download audio from ``source_url`` into ``output_dir``.

        Args:
            source_url: URL of the video
            output_dir: Directory the mp3 is written to (created if missing)
            basename: File name without extension
            time_range: Optional ``(start, end)`` seconds to keep

        Returns:
            The local mp3 and the video title
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Starting audio download: %s", source_url)

        info = self._download(source_url, output_dir / basename)
        audio_path = output_dir / f"{basename}.mp3"
        if not audio_path.exists():
            raise ProcessingError(f"Audio file not found after download: {audio_path.name}")

        if time_range:
            audio_path = self._trim(audio_path, *time_range)

        title = info.get("title") or self._fallback_title()
        logger.info("Audio ready for '%s': %s", title, audio_path)
        return ExtractedAudio(path=audio_path, title=title)

    def _download(self, video_url: str, output_stem: Path) -> Dict[str, Any]:
        ydl_opts = {
            "format": "bestaudio/best",
            "outtmpl": f"{output_stem}.%(ext)s",
            "quiet": True,
            "no_warnings": True,
            "noplaylist": True,
            "user_agent": _USER_AGENT,
            "http_headers": _HEADERS,
            "extractor_retries": 3,
            "fragment_retries": 3,
            "retry_sleep_functions": {
                "http": lambda n: min(4 ** n, 60),
                "fragment": lambda n: min(4 ** n, 60),
                "extractor": lambda n: min(4 ** n, 60),
            },
            "postprocessors": [{
                "key": "FFmpegExtractAudio",
                "preferredcodec": "mp3",
                "preferredquality": self.audio_quality,
            }],
        }

        try:
            with yt_dlp.YoutubeDL(ydl_opts) as ydl:
                logger.debug("Downloading audio from video URL")
                return ydl.extract_info(video_url, download=True) or {}
        except yt_dlp.DownloadError as e:
            error_msg = str(e)
            if "403" in error_msg or "Forbidden" in error_msg:
                raise ProcessingError(
                    "Video download blocked by YouTube. The video may be restricted, "
                    "geo-blocked or require login. Try a different video or upload the audio file directly."
                ) from e
            if "404" in error_msg or "not found" in error_msg.lower():
                raise ProcessingError(
                    "Video not found. Please check the URL is correct and the video is publicly accessible."
                ) from e
            raise ProcessingError(f"Failed to download video: {error_msg}") from e

    def _trim(self, audio_path: Path, start: float, end: float) -> Path:
        """Keep ``[start, end)`` seconds of ``audio_path``; the full file is removed."""
        trimmed_path = audio_path.with_name(f"{audio_path.stem}_trimmed.mp3")
        logger.info("Trimming audio to %.1fs - %.1fs", start, end)
        try:
            audio = AudioSegment.from_file(str(audio_path))
            if start * 1000 >= len(audio):
                raise ProcessingError(
                    f"startTime {start:.1f}s is beyond the end of the audio ({len(audio) / 1000:.1f}s)"
                )
            clip = audio[int(start * 1000):int(end * 1000)]
            clip.export(str(trimmed_path), format="mp3", bitrate=f"{self.audio_quality}k")
        except ProcessingError:
            raise
        except Exception as e:
            raise ProcessingError(f"Failed to trim audio: {e}") from e
        finally:
            audio_path.unlink(missing_ok=True)
        return trimmed_path

    @staticmethod
    def _fallback_title() -> str:
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
        return f"YouTube Video - {stamp}"

    def get_video_metadata(self, video_url: str) -> Dict[str, Any]:
        """Get metadata from video URL without downloading."""
        ydl_opts = {
            "quiet": True,
            "no_warnings": True,
            "skip_download": True,
            "noplaylist": True,
            "user_agent": _USER_AGENT,
            "http_headers": _HEADERS,
            "extractor_retries": 2,
        }
        with yt_dlp.YoutubeDL(ydl_opts) as ydl:
            info = ydl.extract_info(video_url, download=False) or {}
        return {
            "title": info.get("title", "Unknown"),
            "duration": info.get("duration", 0),
            "uploader": info.get("uploader", "Unknown"),
        }

    def check_video_availability(self, video_url: str) -> bool:
        """True when yt-dlp can resolve the video's metadata."""
        try:
            self.get_video_metadata(video_url)
            return True
        except Exception as e:
            logger.warning("Video availability check failed for %s: %s", video_url, e)
            return False
