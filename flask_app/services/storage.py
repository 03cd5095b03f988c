"""Local disk storage for uploaded audio and rendered documents."""
import os
import logging
import secrets
import time
from pathlib import Path
from typing import Iterable

from werkzeug.datastructures import FileStorage

from utils.config import StorageSettings
from utils.exceptions import InvalidInputError
from utils.validators import ALLOWED_AUDIO_EXTENSIONS, is_allowed_audio_file

logger = logging.getLogger(__name__)


class UploadTooLargeError(InvalidInputError):
    """Raised when an uploaded file exceeds the configured size limit."""


class LocalFileStorage:
    """Keeps uploads, rendered documents and job workspaces on local disk.

    Layout:
    - {upload_dir}/upload-{ts}-{rand}{ext}
    - {output_dir}/{pdf,markdown,srt}/{title}_{ts}{ext}
    - {temp_dir}/{job_id}/ while a job is running
    """

    def __init__(self, settings: StorageSettings, max_upload_bytes: int):
        self.settings = settings
        self.max_upload_bytes = max_upload_bytes

    def ensure_directories(self, file_types: Iterable[str] = ("pdf", "markdown", "srt")) -> None:
        for directory in (self.settings.upload_dir, self.settings.temp_dir):
            directory.mkdir(parents=True, exist_ok=True)
        for file_type in file_types:
            (self.settings.output_dir / file_type).mkdir(parents=True, exist_ok=True)

    def save_upload(self, file: FileStorage) -> Path:
        """Validate and persist an uploaded audio file.

        Raises:
            InvalidInputError: no file, empty name or disallowed type
            UploadTooLargeError: file exceeds ``max_upload_bytes``
        """
        if file is None or not file.filename:
            raise InvalidInputError("No audio file uploaded")

        if not is_allowed_audio_file(file.filename, file.mimetype):
            raise InvalidInputError(
                "Invalid file type. Only audio files are allowed "
                f"({', '.join(sorted(ALLOWED_AUDIO_EXTENSIONS))})"
            )

        file.stream.seek(0, os.SEEK_END)
        size_bytes = file.stream.tell()
        file.stream.seek(0)
        if size_bytes > self.max_upload_bytes:
            raise UploadTooLargeError(
                f"File size ({size_bytes / 1024 / 1024:.2f}MB) exceeds "
                f"maximum allowed ({self.max_upload_bytes // (1024 * 1024)}MB)"
            )
        if size_bytes == 0:
            raise InvalidInputError("Uploaded file is empty")

        ext = Path(file.filename).suffix.lower()
        if ext not in ALLOWED_AUDIO_EXTENSIONS:
            ext = ".mp3"
        name = f"upload-{int(time.time() * 1000)}-{secrets.randbelow(10 ** 9)}{ext}"
        self.settings.upload_dir.mkdir(parents=True, exist_ok=True)
        path = self.settings.upload_dir / name
        file.save(str(path))

        logger.info(
            "Saved upload %s as %s (%.2fKB, %s)",
            file.filename, path.name, size_bytes / 1024, file.mimetype,
        )
        return path
