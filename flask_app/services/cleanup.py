"""Deferred removal of uploaded files.

An uploaded file is kept for a while after its job finished so a client can
still fetch the results; every access pushes the deadline back.
"""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class DeferredCleanup:
    """One cancellable ``threading.Timer`` per key."""

    def __init__(self, delay_seconds: float):
        self.delay_seconds = delay_seconds
        self._timers: Dict[str, Tuple[threading.Timer, Path]] = {}
        self._lock = threading.Lock()
        self._closed = False

    def __len__(self) -> int:
        with self._lock:
            return len(self._timers)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._timers

    def schedule(self, key: str, path: Path, delay: Optional[float] = None) -> None:
        """Remove ``path`` after ``delay`` seconds, replacing any earlier timer for ``key``."""
        delay = self.delay_seconds if delay is None else delay
        timer = threading.Timer(delay, self._expire, args=(key,))
        timer.daemon = True
        with self._lock:
            if self._closed:
                logger.debug("Cleanup closed; not scheduling removal of %s", path)
                return
            previous = self._timers.pop(key, None)
            if previous:
                previous[0].cancel()
            self._timers[key] = (timer, Path(path))
            timer.start()
        logger.debug("Scheduled removal of %s in %.0fs", path, delay)

    def touch(self, key: str) -> bool:
        """Restart the countdown for ``key``. Returns False if nothing is scheduled."""
        with self._lock:
            entry = self._timers.get(key)
        if entry is None:
            return False
        self.schedule(key, entry[1])
        return True

    def cancel(self, key: str) -> Optional[Path]:
        """Drop the timer for ``key`` without removing the file."""
        with self._lock:
            entry = self._timers.pop(key, None)
        if entry is None:
            return None
        entry[0].cancel()
        return entry[1]

    def remove_now(self, key: str, path: Path) -> None:
        self.cancel(key)
        remove_file(path)

    def shutdown(self) -> None:
        """Cancel every pending timer. Files already scheduled are left on disk."""
        with self._lock:
            self._closed = True
            entries = list(self._timers.values())
            self._timers.clear()
        for timer, _ in entries:
            timer.cancel()
        if entries:
            logger.info("Cancelled %d pending file cleanups", len(entries))

    def _expire(self, key: str) -> None:
        with self._lock:
            entry = self._timers.get(key)
            if entry is None or entry[0] is not threading.current_thread():
                return
            del self._timers[key]
        remove_file(entry[1])


def remove_file(path: Path) -> bool:
    path = Path(path)
    try:
        if path.exists():
            path.unlink()
            logger.info("Cleaned up file: %s", path)
            return True
    except OSError as exc:
        logger.warning("Failed to clean up file %s: %s", path, exc)
    return False
