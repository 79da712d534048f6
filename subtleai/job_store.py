"""On-disk store for completed subtitle output, addressed by job id, with expiry."""

import json
import logging
import os
import re
import threading
import time
from typing import Any, Dict, Optional

from .exceptions import FileSystemError, InputError
from .utils import ensure_dir_exists

logger = logging.getLogger(__name__)

UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


def is_valid_job_id(job_id: Optional[str]) -> bool:
    return bool(job_id) and bool(UUID_RE.match(job_id))


class JobStore:
    """
    Persists ``<job_id>.srt`` plus a ``<job_id>.json`` metadata file.

    Each job id is written at most once by a single run, so no locking is
    needed between concurrent runs.
    """

    def __init__(self, root_dir: str, expiry_seconds: float = 30 * 60):
        self.root_dir = root_dir
        self.expiry_seconds = expiry_seconds
        ensure_dir_exists(root_dir)

    def _srt_path(self, job_id: str) -> str:
        if not is_valid_job_id(job_id):
            raise InputError(f"Invalid job ID: {job_id!r}")
        return os.path.join(self.root_dir, f"{job_id}.srt")

    def _meta_path(self, job_id: str) -> str:
        if not is_valid_job_id(job_id):
            raise InputError(f"Invalid job ID: {job_id!r}")
        return os.path.join(self.root_dir, f"{job_id}.json")

    def save(self, job_id: str, srt_content: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        srt_path, meta_path = self._srt_path(job_id), self._meta_path(job_id)
        try:
            with open(srt_path, "w", encoding="utf-8") as f:
                f.write(srt_content)
            with open(meta_path, "w", encoding="utf-8") as f:
                json.dump({**(metadata or {}), "timestamp": time.time()}, f)
        except OSError as e:
            logger.error(f"Failed to store subtitles for job {job_id}: {e}")
            raise FileSystemError(f"Could not store subtitles for job {job_id}: {e}") from e
        logger.info(f"Stored subtitles for job {job_id}")

    def get_srt(self, job_id: str) -> Optional[str]:
        path = self._srt_path(job_id)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def get_metadata(self, job_id: str) -> Optional[Dict[str, Any]]:
        path = self._meta_path(job_id)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def download_filename(self, job_id: str) -> str:
        """Original upload name with an .srt extension, or ``subtitles.srt``."""
        metadata = self.get_metadata(job_id) or {}
        original = metadata.get("originalFilename")
        if not original:
            return "subtitles.srt"
        return os.path.splitext(os.path.basename(original))[0] + ".srt"

    def delete(self, job_id: str) -> None:
        for path in (self._srt_path(job_id), self._meta_path(job_id)):
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Could not delete {path}: {e}")

    def cleanup_expired(self, now: Optional[float] = None) -> int:
        """Deletes jobs older than ``expiry_seconds``. Returns how many were removed."""
        now = time.time() if now is None else now
        deleted = 0
        for name in os.listdir(self.root_dir):
            if not name.endswith(".json"):
                continue
            job_id = name[: -len(".json")]
            if not is_valid_job_id(job_id):
                continue
            try:
                with open(os.path.join(self.root_dir, name), "r", encoding="utf-8") as f:
                    timestamp = float(json.load(f).get("timestamp", 0))
            except (OSError, ValueError, AttributeError) as e:
                logger.warning(f"[cleanup] Unreadable metadata {name}: {e}")
                continue
            if now - timestamp > self.expiry_seconds:
                self.delete(job_id)
                deleted += 1

        if deleted:
            logger.info(f"[cleanup] Deleted {deleted} expired SRT file(s)")
        return deleted

    def start_cleanup_thread(self, interval_seconds: float = 5 * 60) -> threading.Event:
        """
        Runs :meth:`cleanup_expired` every ``interval_seconds`` on a daemon thread.

        Returns:
            An event; set it to stop the sweep.
        """
        stop = threading.Event()

        def sweep():
            while not stop.wait(interval_seconds):
                try:
                    self.cleanup_expired()
                except OSError as e:
                    logger.warning(f"[cleanup] Sweep failed: {e}")

        threading.Thread(target=sweep, name="subtleai-cleanup", daemon=True).start()
        logger.info(f"[cleanup] Cleanup job started (every {interval_seconds:.0f} seconds)")
        return stop
