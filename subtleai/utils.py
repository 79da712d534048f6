"""Utility functions for SubtleAI."""

import os
import re
import shutil
import logging
import threading
from typing import Optional
from .exceptions import FileSystemError, JobCancelledError

logger = logging.getLogger(__name__)

# H:MM:SS,mmm or H:MM:SS.mmm, hours unbounded
_SRT_TIME_RE = re.compile(r"(\d+):(\d{1,2}):(\d{1,2})[,.](\d+)")

def ensure_dir_exists(dir_path: str) -> None:
    """
    Ensures that a directory exists. Creates it if it doesn't.

    Args:
        dir_path: The path to the directory.

    Raises:
        FileSystemError: If the directory cannot be created due to permissions
                         or if the path exists but is not a directory.
    """
    if not dir_path:
        raise ValueError("Directory path cannot be empty.")
    try:
        if not os.path.exists(dir_path):
            os.makedirs(dir_path)
            logger.info(f"Created directory: {dir_path}")
        elif not os.path.isdir(dir_path):
            raise FileSystemError(f"Path exists but is not a directory: {dir_path}")
    except OSError as e:
        logger.error(f"Error creating or accessing directory {dir_path}: {e}", exc_info=True)
        raise FileSystemError(f"Could not create or access directory {dir_path}: {e}") from e

def format_time_srt(seconds: float) -> str:
    """
    Formats seconds into SRT time format HH:MM:SS,mmm.

    Milliseconds are rounded on the total, so 59.9996 becomes 00:01:00,000
    rather than 00:00:59,1000. Hours are not wrapped at 24.

    Args:
        seconds: Time in seconds.

    Returns:
        Formatted time string.
    """
    if seconds < 0:
        seconds = 0.0 # Ensure non-negative time
    milliseconds = round(seconds * 1000)
    hrs = milliseconds // 3600000
    milliseconds %= 3600000
    mins = milliseconds // 60000
    milliseconds %= 60000
    secs = milliseconds // 1000
    milliseconds %= 1000
    return f"{hrs:02d}:{mins:02d}:{secs:02d},{milliseconds:03d}"

def parse_time_srt(value: str) -> Optional[float]:
    """
    Parses an SRT timestamp (comma or dot before the sub-second part) into seconds.

    Sub-second digits are read as a decimal fraction, so ``,5`` is 500 ms and
    ``,0500`` is 50 ms.

    Returns:
        The time in seconds, or None if no timestamp is found in ``value``.
    """
    match = _SRT_TIME_RE.search(value)
    if not match:
        return None
    hrs, mins, secs, frac = match.groups()
    return int(hrs) * 3600 + int(mins) * 60 + int(secs) + int(frac) / (10 ** len(frac))

def remove_path(path: Optional[str]) -> bool:
    """
    Removes a file or a directory tree, logging (never raising) on failure.

    Returns:
        True if something was removed.
    """
    if not path or not os.path.exists(path):
        return False
    try:
        if os.path.isdir(path):
            shutil.rmtree(path)
        else:
            os.remove(path)
        logger.info(f"Cleaned up temporary path: {path}")
        return True
    except OSError as e:
        logger.warning(f"Could not remove temporary path {path}: {e}")
        return False

def check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    """Cancellation checkpoint: raises JobCancelledError once ``cancel_event`` is set."""
    if cancel_event is not None and cancel_event.is_set():
        raise JobCancelledError("Job cancelled")
