"""Converts between Segment sequences and SRT (SubRip Text) content."""

import logging
import re
from typing import Iterable, List

from .models import Segment
from .exceptions import FileSystemError
from .utils import format_time_srt, parse_time_srt

logger = logging.getLogger(__name__)

_BLOCK_SEPARATOR_RE = re.compile(r"\n\s*\n")


def split_entries(srt_content: str) -> List[str]:
    """Splits SRT content into its blank-line-delimited entry blocks."""
    normalized = srt_content.replace("\r\n", "\n").strip()
    if not normalized:
        return []
    return [block for block in _BLOCK_SEPARATOR_RE.split(normalized) if block.strip()]


def to_srt(segments: Iterable[Segment]) -> str:
    """
    Serializes segments into SRT text.

    Entries are numbered from 1, separated by a blank line, and the
    output ends with a single trailing newline.
    """
    blocks = []
    for index, segment in enumerate(segments, start=1):
        start = format_time_srt(segment.start)
        end = format_time_srt(segment.end)
        blocks.append(f"{index}\n{start} --> {end}\n{segment.text.strip()}")
    return "\n\n".join(blocks) + "\n"


def parse_srt(srt_content: str) -> List[Segment]:
    """
    Parses SRT text back into segments.

    Within each block the first line containing ``-->`` is the timestamp
    line and everything after it is the text (interior newlines kept).
    Blocks without a timestamp line, with unreadable timestamps, or with
    no text are dropped. Sequence numbers are ignored.

    Args:
        srt_content: SRT file content.

    Returns:
        The parsed segments in file order.
    """
    segments: List[Segment] = []
    for block in split_entries(srt_content):
        lines = block.strip().split("\n")
        ts_index = next((i for i, line in enumerate(lines) if "-->" in line), None)
        if ts_index is None:
            logger.debug(f"Skipping SRT block without timestamp line: {block[:40]!r}")
            continue

        ts_parts = lines[ts_index].split("-->")
        if len(ts_parts) != 2:
            logger.warning(f"Skipping SRT block with malformed timestamp line: {lines[ts_index]!r}")
            continue
        start = parse_time_srt(ts_parts[0])
        end = parse_time_srt(ts_parts[1])
        if start is None or end is None:
            logger.warning(f"Skipping SRT block with unparseable timestamps: {lines[ts_index]!r}")
            continue

        text = "\n".join(lines[ts_index + 1:]).strip()
        if text:
            segments.append(Segment(start=start, end=end, text=text))
    return segments


class SRTFormatter:
    """Writes segments to an .srt file on disk."""

    def write(self, segments: Iterable[Segment], output_path: str) -> int:
        """
        Serializes ``segments`` and writes them to ``output_path`` (UTF-8).

        Returns:
            The number of subtitle entries written.

        Raises:
            FileSystemError: If the file cannot be written.
        """
        segments = list(segments)
        content = to_srt(segments)
        try:
            with open(output_path, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            logger.error(f"Failed to write SRT file to {output_path}: {e}", exc_info=True)
            raise FileSystemError(f"Could not write SRT file: {e}") from e
        logger.info(f"Successfully wrote {len(segments)} subtitle blocks to {output_path}")
        return len(segments)

    def write_text(self, srt_content: str, output_path: str) -> None:
        """Writes already-serialized SRT content to ``output_path``."""
        try:
            with open(output_path, "w", encoding="utf-8") as f:
                f.write(srt_content)
        except OSError as e:
            logger.error(f"Failed to write SRT file to {output_path}: {e}", exc_info=True)
            raise FileSystemError(f"Could not write SRT file: {e}") from e
        logger.info(f"Subtitles saved to: {output_path}")
