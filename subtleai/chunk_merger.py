"""Merges per-chunk transcriptions into one file-relative transcript."""

import logging
from typing import Iterable, List

from .models import ChunkTranscription, RawTranscriptSegment, TranscriptionResult

logger = logging.getLogger(__name__)


def needs_chunking(file_size: int, duration: float, max_chunk_bytes: int, chunk_seconds: float) -> bool:
    """True when the audio is too large or too long to send in one request."""
    return file_size > max_chunk_bytes or duration > chunk_seconds


def merge_chunks(chunks: Iterable[ChunkTranscription]) -> TranscriptionResult:
    """
    Concatenates chunk transcriptions, shifting each chunk's segments by the
    summed measured duration of the chunks before it.

    The offset advances by each chunk's own measured duration rather than the
    nominal split length, so decoder rounding at chunk boundaries does not
    accumulate into drift.

    Args:
        chunks: Chunk results in playback order.

    Returns:
        A TranscriptionResult with absolute timestamps, the first non-empty
        detected language, and the total duration.
    """
    merged: List[RawTranscriptSegment] = []
    detected_language = None
    time_offset = 0.0

    for index, chunk in enumerate(chunks, start=1):
        if not detected_language and chunk.language:
            detected_language = chunk.language
        logger.debug(
            f"Chunk {index}: {chunk.duration:.1f}s, {len(chunk.segments)} segments, offset={time_offset:.1f}s"
        )
        merged.extend(seg.shifted(time_offset) for seg in chunk.segments)
        time_offset += chunk.duration

    return TranscriptionResult(language=detected_language, duration=time_offset, segments=merged)
