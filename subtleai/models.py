"""Data models for SubtleAI."""

from dataclasses import dataclass, field, replace
from typing import List, Optional

@dataclass(frozen=True)
class Segment:
    """A single timed unit of subtitle text (seconds)."""
    start: float
    end: float
    text: str

    @property
    def duration(self) -> float:
        return self.end - self.start

    def shifted(self, offset: float) -> "Segment":
        return replace(self, start=self.start + offset, end=self.end + offset)

@dataclass(frozen=True)
class RawTranscriptSegment(Segment):
    """A segment as returned by the transcription service, before filtering.

    ``no_speech_prob`` and ``compression_ratio`` are only consulted by the
    hallucination filter and are dropped by :meth:`to_segment`.
    """
    no_speech_prob: Optional[float] = None
    compression_ratio: Optional[float] = None

    def to_segment(self) -> Segment:
        return Segment(start=self.start, end=self.end, text=self.text)

@dataclass
class TranscriptionResult:
    """Holds the structured output from one transcription call (or a merged file)."""
    language: Optional[str]
    duration: Optional[float] = None
    segments: List[RawTranscriptSegment] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(seg.text for seg in self.segments)

@dataclass
class ChunkTranscription:
    """Transcription of one audio chunk, with timestamps relative to the chunk start.

    ``duration`` is measured from the chunk's own audio (ffprobe), not taken
    from the transcription service.
    """
    duration: float
    language: Optional[str] = None
    segments: List[RawTranscriptSegment] = field(default_factory=list)
