"""Progress events emitted by the pipeline and the sinks that consume them."""

import queue
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


class Step(str, Enum):
    UPLOADING = "uploading"
    EXTRACTING = "extracting"
    TRANSCRIBING = "transcribing"
    TRANSLATING = "translating"
    RESTRUCTURING = "restructuring"


class EventType(str, Enum):
    PROGRESS = "progress"
    RESULT = "result"
    ERROR = "error"


@dataclass(frozen=True)
class ProgressEvent:
    """
    One record on the progress stream.

    ``progress`` events describe a stage transition or a chunk; ``result`` and
    ``error`` are terminal and a stream carries exactly one of them (or none,
    if the run was cancelled).
    """

    type: EventType
    step: Optional[Step] = None
    message: Optional[str] = None
    chunk: Optional[int] = None
    total_chunks: Optional[int] = None
    upload_percent: Optional[int] = None
    srt: Optional[str] = None
    job_id: Optional[str] = None
    detected_language: Optional[str] = None
    duration: Optional[float] = None
    error: Optional[str] = None

    @classmethod
    def progress(
        cls,
        step: Step,
        message: str,
        chunk: Optional[int] = None,
        total_chunks: Optional[int] = None,
        upload_percent: Optional[int] = None,
    ) -> "ProgressEvent":
        return cls(
            type=EventType.PROGRESS,
            step=step,
            message=message,
            chunk=chunk,
            total_chunks=total_chunks,
            upload_percent=upload_percent,
        )

    @classmethod
    def result(
        cls,
        srt: str,
        detected_language: Optional[str],
        duration: Optional[float],
        job_id: Optional[str] = None,
    ) -> "ProgressEvent":
        return cls(
            type=EventType.RESULT,
            srt=srt,
            job_id=job_id,
            detected_language=detected_language,
            duration=duration,
        )

    @classmethod
    def failure(cls, error: str) -> "ProgressEvent":
        return cls(type=EventType.ERROR, error=error)

    @property
    def is_terminal(self) -> bool:
        return self.type in (EventType.RESULT, EventType.ERROR)

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation (camelCase keys, unset optionals omitted)."""
        if self.type is EventType.ERROR:
            return {"type": self.type.value, "error": self.error}
        if self.type is EventType.RESULT:
            data: Dict[str, Any] = {
                "type": self.type.value,
                "srt": self.srt,
                "detectedLanguage": self.detected_language,
                "duration": self.duration,
            }
            if self.job_id:
                data["jobId"] = self.job_id
            return data

        data = {
            "type": self.type.value,
            "step": self.step.value if self.step else None,
            "message": self.message,
        }
        optional = {
            "chunk": self.chunk,
            "totalChunks": self.total_chunks,
            "uploadPercent": self.upload_percent,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data


class ProgressSink:
    """Append-only consumer of progress events."""

    def emit(self, event: ProgressEvent) -> None:
        raise NotImplementedError


class NullSink(ProgressSink):
    def emit(self, event: ProgressEvent) -> None:
        pass


class CallbackSink(ProgressSink):
    def __init__(self, callback: Callable[[ProgressEvent], None]):
        self.callback = callback

    def emit(self, event: ProgressEvent) -> None:
        self.callback(event)


class ListSink(ProgressSink):
    """Collects events in memory."""

    def __init__(self):
        self.events: List[ProgressEvent] = []

    def emit(self, event: ProgressEvent) -> None:
        self.events.append(event)

    @property
    def terminal_events(self) -> List[ProgressEvent]:
        return [e for e in self.events if e.is_terminal]


class QueueSink(ProgressSink):
    """Feeds a queue drained by a streaming HTTP response."""

    def __init__(self, q: "queue.Queue[Optional[ProgressEvent]]"):
        self.queue = q

    def emit(self, event: ProgressEvent) -> None:
        self.queue.put(event)

    def close(self) -> None:
        self.queue.put(None)  # sentinel
