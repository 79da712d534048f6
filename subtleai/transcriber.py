"""Handles Speech-to-Text transcription (remote OpenAI-compatible API or local Whisper)."""

import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from openai import OpenAI, OpenAIError

from .models import TranscriptionResult, RawTranscriptSegment
from .exceptions import TranscriptionError
from .languages import normalize_language_code
from .utils import check_cancelled

logger = logging.getLogger(__name__)

def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Reads ``name`` from an SDK model or a plain dict."""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)

def _optional_float(value: Any) -> Optional[float]:
    return float(value) if value is not None else None

def segments_from_response(raw_segments: Optional[List[Any]]) -> List[RawTranscriptSegment]:
    """Converts service/model segment records into RawTranscriptSegments."""
    segments = []
    for seg_data in raw_segments or []:
        start, end, text = _field(seg_data, "start"), _field(seg_data, "end"), _field(seg_data, "text")
        if start is None or end is None or text is None:
            logger.warning(f"Skipping incomplete segment data: {seg_data}")
            continue
        segments.append(
            RawTranscriptSegment(
                start=float(start),
                end=float(end),
                text=text,
                no_speech_prob=_optional_float(_field(seg_data, "no_speech_prob")),
                compression_ratio=_optional_float(_field(seg_data, "compression_ratio")),
            )
        )
    return segments


class Transcriber(ABC):
    """Abstract base class for transcription services."""

    @abstractmethod
    def transcribe(
        self,
        audio_path: str,
        language: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TranscriptionResult:
        """
        Transcribes the given audio file.

        Args:
            audio_path: Path to the audio file.
            language: Language hint; None or "auto" lets the model detect it.
            cancel_event: Cancellation signal. A call already in flight is not
                interrupted, but its result is discarded once the signal is set.

        Returns:
            A TranscriptionResult with raw (unfiltered) segments relative to
            the start of ``audio_path``.

        Raises:
            TranscriptionError: If transcription fails.
            FileNotFoundError: If the audio file doesn't exist.
            JobCancelledError: If ``cancel_event`` is set.
        """
        pass


class OpenAITranscriber(Transcriber):
    """Transcribes through an OpenAI-compatible ``audio.transcriptions`` endpoint (e.g. Groq)."""

    def __init__(self, client: Any, model_name: str = "whisper-large-v3"):
        """
        Args:
            client: An ``openai.OpenAI`` client (or anything with the same surface).
            model_name: Remote model identifier.
        """
        self.client = client
        self.model_name = model_name

    @classmethod
    def from_api_key(cls, api_key: str, base_url: Optional[str] = None,
                     model_name: str = "whisper-large-v3") -> "OpenAITranscriber":
        return cls(OpenAI(api_key=api_key, base_url=base_url), model_name=model_name)

    def transcribe(
        self,
        audio_path: str,
        language: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TranscriptionResult:
        if not os.path.exists(audio_path):
            raise FileNotFoundError(f"Audio file not found: {audio_path}")
        check_cancelled(cancel_event)

        params = {
            "model": self.model_name,
            "response_format": "verbose_json",
            "timestamp_granularities": ["segment"],
        }
        if language and language != "auto":
            params["language"] = language

        logger.info(f"Sending {os.path.basename(audio_path)} to {self.model_name}")
        try:
            with open(audio_path, "rb") as audio_file:
                response = self.client.audio.transcriptions.create(file=audio_file, **params)
        except OpenAIError as e:
            logger.error(f"Transcription request failed for {audio_path}: {e}")
            raise TranscriptionError(f"Transcription service failed: {e}") from e

        # A cancelled run must not act on a result that arrived late.
        check_cancelled(cancel_event)

        if response is None:
            raise TranscriptionError("Transcription service returned an empty response")
        segments = segments_from_response(_field(response, "segments"))
        duration = _field(response, "duration")
        result = TranscriptionResult(
            language=normalize_language_code(_field(response, "language")),
            duration=float(duration) if duration is not None else None,
            segments=segments,
        )
        logger.info(f"Transcription completed. Detected language: {result.language or 'N/A'}, {len(segments)} segments")
        return result


class WhisperTranscriber(Transcriber):
    """Implements transcription locally using OpenAI's Whisper model."""

    def __init__(self, model_name: str = "medium", device: str = "cuda", fp16: bool = True, model: Any = None):
        """
        Initializes the WhisperTranscriber.

        Args:
            model_name: The name of the Whisper model to use (e.g., "base", "medium").
            device: The device to run the model on ("cuda" or "cpu").
            fp16: Whether to use float16 precision (faster on compatible GPUs).
            model: An already-loaded model; skips loading (and the torch device check).

        Raises:
            ValueError: If the specified device is invalid.
            TranscriptionError: If the model fails to load.
        """
        if device not in ["cuda", "cpu"]:
            raise ValueError(f"Invalid device specified: {device}. Choose 'cuda' or 'cpu'.")
        self.model_name = model_name
        self.device = device
        self.fp16 = fp16

        if model is not None:
            self.model = model
            return

        import torch
        import whisper

        if self.device == "cuda" and not torch.cuda.is_available():
            logger.warning("CUDA device requested but not available. Falling back to CPU.")
            self.device = "cpu"

        logger.info(f"Initializing WhisperTranscriber with model '{self.model_name}' on device '{self.device}' (FP16: {self.fp16})")
        try:
            self.model = whisper.load_model(self.model_name, device=self.device)
            logger.info(f"Whisper model '{self.model_name}' loaded successfully.")
        except Exception as e:
            logger.error(f"Failed to load Whisper model '{self.model_name}': {e}", exc_info=True)
            raise TranscriptionError(f"Failed to load Whisper model '{self.model_name}': {e}") from e

    def transcribe(
        self,
        audio_path: str,
        language: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TranscriptionResult:
        logger.info(f"Starting transcription for: {audio_path}")
        if not os.path.exists(audio_path):
            raise FileNotFoundError(f"Audio file not found: {audio_path}")
        check_cancelled(cancel_event)

        try:
            result = self.model.transcribe(
                audio_path,
                language=language if language and language != "auto" else None,
                fp16=self.fp16 if self.device == "cuda" else False, # FP16 only works on CUDA
                verbose=False,
            )
        except Exception as e:
            logger.error(f"Error during Whisper transcription process for {audio_path}: {e}", exc_info=True)
            raise TranscriptionError(f"Whisper transcription failed for {audio_path}: {e}") from e

        check_cancelled(cancel_event)

        segments = segments_from_response(result.get("segments"))
        if "segments" not in result:
            logger.warning("Transcription result did not contain 'segments'.")
        duration = max((seg.end for seg in segments), default=0.0)
        logger.info(f"Transcription completed. Detected language: {result.get('language', 'N/A')}, {len(segments)} segments")
        return TranscriptionResult(language=normalize_language_code(result.get("language")), duration=duration, segments=segments)
