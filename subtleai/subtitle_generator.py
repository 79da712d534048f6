"""Orchestrates the subtitle generation pipeline."""

import logging
import os
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .audio_extractor import AudioExtractor, is_video
from .chunk_merger import merge_chunks, needs_chunking
from .exceptions import (
    ConfigurationError,
    FileSystemError,
    InputError,
    JobCancelledError,
    SubtleAIError,
)
from .hallucination_filter import HallucinationFilter
from .job_store import JobStore, is_valid_job_id
from .languages import is_valid_language, language_name, needs_translation
from .log_setup import JobLoggerAdapter
from .models import ChunkTranscription, TranscriptionResult
from .progress import NullSink, ProgressEvent, ProgressSink, Step
from .restructurer import RestructureRules, SubtitleRestructurer
from .subtitle_formatter import parse_srt, to_srt
from .transcriber import Transcriber
from .translator import TranslationBatcher, Translator
from .utils import check_cancelled, ensure_dir_exists, remove_path

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    PENDING = "pending"
    EXTRACTING = "extracting"
    TRANSCRIBING = "transcribing"
    TRANSLATING = "translating"
    RESTRUCTURING = "restructuring"
    DONE = "done"
    CANCELLED = "cancelled"
    ERROR = "error"


@dataclass
class PipelineOutcome:
    """How a run ended. ``srt`` is set only for DONE, ``error`` only for ERROR."""
    state: PipelineState
    job_id: Optional[str] = None
    srt: Optional[str] = None
    detected_language: Optional[str] = None
    duration: Optional[float] = None
    translated: bool = False
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state is PipelineState.DONE


@dataclass
class _PipelineRun:
    # Per-run state; a SubtitleGenerator is shared between runs.
    job_id: str
    sink: ProgressSink
    cancel_event: threading.Event
    log: logging.LoggerAdapter
    state: PipelineState = PipelineState.PENDING
    temp_paths: List[str] = field(default_factory=list)

    def checkpoint(self) -> None:
        check_cancelled(self.cancel_event)

    def enter(self, state: PipelineState, step: Step, message: str, **kwargs) -> None:
        """Moves to ``state`` and emits the single stage-entry progress event."""
        self.checkpoint()
        self.log.info(f"State: {self.state.value} -> {state.value}")
        self.state = state
        self.progress(step, message, **kwargs)

    def progress(self, step: Step, message: str, **kwargs) -> None:
        self.sink.emit(ProgressEvent.progress(step, message, **kwargs))


class SubtitleGenerator:
    """
    Runs extraction -> transcription -> (translation) -> restructuring for one
    input file, streaming progress events and honouring a cancel signal.
    """

    def __init__(
        self,
        config: dict,
        audio_extractor: AudioExtractor,
        transcriber: Transcriber,
        translator: Optional[Translator] = None,
        job_store: Optional[JobStore] = None,
    ):
        """
        Initializes the SubtitleGenerator.

        Args:
            config: A dictionary containing configuration settings.
            audio_extractor: ffmpeg wrapper for extraction, probing and splitting.
            transcriber: Speech-to-text service.
            translator: Translation service; None disables translation.
            job_store: Where completed subtitles are kept for later download.

        Raises:
            ConfigurationError: If the temporary directory is missing or not writable.
        """
        self.config = config
        self.audio_extractor = audio_extractor
        self.transcriber = transcriber
        self.job_store = job_store
        self.batcher = None
        if translator is not None:
            self.batcher = TranslationBatcher(
                translator,
                batch_size=int(config.get('translation_batch_size', 80)),
                max_retries=int(config.get('translation_max_retries', 2)),
            )

        self.hallucination_filter = HallucinationFilter.from_config(config)
        self.restructurer = SubtitleRestructurer(RestructureRules.from_config(config))
        self.max_chunk_bytes = int(config.get('max_chunk_bytes', 24 * 1024 * 1024))
        self.chunk_seconds = float(config.get('chunk_seconds', 600))

        self.temp_dir = config.get('temp_dir')
        if not self.temp_dir:
            raise ConfigurationError("Configuration missing 'temp_dir'.")
        try:
            # Ensure temp dir exists and is writable early on
            ensure_dir_exists(self.temp_dir)
            test_file = os.path.join(self.temp_dir, f".subtleai_write_test_{uuid.uuid4().hex}")
            with open(test_file, "w") as f:
                f.write("test")
            os.remove(test_file)
        except (FileSystemError, OSError, ValueError) as e:
            raise ConfigurationError(f"Temporary directory '{self.temp_dir}' is invalid or not writable: {e}") from e

    def generate(
        self,
        input_path: str,
        source_language: Optional[str] = "auto",
        output_language: Optional[str] = None,
        sink: Optional[ProgressSink] = None,
        cancel_event: Optional[threading.Event] = None,
        job_id: Optional[str] = None,
        original_filename: Optional[str] = None,
        cleanup_input: bool = False,
    ) -> PipelineOutcome:
        """
        Executes the full pipeline for one media file.

        Args:
            input_path: Audio or video file.
            source_language: Spoken language code, or "auto".
            output_language: Subtitle language code; None keeps the spoken language.
            sink: Receives progress events and exactly one terminal event
                  (none when the run is cancelled).
            cancel_event: Checked at every stage boundary and per chunk.
            job_id: UUID under which the result is stored (requires a job store).
            original_filename: Upload name, used for video detection and download naming.
            cleanup_input: Delete ``input_path`` when the run ends, whatever the outcome.

        Returns:
            The run's PipelineOutcome. Failures are reported through the
            outcome and the sink rather than raised.
        """
        job_id = job_id or str(uuid.uuid4())
        run = _PipelineRun(
            job_id=job_id,
            sink=sink or NullSink(),
            cancel_event=cancel_event or threading.Event(),
            log=JobLoggerAdapter(logger, {"job_id": job_id}),
        )
        if cleanup_input:
            run.temp_paths.append(input_path)

        started = time.time()
        run.log.info(f"--- Starting subtitle generation for: {original_filename or input_path} ---")
        try:
            outcome = self._execute(run, input_path, source_language, output_language, original_filename)
        except JobCancelledError:
            run.state = PipelineState.CANCELLED
            run.log.info("Job cancelled; no result will be produced")
            outcome = PipelineOutcome(state=PipelineState.CANCELLED, job_id=job_id)
        except (SubtleAIError, FileNotFoundError) as e:
            run.state = PipelineState.ERROR
            run.log.error(f"Subtitle generation failed: {e}")
            outcome = PipelineOutcome(state=PipelineState.ERROR, job_id=job_id, error=str(e))
        except Exception as e:
            run.state = PipelineState.ERROR
            run.log.critical(f"An unexpected critical error occurred during subtitle generation: {e}", exc_info=True)
            outcome = PipelineOutcome(state=PipelineState.ERROR, job_id=job_id, error=str(e) or "Internal error")
        finally:
            self._cleanup(run)

        if outcome.state is PipelineState.DONE:
            run.sink.emit(ProgressEvent.result(
                srt=outcome.srt,
                detected_language=outcome.detected_language,
                duration=outcome.duration,
                job_id=job_id if self.job_store else None,
            ))
            run.log.info(f"--- Subtitle generation completed in {time.time() - started:.2f} seconds ---")
        elif outcome.state is PipelineState.ERROR:
            run.sink.emit(ProgressEvent.failure(outcome.error))
        return outcome

    def _execute(
        self,
        run: _PipelineRun,
        input_path: str,
        source_language: Optional[str],
        output_language: Optional[str],
        original_filename: Optional[str],
    ) -> PipelineOutcome:
        self._validate(run.job_id, input_path, source_language, output_language)

        # 1. Extract audio (videos only)
        audio_path = input_path
        if is_video(original_filename or input_path):
            run.enter(PipelineState.EXTRACTING, Step.EXTRACTING, "Extracting audio from video...")
            audio_path = self.audio_extractor.extract_audio(input_path, self.temp_dir)
            run.temp_paths.append(audio_path)

        # 2. Transcribe (chunked when needed), then drop hallucinations
        run.enter(PipelineState.TRANSCRIBING, Step.TRANSCRIBING, "Starting transcription...", chunk=0, total_chunks=0)
        transcription = self._transcribe(run, audio_path, source_language)
        segments = self.hallucination_filter.filter(transcription.segments)
        if not segments:
            raise InputError("No speech was detected in the audio")
        srt_content = to_srt(segments)
        detected_language = transcription.language
        run.log.info(f"After transcription: {len(segments)} segments, last ends at {segments[-1].end:.1f}s")

        # 3. Translate when the output language differs from the spoken one
        translated = False
        if needs_translation(source_language, output_language, detected_language):
            if self.batcher is None:
                raise ConfigurationError("Translation requested but no translator is configured")
            run.enter(PipelineState.TRANSLATING, Step.TRANSLATING,
                      f"Translating subtitles to {language_name(output_language)}...")
            srt_content = self.batcher.translate(srt_content, detected_language, output_language, run.cancel_event)
            translated = True

        # 4. Restructure after translation so translated text length is what gets wrapped
        run.enter(PipelineState.RESTRUCTURING, Step.RESTRUCTURING, "Restructuring subtitles for readability...")
        restructured = self.restructurer.restructure(parse_srt(srt_content))
        srt_content = to_srt(restructured)
        run.checkpoint()

        if self.job_store is not None:
            self.job_store.save(run.job_id, srt_content, {
                "originalFilename": original_filename or os.path.basename(input_path),
                "detectedLanguage": detected_language,
                "outputLanguage": output_language,
                "duration": transcription.duration,
            })

        run.log.info(f"State: {run.state.value} -> {PipelineState.DONE.value}")
        run.state = PipelineState.DONE
        return PipelineOutcome(
            state=PipelineState.DONE,
            job_id=run.job_id,
            srt=srt_content,
            detected_language=detected_language,
            duration=transcription.duration,
            translated=translated,
        )

    def _validate(self, job_id: str, input_path: str, source_language: Optional[str],
                  output_language: Optional[str]) -> None:
        if not input_path or not os.path.isfile(input_path):
            raise InputError(f"No audio file provided or file not found: {input_path}")
        if source_language and not is_valid_language(source_language):
            raise InputError(f"Unsupported source language: {source_language}")
        if output_language and not is_valid_language(output_language):
            raise InputError(f"Unsupported output language: {output_language}")
        if self.job_store is not None and not is_valid_job_id(job_id):
            raise InputError(f"Invalid job ID: {job_id}")

    def _transcribe(self, run: _PipelineRun, audio_path: str, language: Optional[str]) -> TranscriptionResult:
        file_size = os.path.getsize(audio_path)
        total_duration = self.audio_extractor.probe_duration(audio_path)

        if not needs_chunking(file_size, total_duration, self.max_chunk_bytes, self.chunk_seconds):
            run.log.info(f"File is {file_size / 1024 / 1024:.1f}MB, {total_duration:.1f}s - sending directly")
            run.checkpoint()
            run.progress(Step.TRANSCRIBING, "Transcribing audio...", chunk=1, total_chunks=1)
            result = self.transcriber.transcribe(audio_path, language, run.cancel_event)
            run.checkpoint()
            if result.duration is None:
                result.duration = total_duration
            return result

        run.log.info(
            f"File is {file_size / 1024 / 1024:.1f}MB, {total_duration:.1f}s - "
            f"splitting into {self.chunk_seconds:.0f}s chunks"
        )
        run.checkpoint()
        chunk_dir, chunk_paths = self.audio_extractor.split_audio(audio_path, self.chunk_seconds, self.temp_dir)
        run.temp_paths.append(chunk_dir)

        total = len(chunk_paths)
        chunks: List[ChunkTranscription] = []
        for index, chunk_path in enumerate(chunk_paths, start=1):
            run.checkpoint()
            message = f"Transcribing chunk {index} of {total}..." if total > 1 else "Transcribing audio..."
            run.progress(Step.TRANSCRIBING, message, chunk=index, total_chunks=total)
            run.log.info(f"Transcribing chunk {index}/{total}")

            chunk_duration = self.audio_extractor.probe_duration(chunk_path)
            response = self.transcriber.transcribe(chunk_path, language, run.cancel_event)
            run.checkpoint()
            chunks.append(ChunkTranscription(
                duration=chunk_duration,
                language=response.language,
                segments=response.segments,
            ))

        merged = merge_chunks(chunks)
        remove_path(chunk_dir)
        run.log.info(f"Merged {total} chunks: {len(merged.segments)} segments, {merged.duration:.1f}s")
        return merged

    def _cleanup(self, run: _PipelineRun) -> None:
        for path in reversed(run.temp_paths):
            remove_path(path)
        run.temp_paths.clear()
