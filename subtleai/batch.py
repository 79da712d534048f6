"""
Batch processing: every supported media file in a directory, smallest
first, through a bounded worker pool.
"""

import argparse
import logging
import os
import sys
import time
from typing import List, Tuple

from tqdm import tqdm

from .cli import add_common_arguments, load_runtime_config
from .config_loader import get_api_key
from .exceptions import JobCancelledError, SubtleAIError, FileSystemError
from .factory import create_generator
from .audio_extractor import AUDIO_EXTENSIONS, VIDEO_EXTENSIONS
from .job_queue import Job, JobQueue, JobStatus
from .languages import language_name
from .progress import CallbackSink
from .subtitle_formatter import SRTFormatter
from .subtitle_generator import PipelineState, SubtitleGenerator
from .utils import ensure_dir_exists

logger = logging.getLogger(__name__)


def find_and_sort_media(input_dir: str) -> List[Tuple[str, int]]:
    """
    Finds all supported audio/video files in the input directory and sorts them by size.

    Args:
        input_dir: The directory to search for media files.

    Returns:
        A list of (filepath, filesize) tuples sorted by filesize in ascending order.

    Raises:
        FileNotFoundError: If the input directory doesn't exist.
        ValueError: If the input path is not a directory.
    """
    if not os.path.exists(input_dir):
        raise FileNotFoundError(f"Input directory not found: {input_dir}")
    if not os.path.isdir(input_dir):
        raise ValueError(f"Input path is not a directory: {input_dir}")

    extensions = VIDEO_EXTENSIONS | AUDIO_EXTENSIONS
    media = []
    logger.info(f"Scanning directory for media files: {input_dir}")
    for filename in os.listdir(input_dir):
        if os.path.splitext(filename)[1].lower() not in extensions:
            continue
        filepath = os.path.join(input_dir, filename)
        try:
            if os.path.isfile(filepath):
                media.append((filepath, os.path.getsize(filepath)))
        except OSError as e:
            logger.warning(f"Could not access file {filepath}: {e}. Skipping.")

    media.sort(key=lambda item: item[1])
    logger.info(f"Found {len(media)} media files. Sorted by size (smallest first).")
    return media


class BatchWorker:
    """Runs one queued file through the pipeline and writes its .srt."""

    def __init__(self, generator: SubtitleGenerator, output_dir: str, source_language: str, output_language: str):
        self.generator = generator
        self.output_dir = output_dir
        self.source_language = source_language
        self.output_language = output_language
        self.formatter = SRTFormatter()
        self.queue = None # set once the JobQueue exists

    def __call__(self, job: Job) -> str:
        media_path = job.payload
        sink = CallbackSink(lambda event: self.queue.update_progress(job.id, event) if self.queue else None)
        outcome = self.generator.generate(
            media_path,
            source_language=self.source_language,
            output_language=self.output_language,
            sink=sink,
            cancel_event=job.cancel_event,
            job_id=job.id,
        )
        if outcome.state is PipelineState.CANCELLED:
            raise JobCancelledError("Job cancelled")
        if not outcome.succeeded:
            raise SubtleAIError(outcome.error)

        language = self.output_language or outcome.detected_language or "und"
        language_dir = os.path.join(self.output_dir, language_name(language) or language)
        ensure_dir_exists(language_dir)
        base_name = os.path.splitext(os.path.basename(media_path))[0]
        output_path = os.path.join(language_dir, f"{base_name}.{language}.srt")
        self.formatter.write_text(outcome.srt, output_path)
        return output_path


def run_batch_processing(argv=None) -> None:
    """Parses arguments, sets up, and runs the batch subtitle generation."""
    parser = argparse.ArgumentParser(
        description="SubtleAI Batch: Generate SRT subtitles for every audio/video file in a directory.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument(
        "-i", "--input-dir",
        required=True,
        help="Directory containing the input media files."
    )
    add_common_arguments(parser)
    args = parser.parse_args(argv)
    config = load_runtime_config(args, default_log_file='subtleai_batch_init.log')

    # --- Find and Sort Media ---
    try:
        sorted_media = find_and_sort_media(args.input_dir)
    except (FileNotFoundError, ValueError) as e:
        logger.critical(f"Input directory error: {e}")
        sys.exit(1)
    if not sorted_media:
        logger.warning(f"No supported media files found in {args.input_dir}. Exiting.")
        sys.exit(0)

    subs_dir = os.path.join(args.input_dir, "Subs")
    try:
        ensure_dir_exists(subs_dir)
    except FileSystemError as e:
        logger.critical(f"Could not create output directory: {e}")
        sys.exit(1)

    # --- Initialize Components (ONCE) ---
    try:
        generator = create_generator(config, api_key=get_api_key(config))
    except SubtleAIError as e:
        logger.critical(f"Failed to initialize SubtleAI components: {e}")
        sys.exit(1)

    # Local models are not safe to share across threads.
    max_workers = 1 if config.get('backend') == 'local' else int(config.get('max_workers', 2))
    worker = BatchWorker(generator, subs_dir, args.source_language, args.output_language)
    total_files = len(sorted_media)
    batch_start_time = time.time()
    logger.info(f"--- Starting Batch Subtitle Generation for {total_files} files ({max_workers} workers) ---")

    with tqdm(total=total_files, unit="file", desc="Batch") as pbar:
        job_queue = JobQueue(worker, max_workers=max_workers, on_finished=lambda job: pbar.update(1))
        worker.queue = job_queue
        try:
            job_queue.add_jobs(path for path, _ in sorted_media)
            job_queue.wait()
        except KeyboardInterrupt:
            logger.warning("Batch process interrupted by user (Ctrl+C). Cancelling jobs.")
            job_queue.shutdown(cancel_running=True)
            sys.exit(1)
        job_queue.shutdown()

    jobs = job_queue.jobs
    completed = [j for j in jobs if j.status is JobStatus.COMPLETED]
    failed = [j for j in jobs if j.status is not JobStatus.COMPLETED]
    for job in failed:
        logger.error(f"Failed: {os.path.basename(job.payload)} ({job.status.value}): {job.error}")

    logger.info(f"--- Batch Subtitle Generation Finished ---")
    logger.info(f"Total time: {time.time() - batch_start_time:.2f} seconds")
    logger.info(f"Successfully processed: {len(completed)}/{total_files} files")
    logger.info(f"Failed: {len(failed)}/{total_files} files")
    sys.exit(1 if failed else 0)


def main() -> None:
    run_batch_processing()
