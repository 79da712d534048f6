"""Handles audio extraction, probing and chunk splitting using ffmpeg."""

import ffmpeg
import glob
import os
import logging
import subprocess
import tempfile
import uuid
from .exceptions import AudioExtractionError
from typing import List, Optional, Tuple
from .utils import ensure_dir_exists, remove_path

logger = logging.getLogger(__name__)

VIDEO_MIME_TYPES = {'video/mp4', 'video/webm', 'video/mpeg', 'video/x-matroska', 'application/x-matroska'}
VIDEO_EXTENSIONS = {'.mp4', '.webm', '.mpeg', '.mkv', '.mov', '.avi', '.flv', '.m4v'}
AUDIO_EXTENSIONS = {'.mp3', '.wav', '.m4a', '.webm', '.mpga', '.mpeg', '.ogg', '.flac'}

ALLOWED_MIME_TYPES = {
    'audio/mpeg',
    'audio/mp3',
    'audio/mp4',
    'audio/x-m4a',
    'audio/m4a',
    'audio/wav',
    'audio/wave',
    'audio/x-wav',
    'audio/webm',
    'audio/mpga',
} | VIDEO_MIME_TYPES


def is_video(filename: str, mimetype: Optional[str] = None) -> bool:
    """Detects a video file from its MIME type or extension."""
    ext = os.path.splitext(filename)[1].lower()
    return (mimetype in VIDEO_MIME_TYPES) or ext in VIDEO_EXTENSIONS


def is_supported_media(filename: str, mimetype: Optional[str] = None) -> bool:
    """True for uploads the pipeline accepts (by MIME type when given, else extension)."""
    if mimetype and mimetype != 'application/octet-stream':
        return mimetype in ALLOWED_MIME_TYPES
    ext = os.path.splitext(filename)[1].lower()
    return ext in VIDEO_EXTENSIONS or ext in AUDIO_EXTENSIONS


class AudioExtractor:
    """Wraps the ffmpeg/ffprobe operations the pipeline needs."""

    def __init__(self, ffmpeg_path: Optional[str] = None, ffprobe_path: Optional[str] = None, timeout: float = 600):
        """
        Initializes the AudioExtractor.

        Args:
            ffmpeg_path: Optional path to the ffmpeg executable.
                         If None, assumes ffmpeg is in the system PATH.
            ffprobe_path: Optional path to the ffprobe executable.
            timeout: Seconds an ffmpeg invocation may run before it is killed.
        """
        self.ffmpeg_cmd = ffmpeg_path or 'ffmpeg'
        self.ffprobe_cmd = ffprobe_path or 'ffprobe'
        self.timeout = timeout
        logger.debug(f"Using ffmpeg command: {self.ffmpeg_cmd}, ffprobe command: {self.ffprobe_cmd}")

    def extract_audio(self, video_filepath: str, output_audio_dir: str) -> str:
        """
        Extracts the audio stream from a video file to an MP3 file.

        Args:
            video_filepath: Path to the input video file.
            output_audio_dir: Directory to save the extracted audio file.

        Returns:
            The full path to the extracted audio file.

        Raises:
            FileNotFoundError: If the input video file does not exist.
            AudioExtractionError: If ffmpeg fails or times out; the partial
                                  output file is removed first.
            FileSystemError: If the output directory cannot be created/accessed.
        """
        logger.info(f"Starting audio extraction for: {video_filepath}")
        if not os.path.exists(video_filepath):
            raise FileNotFoundError(f"Input video file not found: {video_filepath}")

        ensure_dir_exists(output_audio_dir)
        output_audio_path = os.path.join(output_audio_dir, f"audio-{uuid.uuid4().hex}.mp3")

        stream = (
            ffmpeg
            .input(video_filepath)
            .output(output_audio_path, vn=None, acodec='libmp3lame', **{'q:a': 4})
            .overwrite_output()
        )
        try:
            self._run(stream, "audio extraction")
        except AudioExtractionError:
            remove_path(output_audio_path)
            raise
        logger.info(f"Successfully extracted audio to: {output_audio_path}")
        return output_audio_path

    def probe_duration(self, media_path: str) -> float:
        """
        Returns the container duration of ``media_path`` in seconds.

        Raises:
            AudioExtractionError: If ffprobe fails or reports no duration.
        """
        try:
            info = ffmpeg.probe(media_path, cmd=self.ffprobe_cmd)
        except ffmpeg.Error as e:
            stderr_output = e.stderr.decode('utf-8', errors='replace') if e.stderr else "No stderr output"
            logger.error(f"ffprobe failed for {media_path}: {stderr_output}")
            raise AudioExtractionError(f"ffprobe failed: {stderr_output}") from e
        try:
            return float(info['format']['duration'])
        except (KeyError, TypeError, ValueError) as e:
            raise AudioExtractionError(f"Could not read duration of {media_path}") from e

    def split_audio(self, audio_path: str, chunk_seconds: float, output_dir: str) -> Tuple[str, List[str]]:
        """
        Splits ``audio_path`` into consecutive MP3 chunks of at most ``chunk_seconds``.

        Args:
            audio_path: Audio file to split.
            chunk_seconds: Nominal chunk length.
            output_dir: Parent directory for the new chunk directory.

        Returns:
            (chunk directory, chunk paths in playback order). The caller owns
            the directory and must remove it.

        Raises:
            AudioExtractionError: If ffmpeg fails; the chunk directory is removed.
        """
        ensure_dir_exists(output_dir)
        chunk_dir = tempfile.mkdtemp(prefix='subtleai-chunk-', dir=output_dir)
        pattern = os.path.join(chunk_dir, 'chunk_%03d.mp3')
        stream = (
            ffmpeg
            .input(audio_path)
            .output(pattern, f='segment', segment_time=chunk_seconds, acodec='libmp3lame', **{'q:a': 4})
            .overwrite_output()
        )
        try:
            self._run(stream, "audio splitting")
        except AudioExtractionError:
            remove_path(chunk_dir)
            raise

        chunks = sorted(glob.glob(os.path.join(chunk_dir, 'chunk_*.mp3')))
        logger.info(f"Split {audio_path} into {len(chunks)} chunks of {chunk_seconds}s")
        return chunk_dir, chunks

    def _run(self, stream, description: str) -> None:
        try:
            process = stream.run_async(cmd=self.ffmpeg_cmd, pipe_stdout=True, pipe_stderr=True)
        except OSError as e:
            raise AudioExtractionError(f"Could not start ffmpeg for {description}: {e}") from e

        try:
            _, stderr = process.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            process.kill()
            process.communicate()
            logger.error(f"ffmpeg {description} timed out after {self.timeout}s")
            raise AudioExtractionError(f"Failed to extract audio: ffmpeg {description} timed out after {self.timeout}s") from e

        if process.returncode != 0:
            stderr_output = stderr.decode('utf-8', errors='replace') if stderr else "No stderr output"
            logger.error(f"ffmpeg stderr: {stderr_output}")
            raise AudioExtractionError(f"Failed to extract audio: ffmpeg {description} failed: {stderr_output[-500:]}")
