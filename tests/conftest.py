"""Shared test fixtures and in-memory service fakes."""

import os
import threading
from typing import Callable, Dict, List, Optional

import pytest

from subtleai.config_loader import merge_config
from subtleai.models import RawTranscriptSegment, TranscriptionResult
from subtleai.subtitle_formatter import split_entries
from subtleai.transcriber import Transcriber
from subtleai.translator import Translator


def raw(start, end, text, no_speech_prob=None, compression_ratio=None):
    return RawTranscriptSegment(
        start=start, end=end, text=text,
        no_speech_prob=no_speech_prob, compression_ratio=compression_ratio,
    )


def make_srt(count: int, text: str = "Hello there") -> str:
    blocks = []
    for i in range(1, count + 1):
        blocks.append(f"{i}\n00:00:{i % 60:02d},000 --> 00:00:{i % 60:02d},500\n{text} {i}")
    return "\n\n".join(blocks) + "\n"


class FakeAudioExtractor:
    """Stands in for AudioExtractor; writes real files so cleanup can be checked."""

    def __init__(self, duration: float = 30.0, chunk_durations: Optional[List[float]] = None):
        self.duration = duration
        self.chunk_durations = chunk_durations or []
        self.extracted: List[str] = []
        self.chunk_dir: Optional[str] = None

    def extract_audio(self, video_filepath, output_audio_dir):
        os.makedirs(output_audio_dir, exist_ok=True)
        path = os.path.join(output_audio_dir, "audio-extracted.mp3")
        with open(path, "wb") as f:
            f.write(b"audio")
        self.extracted.append(path)
        return path

    def probe_duration(self, media_path):
        name = os.path.basename(media_path)
        if name.startswith("chunk_"):
            return self.chunk_durations[int(name[6:9])]
        return self.duration

    def split_audio(self, audio_path, chunk_seconds, output_dir):
        chunk_dir = os.path.join(output_dir, "subtleai-chunk-test")
        os.makedirs(chunk_dir, exist_ok=True)
        paths = []
        for i in range(len(self.chunk_durations)):
            path = os.path.join(chunk_dir, f"chunk_{i:03d}.mp3")
            with open(path, "wb") as f:
                f.write(b"chunk")
            paths.append(path)
        self.chunk_dir = chunk_dir
        return chunk_dir, paths


class FakeTranscriber(Transcriber):
    """Returns scripted results in call order; ``on_call(n, cancel_event)`` runs before each."""

    def __init__(self, results: List[TranscriptionResult], on_call: Optional[Callable] = None):
        self.results = list(results)
        self.on_call = on_call
        self.calls: List[Dict] = []

    def transcribe(self, audio_path, language=None, cancel_event=None):
        self.calls.append({"path": audio_path, "language": language})
        if self.on_call:
            self.on_call(len(self.calls), cancel_event)
        return self.results[min(len(self.calls), len(self.results)) - 1]


class FakeTranslator(Translator):
    """Upper-cases text lines and records every request."""

    def __init__(self, responses: Optional[List[str]] = None):
        self.responses = list(responses or [])
        self.calls: List[Dict] = []

    def translate(self, text, source_lang, target_lang):
        self.calls.append({"text": text, "source": source_lang, "target": target_lang})
        if self.responses:
            return self.responses.pop(0)
        out = []
        for block in split_entries(text):
            lines = block.split("\n")
            out.append("\n".join(lines[:2] + [line.upper() for line in lines[2:]]))
        return "\n\n".join(out)


@pytest.fixture
def config(tmp_path):
    return merge_config({
        "temp_dir": str(tmp_path / "tmp"),
        "log_dir": str(tmp_path / "logs"),
        "upload_dir": str(tmp_path / "uploads"),
        "job_store_dir": str(tmp_path / "srt-output"),
    })


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "speech.mp3"
    path.write_bytes(b"ID3 fake audio")
    return str(path)


@pytest.fixture
def cancel_event():
    return threading.Event()
