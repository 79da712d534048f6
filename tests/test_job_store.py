"""Unit tests for the on-disk job store."""

import json
import os
import uuid

import pytest

from subtleai.exceptions import FileSystemError, InputError
from subtleai.job_store import JobStore, is_valid_job_id


@pytest.fixture
def store(tmp_path):
    return JobStore(str(tmp_path / "srt-output"), expiry_seconds=60)


@pytest.fixture
def job_id():
    return str(uuid.uuid4())


class TestJobIds:
    def test_valid(self, job_id):
        assert is_valid_job_id(job_id)
        assert is_valid_job_id(job_id.upper())

    @pytest.mark.parametrize("value", [None, "", "abc", "../../etc/passwd", "12345678-1234-1234-1234-1234567890ag"])
    def test_invalid(self, value):
        assert not is_valid_job_id(value)

    def test_store_rejects_invalid_ids(self, store):
        with pytest.raises(InputError):
            store.get_srt("../secret")


class TestSaveAndLoad:
    def test_roundtrip(self, store, job_id):
        store.save(job_id, "1\n00:00:00,000 --> 00:00:01,000\nHi\n", {"originalFilename": "talk.mp4"})
        assert store.get_srt(job_id).endswith("Hi\n")
        metadata = store.get_metadata(job_id)
        assert metadata["originalFilename"] == "talk.mp4"
        assert "timestamp" in metadata

    def test_write_failure_wrapped(self, store, job_id):
        os.rmdir(store.root_dir)
        with open(store.root_dir, "w") as f:
            f.write("not a directory")
        with pytest.raises(FileSystemError, match=job_id):
            store.save(job_id, "x")

    def test_missing(self, store, job_id):
        assert store.get_srt(job_id) is None
        assert store.get_metadata(job_id) is None

    def test_download_filename(self, store, job_id):
        store.save(job_id, "x", {"originalFilename": "My Talk.final.mp4"})
        assert store.download_filename(job_id) == "My Talk.final.srt"

    def test_download_filename_default(self, store, job_id):
        store.save(job_id, "x")
        assert store.download_filename(job_id) == "subtitles.srt"

    def test_delete(self, store, job_id):
        store.save(job_id, "x")
        store.delete(job_id)
        assert store.get_srt(job_id) is None
        store.delete(job_id)


class TestCleanup:
    def test_expired_removed(self, store, tmp_path):
        old, fresh = str(uuid.uuid4()), str(uuid.uuid4())
        store.save(old, "old")
        store.save(fresh, "fresh")
        meta_path = tmp_path / "srt-output" / f"{old}.json"
        meta_path.write_text(json.dumps({"timestamp": 1000.0}))

        assert store.cleanup_expired(now=1000.0 + 61) == 1
        assert store.get_srt(old) is None

    def test_fresh_kept(self, store, job_id):
        store.save(job_id, "x")
        assert store.cleanup_expired() == 0
        assert store.get_srt(job_id) == "x"

    def test_unrelated_and_corrupt_files_ignored(self, store, tmp_path, job_id):
        root = tmp_path / "srt-output"
        (root / "notes.json").write_text("{}")
        (root / f"{job_id}.json").write_text("not json")
        assert store.cleanup_expired() == 0

    def test_cleanup_thread_stops(self, store):
        stop = store.start_cleanup_thread(interval_seconds=3600)
        stop.set()
        assert stop.is_set()
