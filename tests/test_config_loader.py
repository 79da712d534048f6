"""Unit tests for configuration loading and logging setup."""

import logging

import pytest

from subtleai.config_loader import DEFAULT_CONFIG, ConfigLoader, get_api_key, merge_config
from subtleai.exceptions import ConfigurationError
from subtleai.log_setup import JobContextFilter, JobLoggerAdapter, setup_logging


class TestConfigLoader:
    def test_defaults_without_path(self):
        config = ConfigLoader().load_config(None)
        assert config == DEFAULT_CONFIG
        assert config is not DEFAULT_CONFIG

    def test_values_merged_over_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("backend: local\nsubtitle_rules:\n  max_chars_per_line: 32\n")
        config = ConfigLoader().load_config(str(path))
        assert config["backend"] == "local"
        assert config["subtitle_rules"]["max_chars_per_line"] == 32
        assert config["subtitle_rules"]["max_lines"] == 2
        assert config["translation_batch_size"] == 80

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigLoader().load_config(str(tmp_path / "nope.yaml"))

    def test_directory_rejected(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigLoader().load_config(str(tmp_path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("backend: [unclosed\n")
        with pytest.raises(ConfigurationError):
            ConfigLoader().load_config(str(path))

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationError):
            ConfigLoader().load_config(str(path))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert ConfigLoader().load_config(str(path)) == DEFAULT_CONFIG

    def test_merge_does_not_mutate_defaults(self):
        merge_config({"hallucination": {"no_speech_threshold": 0.9}})
        assert DEFAULT_CONFIG["hallucination"]["no_speech_threshold"] == 0.6


class TestApiKey:
    def test_explicit_wins(self, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "from-env")
        assert get_api_key(DEFAULT_CONFIG, "from-request") == "from-request"

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "from-env")
        assert get_api_key(DEFAULT_CONFIG) == "from-env"

    def test_custom_variable(self, monkeypatch):
        monkeypatch.setenv("MY_KEY", "custom")
        assert get_api_key({"api_key_env": "MY_KEY"}) == "custom"

    def test_none(self, monkeypatch):
        monkeypatch.delenv("GROQ_API_KEY", raising=False)
        assert get_api_key(DEFAULT_CONFIG, "") is None


class TestLogging:
    def test_context_filter_defaults_job_id(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        assert JobContextFilter().filter(record)
        assert record.job_id == "-"

    def test_adapter_binds_job_id(self, caplog):
        adapter = JobLoggerAdapter(logging.getLogger("subtleai.test"), {"job_id": "job-1"})
        with caplog.at_level(logging.INFO, logger="subtleai.test"):
            adapter.info("hello")
        assert caplog.records[-1].job_id == "job-1"

    def test_setup_creates_log_file(self, tmp_path):
        root = logging.getLogger()
        saved, saved_level = root.handlers[:], root.level
        try:
            setup_logging(log_level=logging.DEBUG, log_dir=str(tmp_path / "logs"), log_file="test.log")
            logging.getLogger("subtleai.test").info("written")
            for handler in root.handlers:
                handler.flush()
            assert "written" in (tmp_path / "logs" / "test.log").read_text(encoding="utf-8")
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            for handler in root.handlers[:]:
                root.removeHandler(handler)
                handler.close()
            for handler in saved:
                root.addHandler(handler)
            root.setLevel(saved_level)
