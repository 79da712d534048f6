"""Handles loading configuration from YAML files."""

import copy
import yaml
import os
import logging
from typing import Optional
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    # Paths
    'temp_dir': 'tmp',
    'log_dir': 'logs',
    'log_file': 'subtleai.log',
    'upload_dir': 'uploads',
    'job_store_dir': 'srt-output',

    # Media tools
    'ffmpeg_path': None,
    'ffprobe_path': None,
    'extraction_timeout': 600,

    # Services
    'backend': 'remote', # 'remote' (OpenAI-compatible API) or 'local' (Whisper + Hugging Face)
    'api_base_url': 'https://api.groq.com/openai/v1',
    'api_key_env': 'GROQ_API_KEY',
    'transcription_model': 'whisper-large-v3',
    'translation_model': 'llama-3.3-70b-versatile',
    'translation_temperature': 0.3,
    'local_whisper_model': 'medium',
    'local_translation_model': None,
    'device': 'cuda',
    'whisper_fp16': True,

    # Chunking and batching
    'max_chunk_bytes': 24 * 1024 * 1024,
    'chunk_seconds': 600,
    'translation_batch_size': 80,
    'translation_max_retries': 2,

    'hallucination': {
        'no_speech_threshold': 0.6,
        'compression_ratio_threshold': 2.4,
        'global_repeat_threshold': 4,
    },
    'subtitle_rules': {
        'max_chars_per_line': 42,
        'max_lines': 2,
        'min_duration': 1.0,
        'max_duration': 7.0,
        'min_gap': 0.08,
        'max_cps': 21,
        'merge_threshold': 0.5,
    },

    # Job storage and serving
    'job_expiry_seconds': 30 * 60,
    'cleanup_interval_seconds': 5 * 60,
    'max_upload_bytes': 10 * 1024 * 1024 * 1024,
    'max_workers': 2,
    'host': '0.0.0.0',
    'port': 3001,
}


def merge_config(overrides: dict) -> dict:
    """Returns DEFAULT_CONFIG updated with ``overrides`` (nested mappings merged one level deep)."""
    config = copy.deepcopy(DEFAULT_CONFIG)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key].update(value)
        else:
            config[key] = value
    return config


def get_api_key(config: dict, explicit: Optional[str] = None) -> Optional[str]:
    """The per-request key if given, else the environment variable named by ``api_key_env``."""
    if explicit:
        return explicit
    return os.environ.get(config.get('api_key_env') or 'GROQ_API_KEY') or None


class ConfigLoader:
    """Loads configuration settings from a YAML file."""

    def load_config(self, config_path: Optional[str] = None) -> dict:
        """
        Loads configuration from the specified YAML file path.

        Args:
            config_path: The path to the YAML configuration file. None returns
                         the built-in defaults.

        Returns:
            A dictionary of settings: the file's values merged over DEFAULT_CONFIG.

        Raises:
            FileNotFoundError: If the configuration file does not exist.
            ConfigurationError: If the file cannot be parsed as YAML or
                              if there are other reading errors.
        """
        if config_path is None:
            logger.info("No configuration file given, using defaults.")
            return merge_config({})

        logger.info(f"Attempting to load configuration from: {config_path}")
        if not os.path.exists(config_path):
            logger.error(f"Configuration file not found at path: {config_path}")
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        if not os.path.isfile(config_path):
            logger.error(f"Configuration path is not a file: {config_path}")
            raise ConfigurationError(f"Configuration path is not a file: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Invalid YAML format in {config_path}: {e}") from e
        except IOError as e:
            logger.error(f"Error reading configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Could not read configuration file {config_path}: {e}") from e

        if loaded is None: # empty file
            loaded = {}
        if not isinstance(loaded, dict):
            # Handle cases where YAML loads something other than a dictionary (e.g., just a string)
            logger.error(f"Configuration file {config_path} did not load as a dictionary (root object).")
            raise ConfigurationError(f"Invalid YAML structure in {config_path}. Root must be a mapping (dictionary).")

        logger.info(f"Configuration loaded successfully from {config_path}")
        return merge_config(loaded)
