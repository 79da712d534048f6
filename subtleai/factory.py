"""Builds a wired SubtitleGenerator from configuration."""

import logging
from typing import Optional

from openai import OpenAI

from .audio_extractor import AudioExtractor
from .exceptions import ConfigurationError
from .job_store import JobStore
from .subtitle_generator import SubtitleGenerator
from .transcriber import OpenAITranscriber, WhisperTranscriber
from .translator import HuggingFaceTranslator, OpenAIChatTranslator

logger = logging.getLogger(__name__)


def create_audio_extractor(config: dict) -> AudioExtractor:
    return AudioExtractor(
        ffmpeg_path=config.get('ffmpeg_path'),
        ffprobe_path=config.get('ffprobe_path'),
        timeout=float(config.get('extraction_timeout', 600)),
    )


def create_generator(config: dict, api_key: Optional[str] = None,
                     job_store: Optional[JobStore] = None) -> SubtitleGenerator:
    """
    Instantiates the services selected by ``config['backend']``.

    Raises:
        ConfigurationError: For an unknown backend or a missing API key.
    """
    backend = config.get('backend', 'remote')
    audio_extractor = create_audio_extractor(config)

    if backend == 'remote':
        if not api_key:
            raise ConfigurationError(
                f"No API key configured. Set {config.get('api_key_env', 'GROQ_API_KEY')} or pass one with the request."
            )
        client = OpenAI(api_key=api_key, base_url=config.get('api_base_url'))
        transcriber = OpenAITranscriber(client, model_name=config.get('transcription_model', 'whisper-large-v3'))
        translator = OpenAIChatTranslator(
            client,
            model_name=config.get('translation_model', 'llama-3.3-70b-versatile'),
            temperature=float(config.get('translation_temperature', 0.3)),
        )
    elif backend == 'local':
        device = config.get('device', 'cuda')
        transcriber = WhisperTranscriber(
            model_name=config.get('local_whisper_model', 'medium'),
            device=device,
            fp16=config.get('whisper_fp16', True) if device == 'cuda' else False,
        )
        translator = None
        if config.get('local_translation_model'):
            translator = HuggingFaceTranslator(model_name=config['local_translation_model'], device=device)
        else:
            logger.info("No local translation model configured; translation is disabled.")
    else:
        raise ConfigurationError(f"Unsupported backend '{backend}'. Choose 'remote' or 'local'.")

    logger.info(f"Initialized '{backend}' pipeline components")
    return SubtitleGenerator(
        config=config,
        audio_extractor=audio_extractor,
        transcriber=transcriber,
        translator=translator,
        job_store=job_store,
    )
