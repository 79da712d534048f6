"""Handles subtitle translation (remote chat LLM or local Hugging Face model) and batching."""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional

from openai import OpenAI, OpenAIError

from .exceptions import TranslationError
from .languages import language_name
from .models import Segment
from .subtitle_formatter import parse_srt, split_entries, to_srt
from .utils import check_cancelled

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 80 # SRT entries per translation call

SYSTEM_PROMPT = (
    "You are a professional subtitle translator. You will receive an SRT subtitle file. "
    "Translate ONLY the text lines into {target_language}. You MUST preserve:\n"
    "- All sequence numbers exactly as they are\n"
    "- All timestamp lines exactly as they are (HH:MM:SS,mmm --> HH:MM:SS,mmm)\n"
    "- The exact SRT format structure (blank line between entries)\n"
    "- Do NOT add, remove, merge, or split any subtitle entries\n"
    "Output ONLY the translated SRT content with no additional commentary."
)


class Translator(ABC):
    """Abstract base class for translation services."""

    @abstractmethod
    def translate(self, text: str, source_lang: Optional[str], target_lang: str) -> str:
        """
        Translates serialized SRT text from source to target language.

        Args:
            text: One or more SRT entries.
            source_lang: Source language code (may be None when unknown).
            target_lang: Target language code (e.g. 'es').

        Returns:
            Translated SRT text with the same entries, numbers and timestamps.

        Raises:
            TranslationError: If translation fails.
        """
        pass


class OpenAIChatTranslator(Translator):
    """Translates SRT text with an OpenAI-compatible chat completion model."""

    def __init__(self, client: Any, model_name: str = "llama-3.3-70b-versatile", temperature: float = 0.3):
        self.client = client
        self.model_name = model_name
        self.temperature = temperature

    @classmethod
    def from_api_key(cls, api_key: str, base_url: Optional[str] = None, **kwargs) -> "OpenAIChatTranslator":
        return cls(OpenAI(api_key=api_key, base_url=base_url), **kwargs)

    def translate(self, text: str, source_lang: Optional[str], target_lang: str) -> str:
        if not text.strip():
            return ""
        system_prompt = SYSTEM_PROMPT.format(target_language=language_name(target_lang))
        try:
            response = self.client.chat.completions.create(
                model=self.model_name,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": text},
                ],
                temperature=self.temperature,
            )
        except OpenAIError as e:
            logger.error(f"Translation request failed ({source_lang}->{target_lang}): {e}")
            raise TranslationError(f"Translation service failed: {e}") from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise TranslationError(f"Malformed translation response: {e}") from e
        if content is None:
            raise TranslationError("Translation service returned no content")
        return content.strip()


class HuggingFaceTranslator(Translator):
    """
    Implements translation using a Hugging Face Transformers translation pipeline.

    Seq2seq models translate plain text, so the SRT is parsed first, each
    entry's text is translated, and the entries are serialized again. Entry
    count and timing are therefore preserved by construction.
    """

    def __init__(self, model_name: str = "Helsinki-NLP/opus-mt-en-es", device: str = "cuda",
                 pipe: Optional[Callable[..., Any]] = None, batch_size: int = 16):
        """
        Initializes the HuggingFaceTranslator.

        Args:
            model_name: The name of the Hugging Face translation model.
            device: The device to run the model on ("cuda" or "cpu").
            pipe: An already-built translation pipeline; skips model loading.
            batch_size: Texts per forward pass.

        Raises:
            ValueError: If the specified device is invalid.
            TranslationError: If the model or tokenizer fails to load.
        """
        if device not in ["cuda", "cpu"]:
            raise ValueError(f"Invalid device specified: {device}. Choose 'cuda' or 'cpu'.")
        self.model_name = model_name
        self.device = device
        self.batch_size = batch_size

        if pipe is not None:
            self.pipe = pipe
            return

        import torch
        from transformers import pipeline

        if self.device == "cuda" and not torch.cuda.is_available():
            logger.warning("CUDA device requested but not available for translation. Falling back to CPU.")
            self.device = "cpu"

        logger.info(f"Initializing HuggingFaceTranslator with model '{self.model_name}' on device '{self.device}'")
        try:
            self.pipe = pipeline("translation", model=self.model_name, device=0 if self.device == "cuda" else -1)
            logger.info(f"Hugging Face translation model '{self.model_name}' loaded successfully.")
        except Exception as e:
            logger.error(f"Failed to load translation model or tokenizer '{self.model_name}': {e}", exc_info=True)
            raise TranslationError(f"Failed to load translation model/tokenizer '{self.model_name}': {e}") from e

    def translate(self, text: str, source_lang: Optional[str], target_lang: str) -> str:
        segments = parse_srt(text)
        if not segments:
            return ""

        sources = [seg.text.replace("\n", " ") for seg in segments]
        logger.debug(f"Translating {len(sources)} entries ({source_lang}->{target_lang}) with {self.model_name}")
        try:
            outputs = self.pipe(sources, batch_size=self.batch_size)
        except Exception as e:
            logger.error(f"Error during local translation: {e}", exc_info=True)
            raise TranslationError(f"Hugging Face translation failed: {e}") from e

        if len(outputs) != len(segments):
            raise TranslationError(f"Model returned {len(outputs)} translations for {len(segments)} entries")
        translated = [
            Segment(start=seg.start, end=seg.end, text=(out.get("translation_text") or "").strip() or seg.text)
            for seg, out in zip(segments, outputs)
        ]
        return to_srt(translated).strip()


class TranslationBatcher:
    """
    Drives a :class:`Translator` over bounded batches of SRT entries.

    Batches are issued sequentially and concatenated in their original
    order. Each response is checked for entry count; a mismatched batch is
    re-requested up to ``max_retries`` times and then passed through as-is.
    """

    def __init__(self, translator: Translator, batch_size: int = DEFAULT_BATCH_SIZE, max_retries: int = 2):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.translator = translator
        self.batch_size = batch_size
        self.max_retries = max_retries

    def translate(
        self,
        srt_content: str,
        source_language: Optional[str],
        target_language: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        blocks = split_entries(srt_content)
        if not blocks:
            return srt_content
        logger.info(f"[translator] Total SRT entries: {len(blocks)}, batch size: {self.batch_size}")

        if len(blocks) <= self.batch_size:
            translated = self._translate_batch(
                srt_content, len(blocks), source_language, target_language, cancel_event
            )
            return translated.strip() + "\n"

        batches = self._partition(blocks)
        translated_parts: List[str] = []
        for number, batch in enumerate(batches, start=1):
            check_cancelled(cancel_event)
            first = (number - 1) * self.batch_size + 1
            logger.info(
                f"[translator] Translating batch {number}/{len(batches)} "
                f"(entries {first}-{first + len(batch) - 1})"
            )
            translated = self._translate_batch(
                "\n\n".join(batch), len(batch), source_language, target_language, cancel_event
            )
            translated_parts.append(translated.strip())

        return "\n\n".join(translated_parts) + "\n"

    def _partition(self, blocks: List[str]) -> List[List[str]]:
        return [blocks[i:i + self.batch_size] for i in range(0, len(blocks), self.batch_size)]

    def _translate_batch(
        self,
        text: str,
        expected: int,
        source_language: Optional[str],
        target_language: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        attempts = self.max_retries + 1
        translated = ""
        for attempt in range(1, attempts + 1):
            check_cancelled(cancel_event)
            translated = self.translator.translate(text, source_language, target_language)
            received = len(split_entries(translated))
            if received == expected:
                return translated
            logger.warning(
                f"[translator] Entry count mismatch: sent {expected}, received {received} "
                f"(attempt {attempt}/{attempts})"
            )
        logger.warning("[translator] Passing through batch with mismatched entry count")
        return translated

