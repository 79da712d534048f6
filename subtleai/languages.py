"""Supported languages for transcription and translation (code -> display name)."""

from typing import Optional

AUTO = "auto"

SUPPORTED_LANGUAGES = {
    AUTO: "Auto-detect",

    # Most common languages
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "ja": "Japanese",
    "ko": "Korean",
    "zh": "Chinese (Simplified)",
    "zh-TW": "Chinese (Traditional)",

    # Other languages
    "ar": "Arabic",
    "hi": "Hindi",
    "pl": "Polish",
    "tr": "Turkish",
    "vi": "Vietnamese",
    "th": "Thai",
    "nl": "Dutch",
    "sv": "Swedish",
    "no": "Norwegian",
    "da": "Danish",
    "fi": "Finnish",
    "el": "Greek",
    "cs": "Czech",
    "hu": "Hungarian",
    "ro": "Romanian",
    "uk": "Ukrainian",
    "he": "Hebrew",
    "id": "Indonesian",
    "ms": "Malay",
}


def is_valid_language(code: Optional[str]) -> bool:
    return code in SUPPORTED_LANGUAGES


def language_name(code: Optional[str]) -> str:
    """Display name for ``code``; unknown codes are returned unchanged."""
    if not code:
        return ""
    return SUPPORTED_LANGUAGES.get(code, code)


def needs_translation(source_language: Optional[str], output_language: Optional[str],
                      detected_language: Optional[str]) -> bool:
    """
    Decides whether the translation stage runs.

    An explicit source language is compared with the output language. With
    auto-detect (or no source given), the detected language is compared
    instead. No output language means no translation.
    """
    if not output_language or output_language == AUTO:
        return False
    if source_language and source_language != AUTO:
        return output_language != source_language
    return output_language != detected_language


# Lower-case English names, as speech APIs report them, mapped back to codes.
LANGUAGE_CODES_BY_NAME = {
    name.lower(): code for code, name in SUPPORTED_LANGUAGES.items() if code != AUTO
}
LANGUAGE_CODES_BY_NAME.update({
    "chinese": "zh",
    "mandarin": "zh",
    "castilian": "es",
    "flemish": "nl",
    "moldavian": "ro",
    "moldovan": "ro",
})


def normalize_language_code(value: Optional[str]) -> Optional[str]:
    """
    Maps a detected language to its code.

    Whisper-style APIs report ``"english"`` where the rest of the pipeline
    expects ``"en"``. Codes pass through unchanged, as do names with no
    known code.
    """
    if not value:
        return value
    if value in SUPPORTED_LANGUAGES:
        return value
    return LANGUAGE_CODES_BY_NAME.get(value.strip().lower(), value)
