"""Custom Exceptions for the SubtleAI application."""

class SubtleAIError(Exception):
    """Base class for exceptions in this package."""
    pass

class ConfigurationError(SubtleAIError):
    """Exception raised for errors in configuration loading or missing credentials."""
    pass

class InputError(SubtleAIError):
    """Exception raised for missing or invalid input (files, languages, timestamps)."""
    pass

class UnsupportedFormatError(InputError):
    """Exception raised when an uploaded file type is not accepted."""
    pass

class AudioExtractionError(SubtleAIError):
    """Exception raised when ffmpeg/ffprobe fails or times out."""
    pass

class TranscriptionError(SubtleAIError):
    """Exception raised for errors during transcription."""
    pass

class TranslationError(SubtleAIError):
    """Exception raised for errors during translation."""
    pass

class FileSystemError(SubtleAIError):
    """Exception raised for file system related errors (permissions, not found etc)."""
    pass

class JobCancelledError(SubtleAIError):
    """Raised at a cancellation checkpoint once the cancel signal has been set.

    Cancellation is a terminal outcome, not a failure. The orchestrator
    catches this and never reports it as an error event.
    """
    pass
