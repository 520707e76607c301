from __future__ import annotations


class TranscriptionError(RuntimeError):
    """Base class for every failure the transcription pipeline reports."""


class SessionConfigError(TranscriptionError):
    """Raised when the audio device/session cannot be configured or activated."""


class CaptureError(TranscriptionError):
    """Raised when the input tap or the recording sink fails fatally."""


class ConversionError(TranscriptionError):
    """Raised when source audio is unreadable, corrupt, or cannot be converted."""


class ModelNotFoundError(TranscriptionError):
    """Raised when the ASR model resource is missing."""


class InferenceError(TranscriptionError):
    """Raised when the ASR engine fails on valid input."""
