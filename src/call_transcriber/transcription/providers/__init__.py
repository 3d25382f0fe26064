"""Speech-to-text provider implementations."""

from .base import TranscriptionProvider
from .mock import MockTranscriptionProvider
from .openai_whisper import OpenAIWhisperProvider

__all__ = [
    "TranscriptionProvider",
    "MockTranscriptionProvider",
    "OpenAIWhisperProvider",
]
