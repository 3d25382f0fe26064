"""Speech-to-text for downloaded call recordings."""

from .service import TranscriptionService
from .types import TranscriptionOptions, TranscriptionResult

__all__ = ["TranscriptionService", "TranscriptionOptions", "TranscriptionResult"]
