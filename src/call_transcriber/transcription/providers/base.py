from __future__ import annotations

import abc
from pathlib import Path

from ..types import TranscriptionOptions, TranscriptionResult


class TranscriptionProvider(abc.ABC):
    """Interface for speech-to-text providers."""

    name: str

    @abc.abstractmethod
    async def transcribe(self, *, path: Path, options: TranscriptionOptions) -> TranscriptionResult:
        """Produce a transcription for the audio file at ``path``."""
        raise NotImplementedError

    async def close(self) -> None:
        return None
