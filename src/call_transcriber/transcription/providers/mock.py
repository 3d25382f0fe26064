from __future__ import annotations

from pathlib import Path

from ..types import TranscriptionOptions, TranscriptionResult
from .base import TranscriptionProvider


class MockTranscriptionProvider(TranscriptionProvider):
    name = "mock"

    def __init__(self, text: str = "mock transcription") -> None:
        self.text = text
        self.calls: list[tuple[Path, TranscriptionOptions]] = []

    async def transcribe(self, *, path: Path, options: TranscriptionOptions) -> TranscriptionResult:
        self.calls.append((path, options))
        return TranscriptionResult(
            text=self.text,
            language=options.language,
            provider=self.name,
            translated=options.translate,
        )
