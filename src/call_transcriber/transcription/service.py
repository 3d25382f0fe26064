from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from ..errors import TranscriptionError
from ..settings import OpenAISettings, TranscriptionSettings
from .providers.base import TranscriptionProvider
from .providers.mock import MockTranscriptionProvider
from .providers.openai_whisper import OpenAIWhisperProvider
from .types import TranscriptionOptions, TranscriptionResult

logger = logging.getLogger(__name__)


class TranscriptionService:
    """Coordinates speech-to-text provider usage."""

    def __init__(self, *, provider: Optional[TranscriptionProvider] = None) -> None:
        self._provider = provider or MockTranscriptionProvider()

    @classmethod
    def from_settings(
        cls,
        cfg: TranscriptionSettings | None,
        openai_cfg: OpenAISettings | None = None,
    ) -> "TranscriptionService":
        provider: Optional[TranscriptionProvider] = None
        if cfg is not None:
            provider_name = (cfg.provider or "openai").strip().lower()
            if provider_name in {"mock", "fake"}:
                provider = MockTranscriptionProvider()
            elif provider_name in {"openai", "whisper"}:
                if openai_cfg is None:
                    raise RuntimeError("OpenAI settings are required for the openai transcription provider")
                provider = OpenAIWhisperProvider(openai_cfg, cfg)
            else:
                raise RuntimeError(f"unsupported transcription provider: {cfg.provider}")
        return cls(provider=provider)

    async def transcribe(self, path: Path, *, options: Optional[TranscriptionOptions] = None) -> TranscriptionResult:
        opts = options or TranscriptionOptions()
        result = await self._provider.transcribe(path=path, options=opts)
        text = (result.text or "").strip()
        if not text:
            raise TranscriptionError(f"Transcription returned empty text ({self._provider.name})")
        logger.info(
            "transcription.complete",
            extra={"provider": self._provider.name, "chars": len(text), "translated": opts.translate},
        )
        return TranscriptionResult(
            text=text,
            language=result.language,
            provider=result.provider or self._provider.name,
            translated=result.translated,
        )

    async def close(self) -> None:
        await self._provider.close()

    @property
    def provider(self) -> TranscriptionProvider:
        return self._provider
