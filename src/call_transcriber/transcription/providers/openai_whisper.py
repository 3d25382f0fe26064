from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import openai
from openai import AsyncOpenAI

from ...errors import TranscriptionError
from ...settings import OpenAISettings, TranscriptionSettings
from ..types import TranscriptionOptions, TranscriptionResult
from .base import TranscriptionProvider

logger = logging.getLogger(__name__)

OPENAI_AUDIO_URL = "https://api.openai.com/v1/audio"


class OpenAIWhisperProvider(TranscriptionProvider):
    """Speech-to-text through the OpenAI audio endpoints."""

    name = "openai"

    def __init__(
        self,
        openai_cfg: OpenAISettings,
        transcription_cfg: TranscriptionSettings,
        *,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self._openai_cfg = openai_cfg
        self._model = transcription_cfg.model
        self._timeout = transcription_cfg.timeout
        self._client: Optional[AsyncOpenAI] = client
        self._owns_client = client is None

    def _ensure_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._openai_cfg.api_key:
                raise TranscriptionError("OPENAI_API_KEY is required for the openai transcription provider")
            self._client = AsyncOpenAI(
                api_key=self._openai_cfg.api_key,
                base_url=self._openai_cfg.base_url,
                organization=self._openai_cfg.organization,
            )
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    async def transcribe(self, *, path: Path, options: TranscriptionOptions) -> TranscriptionResult:
        params: Dict[str, Any] = {"model": self._model, "file": path, "timeout": self._timeout}
        endpoint = "translations" if options.translate else "transcriptions"
        client = self._ensure_client()
        try:
            if options.translate:
                logger.info("transcription.translate", extra={"model": self._model})
                response = await client.audio.translations.create(**params)
            else:
                if options.language:
                    params["language"] = options.language
                response = await client.audio.transcriptions.create(**params)
        except openai.APIStatusError as exc:
            raise TranscriptionError(
                exc.message,
                provider="OpenAI",
                url=f"{OPENAI_AUDIO_URL}/{endpoint}",
                status_code=exc.status_code,
                body=exc.body,
            ) from exc
        except openai.OpenAIError as exc:
            raise TranscriptionError(f"OpenAI {endpoint} request failed: {exc!r}", provider="OpenAI") from exc

        text = getattr(response, "text", None)
        if text is None and isinstance(response, str):
            text = response
        return TranscriptionResult(
            text=text or "",
            language=None if options.translate else options.language,
            provider=self.name,
            translated=options.translate,
        )
