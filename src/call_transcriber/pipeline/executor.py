"""Per-request pipeline: resolve, download, transcribe, analyze, update CRM."""

from __future__ import annotations

import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple

from ..audio.artifact import AudioArtifact, scoped_artifact
from ..audio.download import AudioDownloader, DownloadedAudio
from ..audio.format import detect_extension
from ..crm.updater import CrmUpdater
from ..errors import PipelineError, ValidationError
from ..transcription import TranscriptionOptions, TranscriptionService
from .request import ParsedRequest, parse_request

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Audio transcribed and CRM updated successfully."


class UrlResolver(Protocol):
    async def resolve(self, record_id: str, *, request_id: Optional[str] = None) -> str: ...


class Analyzer(Protocol):
    enabled: bool

    async def analyze(self, transcript: str) -> Optional[str]: ...


@dataclass(slots=True)
class PipelineResult:
    record_id: str
    transcript: str
    request_id: str
    processing_time_ms: int
    analysis: Optional[str] = None


@dataclass(slots=True)
class PipelineState:
    request_id: str
    body: Any
    started: float
    stage: str = "parse_request"
    request: Optional[ParsedRequest] = None
    recording_url: Optional[str] = None
    download: Optional[DownloadedAudio] = None
    extension: Optional[str] = None
    artifact: Optional[AudioArtifact] = None
    transcript: Optional[str] = None
    analysis: Optional[str] = None

    @property
    def log_extra(self) -> Dict[str, Any]:
        return {
            "requestId": self.request_id,
            "recordId": self.request.record_id if self.request else None,
            "stage": self.stage,
        }

    def require(self, name: str) -> Any:
        """Return a field an earlier stage must have filled in."""

        value = getattr(self, name)
        if value is None:
            raise RuntimeError(f"pipeline stage {self.stage} needs {name}, which is not set")
        return value


Stage = Callable[[PipelineState, contextlib.AsyncExitStack], Awaitable[None]]


class PipelineExecutor:
    """Runs the stage sequence for one admitted request.

    Stages run in order over a shared ``PipelineState``. The persisted
    artifact is registered on an exit stack, so it is removed before
    ``run`` returns or raises.
    """

    def __init__(
        self,
        *,
        resolver: UrlResolver,
        downloader: AudioDownloader,
        transcriber: TranscriptionService,
        updater: CrmUpdater,
        analyzer: Optional[Analyzer] = None,
        temp_dir: str | Path,
        default_translate: bool = False,
        default_language: Optional[str] = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._resolver = resolver
        self._downloader = downloader
        self._transcriber = transcriber
        self._updater = updater
        self._analyzer = analyzer
        self._temp_dir = Path(temp_dir)
        self._default_translate = default_translate
        self._default_language = default_language
        self._clock = clock

    @property
    def temp_dir(self) -> Path:
        return self._temp_dir

    @property
    def transcriber(self) -> TranscriptionService:
        return self._transcriber

    async def close(self) -> None:
        await self._transcriber.close()
        close = getattr(self._analyzer, "close", None)
        if close is not None:
            await close()

    def stages(self) -> List[Tuple[str, Stage]]:
        return [
            ("parse_request", self._parse_request),
            ("resolve_url", self._resolve_url),
            ("download", self._download),
            ("detect_format", self._detect_format),
            ("persist", self._persist),
            ("transcribe", self._transcribe),
            ("analyze", self._analyze),
            ("update_crm", self._update_crm),
        ]

    async def run(self, body: Any, request_id: str) -> PipelineResult:
        state = PipelineState(request_id=request_id, body=body, started=self._clock())
        logger.info("pipeline.start", extra={"requestId": request_id})
        try:
            async with contextlib.AsyncExitStack() as scope:
                for name, stage in self.stages():
                    state.stage = name
                    await stage(state, scope)
                state.stage = "cleanup"
        except ValidationError as exc:
            logger.warning("pipeline.invalid_request", extra={**state.log_extra, "error": str(exc)})
            raise
        except PipelineError as exc:
            exc.annotate()
            logger.error(
                "pipeline.failed",
                extra={**state.log_extra, "provider": exc.provider, "error": exc.message, "elapsedMs": self._elapsed_ms(state)},
            )
            raise
        except Exception:
            logger.exception("pipeline.failed", extra={**state.log_extra, "elapsedMs": self._elapsed_ms(state)})
            raise

        request: ParsedRequest = state.require("request")
        result = PipelineResult(
            record_id=request.record_id,
            transcript=state.require("transcript"),
            request_id=request_id,
            processing_time_ms=self._elapsed_ms(state),
            analysis=state.analysis,
        )
        logger.info("pipeline.complete", extra={**state.log_extra, "elapsedMs": result.processing_time_ms})
        return result

    def _elapsed_ms(self, state: PipelineState) -> int:
        return int(round((self._clock() - state.started) * 1000.0))

    async def _parse_request(self, state: PipelineState, scope: contextlib.AsyncExitStack) -> None:
        state.request = parse_request(state.body)
        logger.info(
            "pipeline.request_parsed",
            extra={**state.log_extra, "hasUrl": bool(state.request.recording_url)},
        )

    async def _resolve_url(self, state: PipelineState, scope: contextlib.AsyncExitStack) -> None:
        request: ParsedRequest = state.require("request")
        if request.recording_url:
            state.recording_url = request.recording_url
            return
        logger.info("pipeline.resolve_fallback", extra=state.log_extra)
        state.recording_url = await self._resolver.resolve(request.record_id, request_id=state.request_id)

    async def _download(self, state: PipelineState, scope: contextlib.AsyncExitStack) -> None:
        state.download = await self._downloader.fetch(state.require("recording_url"))

    async def _detect_format(self, state: PipelineState, scope: contextlib.AsyncExitStack) -> None:
        download: DownloadedAudio = state.require("download")
        state.extension = detect_extension(download.data, download.content_type, download.url)

    async def _persist(self, state: PipelineState, scope: contextlib.AsyncExitStack) -> None:
        request: ParsedRequest = state.require("request")
        download: DownloadedAudio = state.require("download")
        state.artifact = await scope.enter_async_context(
            scoped_artifact(
                self._temp_dir,
                record_id=request.record_id,
                data=download.data,
                extension=state.require("extension"),
            )
        )

    async def _transcribe(self, state: PipelineState, scope: contextlib.AsyncExitStack) -> None:
        request: ParsedRequest = state.require("request")
        artifact: AudioArtifact = state.require("artifact")
        translate = request.translate or self._default_translate
        options = TranscriptionOptions(
            language=None if translate else (request.language or self._default_language),
            translate=translate,
        )
        result = await self._transcriber.transcribe(artifact.path, options=options)
        state.transcript = result.text

    async def _analyze(self, state: PipelineState, scope: contextlib.AsyncExitStack) -> None:
        if self._analyzer is None or not self._analyzer.enabled:
            return
        transcript: str = state.require("transcript")
        try:
            state.analysis = await self._analyzer.analyze(transcript)
        except Exception as exc:  # analysis is optional, the run continues without it
            logger.warning("pipeline.analysis_skipped", extra={**state.log_extra, "error": repr(exc)})
            state.analysis = None

    async def _update_crm(self, state: PipelineState, scope: contextlib.AsyncExitStack) -> None:
        request: ParsedRequest = state.require("request")
        await self._updater.update(request.record_id, state.require("transcript"), state.analysis)


__all__ = ["PipelineExecutor", "PipelineResult", "PipelineState", "SUCCESS_MESSAGE"]
