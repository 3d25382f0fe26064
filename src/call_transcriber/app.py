import logging
import os
import platform
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from .analysis import CallAnalyzer
from .audio import AudioDownloader
from .crm import CrmUpdater, TokenCache, ZohoCrmClient, ZohoOAuthClient
from .errors import PipelineError, QueueCleared, QueueFull, ValidationError
from .events import QueueEventPublisher
from .pipeline import PipelineExecutor
from .pipeline.executor import SUCCESS_MESSAGE
from .queue import RateLimiter, RequestScheduler
from .resolver import RecordingResolver
from .schemas import (
    ClearQueueResponse,
    ErrorResponse,
    HealthResponse,
    ProcessAudioResponse,
    QueueStatusResponse,
    RequestStatusResponse,
)
from .settings import Settings, settings as runtime_settings
from .telephony import KnowlarityClient
from .transcription import TranscriptionService

logger = logging.getLogger(__name__)

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")
_PROCESS_STARTED = time.monotonic()


def build_token_cache(cfg: Settings) -> TokenCache:
    oauth = ZohoOAuthClient(cfg.zoho)
    return TokenCache(oauth.refresh, skew_seconds=cfg.zoho.token_skew_seconds)


def build_executor(cfg: Settings, *, tokens: TokenCache) -> PipelineExecutor:
    crm_client = ZohoCrmClient(cfg.zoho, tokens=tokens)
    resolver = RecordingResolver(
        crm_client,
        KnowlarityClient(cfg.knowlarity),
        reauth_domains=cfg.knowlarity.reauth_domains,
    )
    updater = CrmUpdater(
        crm_client,
        transcript_field=cfg.zoho.transcript_field,
        analysis_field=cfg.zoho.analysis_field,
        max_retries=cfg.zoho.max_update_retries,
    )
    return PipelineExecutor(
        resolver=resolver,
        downloader=AudioDownloader(timeout=cfg.download.timeout),
        transcriber=TranscriptionService.from_settings(cfg.transcription, cfg.openai),
        updater=updater,
        analyzer=CallAnalyzer(cfg.analysis, cfg.openai),
        temp_dir=cfg.download.temp_dir,
        default_translate=cfg.transcription.default_translate,
        default_language=cfg.transcription.default_language,
    )


token_cache = build_token_cache(runtime_settings)
executor = build_executor(runtime_settings, tokens=token_cache)
scheduler = RequestScheduler(
    max_concurrent=runtime_settings.queue.max_concurrent,
    max_queue_size=runtime_settings.queue.max_queue_size,
)
rate_limiter = RateLimiter(
    max_requests=runtime_settings.rate_limit.max_requests,
    window_seconds=runtime_settings.rate_limit.window_seconds,
)
event_publisher: Optional[QueueEventPublisher] = None
if runtime_settings.events.enabled:
    event_publisher = QueueEventPublisher.from_url(
        runtime_settings.events.redis_url,
        stream=runtime_settings.events.stream,
        maxlen=runtime_settings.events.stream_maxlen,
        flush_interval_ms=runtime_settings.events.flush_interval_ms,
    )
    scheduler.add_listener(event_publisher.record)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if event_publisher is not None:
        event_publisher.start()
        logger.info("events.started", extra={"stream": runtime_settings.events.stream})
    logger.info(
        "service.started",
        extra={
            "maxConcurrent": scheduler.max_concurrent,
            "maxQueueSize": scheduler.max_queue_size,
            "rateLimit": rate_limiter.max_requests,
        },
    )
    yield
    await scheduler.join()
    await executor.close()
    if event_publisher is not None:
        await event_publisher.stop()
    logger.info("service.stopped")


app = FastAPI(lifespan=lifespan)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_request_id() -> str:
    return f"req_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


async def _read_body(request: Request) -> Any:
    content_type = (request.headers.get("content-type") or "").lower()
    if "application/json" in content_type:
        try:
            return await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="invalid json")
    if any(form_type in content_type for form_type in _FORM_TYPES):
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}
    raw = await request.body()
    return raw.decode("utf-8", errors="replace")


def _error(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.to_body())


def _provider_name() -> Optional[str]:
    transcriber = getattr(executor, "transcriber", None)
    provider = getattr(transcriber, "provider", None)
    return getattr(provider, "name", None)


@app.get("/hello", response_class=PlainTextResponse)
async def hello() -> str:
    return "Hello World"


@app.get("/health")
async def health() -> Dict[str, Any]:
    return HealthResponse(
        timestamp=_now_iso(),
        transcription_provider=_provider_name(),
        analysis_enabled=runtime_settings.analysis.enabled,
        queue_events=event_publisher is not None,
    ).to_body()


@app.get("/queue-status")
async def queue_status() -> Dict[str, Any]:
    return QueueStatusResponse(
        timestamp=_now_iso(),
        queue=scheduler.stats(),
        active_requests=scheduler.active_details(),
        process={
            "pid": os.getpid(),
            "python": platform.python_version(),
            "platform": platform.platform(),
            "uptime": int(round(time.monotonic() - _PROCESS_STARTED)),
        },
    ).to_body()


@app.post("/clear-queue")
async def clear_queue() -> Dict[str, Any]:
    cleared = scheduler.clear()
    logger.info("queue.cleared_by_admin", extra={"cleared": cleared})
    return ClearQueueResponse(cleared_requests=cleared, current_stats=scheduler.stats()).to_body()


@app.get("/request/{request_id}")
async def request_status(request_id: str) -> Dict[str, Any]:
    details = scheduler.lookup(request_id)
    if details is None:
        raise HTTPException(status_code=404, detail=f"Request {request_id} is not currently active")
    return RequestStatusResponse(request_id=request_id, status=details["status"], details=details).to_body()


async def _process(request: Request) -> JSONResponse:
    client_key = _client_key(request)
    decision = rate_limiter.check(client_key)
    if not decision.allowed:
        return _error(
            429,
            ErrorResponse(
                error="Rate limit exceeded",
                message=f"Maximum {decision.limit} requests per {rate_limiter.window_seconds:g} seconds allowed",
                retry_after=decision.retry_after,
                client_ip=client_key,
            ),
        )

    request_id = _new_request_id()
    body = await _read_body(request)
    payload = body if isinstance(body, Mapping) else None
    logger.info("process_audio.received", extra={"requestId": request_id, "clientKey": client_key})

    try:
        pending = scheduler.submit(request_id, lambda: executor.run(body, request_id), payload=payload)
    except QueueFull as exc:
        return _error(
            503,
            ErrorResponse(
                error="Service temporarily unavailable",
                message="Server is at capacity. Please try again later.",
                request_id=request_id,
                queue_stats=exc.stats or scheduler.stats(),
            ),
        )

    try:
        result = await pending
    except ValidationError as exc:
        return _error(400, ErrorResponse(error="Bad request", message=str(exc), request_id=request_id))
    except QueueCleared as exc:
        return _error(500, ErrorResponse(error="Internal server error", message=str(exc), request_id=request_id))
    except PipelineError as exc:
        return _error(500, ErrorResponse(error="Internal server error", message=exc.message, request_id=request_id))
    except Exception as exc:
        logger.exception("process_audio.unexpected_error", extra={"requestId": request_id})
        return _error(500, ErrorResponse(error="Internal server error", message=str(exc), request_id=request_id))

    response = ProcessAudioResponse(
        message=SUCCESS_MESSAGE,
        record_id=result.record_id,
        transcript=result.transcript,
        request_id=result.request_id,
        processing_time=result.processing_time_ms,
    )
    logger.info("process_audio.complete", extra={"requestId": request_id, "recordId": result.record_id})
    return JSONResponse(status_code=200, content=response.to_body())


@app.post("/process-audio")
async def process_audio(request: Request) -> JSONResponse:
    return await _process(request)


@app.post("/webhook")
async def webhook(request: Request) -> JSONResponse:
    logger.info("webhook.forwarded")
    return await _process(request)


__all__ = ["app", "build_executor", "build_token_cache"]
