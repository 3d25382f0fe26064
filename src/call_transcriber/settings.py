"""Runtime configuration helpers for call-transcriber."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass

_BOOL_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _BOOL_TRUTHY


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _env_str(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = os.getenv(name)
    if value is None:
        return default
    return tuple(item.strip().lower() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class OpenAISettings:
    api_key: str | None
    organization: str | None
    base_url: str | None


@dataclass(frozen=True)
class TranscriptionSettings:
    provider: str
    model: str
    default_language: str | None
    default_translate: bool
    timeout: float


@dataclass(frozen=True)
class AnalysisSettings:
    enabled: bool
    model: str
    max_input_chars: int
    max_output_chars: int
    temperature: float
    max_tokens: int
    timeout: float


@dataclass(frozen=True)
class ZohoSettings:
    accounts_url: str
    client_id: str | None
    client_secret: str | None
    refresh_token: str | None
    api_domain: str
    module: str
    transcript_field: str
    analysis_field: str
    token_skew_seconds: float
    timeout: float
    max_update_retries: int


@dataclass(frozen=True)
class KnowlaritySettings:
    base_url: str
    api_key: str | None
    auth_token: str | None
    channel: str
    timeout: float
    reauth_domains: tuple[str, ...]


@dataclass(frozen=True)
class DownloadSettings:
    timeout: float
    temp_dir: str


@dataclass(frozen=True)
class QueueSettings:
    max_concurrent: int
    max_queue_size: int


@dataclass(frozen=True)
class RateLimitSettings:
    window_seconds: float
    max_requests: int


@dataclass(frozen=True)
class EventSettings:
    enabled: bool
    redis_url: str
    stream: str
    stream_maxlen: int
    flush_interval_ms: int


@dataclass(frozen=True)
class Settings:
    openai: OpenAISettings
    transcription: TranscriptionSettings
    analysis: AnalysisSettings
    zoho: ZohoSettings
    knowlarity: KnowlaritySettings
    download: DownloadSettings
    queue: QueueSettings
    rate_limit: RateLimitSettings
    events: EventSettings


def load_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""

    openai_settings = OpenAISettings(
        api_key=_env_str("OPENAI_API_KEY"),
        organization=_env_str("OPENAI_ORG_ID"),
        base_url=_env_str("OPENAI_BASE_URL"),
    )

    transcription_settings = TranscriptionSettings(
        provider=os.getenv("TRANSCRIBE_PROVIDER", "openai"),
        model=os.getenv("TRANSCRIBE_MODEL", "whisper-1"),
        default_language=_env_str("DEFAULT_TRANSCRIBE_LANGUAGE"),
        default_translate=_env_bool("DEFAULT_TRANSCRIBE_TRANSLATE", False),
        timeout=_env_float("TRANSCRIBE_TIMEOUT", 120.0),
    )

    analysis_settings = AnalysisSettings(
        enabled=_env_bool("ANALYSIS_ENABLED", True),
        model=os.getenv("OPENAI_ANALYSIS_MODEL", "gpt-4o-mini"),
        max_input_chars=_env_int("ANALYSIS_MAX_CHARS", 16000),
        max_output_chars=_env_int("ANALYSIS_OUTPUT_MAX_CHARS", 1200),
        temperature=_env_float("ANALYSIS_TEMPERATURE", 0.3),
        max_tokens=_env_int("ANALYSIS_MAX_TOKENS", 600),
        timeout=_env_float("ANALYSIS_TIMEOUT", 60.0),
    )

    zoho_settings = ZohoSettings(
        accounts_url=os.getenv("ZOHO_ACCOUNTS_URL", "https://accounts.zoho.com"),
        client_id=_env_str("ZOHO_CLIENT_ID"),
        client_secret=_env_str("ZOHO_CLIENT_SECRET"),
        refresh_token=_env_str("ZOHO_REFRESH_TOKEN"),
        api_domain=os.getenv("ZOHO_API_DOMAIN", "https://www.zohoapis.com/crm/v2"),
        module=os.getenv("ZOHO_MODULE", "Calls"),
        transcript_field=os.getenv("ZOHO_TRANSCRIPT_FIELD", "Description"),
        analysis_field=os.getenv("ZOHO_ANALYSIS_FIELD", "AI_Analysis"),
        token_skew_seconds=_env_float("ZOHO_TOKEN_SKEW_SECONDS", 300.0),
        timeout=_env_float("ZOHO_REQUEST_TIMEOUT", 30.0),
        max_update_retries=_env_int("ZOHO_MAX_UPDATE_RETRIES", 2),
    )

    knowlarity_settings = KnowlaritySettings(
        base_url=os.getenv("KNOWLARITY_BASE_URL", "https://kpi.knowlarity.com"),
        api_key=_env_str("KNOWLARITY_API_KEY"),
        auth_token=_env_str("KNOWLARITY_AUTH_TOKEN"),
        channel=os.getenv("KNOWLARITY_CHANNEL", "Basic"),
        timeout=_env_float("KNOWLARITY_TIMEOUT", 30.0),
        reauth_domains=_env_list(
            "RECORDING_REAUTH_DOMAINS",
            ("phonebridge.zoho.com", "phonebridge.zoho.in", "phonebridge.zoho.eu"),
        ),
    )

    download_settings = DownloadSettings(
        timeout=_env_float("DOWNLOAD_TIMEOUT", 30.0),
        temp_dir=os.getenv("AUDIO_TEMP_DIR", os.path.join(tempfile.gettempdir(), "call-transcriber")),
    )

    queue_settings = QueueSettings(
        max_concurrent=max(1, _env_int("MAX_CONCURRENT_REQUESTS", 5)),
        max_queue_size=max(0, _env_int("MAX_QUEUE_SIZE", 100)),
    )

    rate_limit_settings = RateLimitSettings(
        window_seconds=_env_float("RATE_LIMIT_WINDOW_SECONDS", 60.0),
        max_requests=_env_int("RATE_LIMIT_MAX_REQUESTS", 20),
    )

    event_settings = EventSettings(
        enabled=_env_bool("ENABLE_QUEUE_EVENTS", False),
        redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        stream=os.getenv("QUEUE_EVENT_STREAM", "events.transcriber"),
        stream_maxlen=_env_int("EVENT_STREAM_MAXLEN", 100000),
        flush_interval_ms=_env_int("EVENT_FLUSH_INTERVAL_MS", 500),
    )

    return Settings(
        openai=openai_settings,
        transcription=transcription_settings,
        analysis=analysis_settings,
        zoho=zoho_settings,
        knowlarity=knowlarity_settings,
        download=download_settings,
        queue=queue_settings,
        rate_limit=rate_limit_settings,
        events=event_settings,
    )


settings = load_settings()

__all__ = [
    "Settings",
    "OpenAISettings",
    "TranscriptionSettings",
    "AnalysisSettings",
    "ZohoSettings",
    "KnowlaritySettings",
    "DownloadSettings",
    "QueueSettings",
    "RateLimitSettings",
    "EventSettings",
    "settings",
    "load_settings",
]
