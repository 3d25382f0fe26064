"""Error taxonomy shared by the queue, pipeline and HTTP layers."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

_PROVIDER_HOSTS = (
    ("zohoapis.", "Zoho"),
    ("zoho.", "Zoho"),
    ("knowlarity.", "Knowlarity"),
    ("openai.com", "OpenAI"),
)


def provider_for_url(url: Optional[str]) -> str:
    """Name the upstream provider a URL belongs to, ``API`` when unknown."""

    if not url:
        return "API"
    try:
        host = (urlsplit(url).hostname or "").lower()
    except ValueError:
        return "API"
    for marker, name in _PROVIDER_HOSTS:
        if marker in host:
            return name
    return "API"


class TranscriberError(RuntimeError):
    """Base class for every error raised by call-transcriber."""


class ValidationError(TranscriberError):
    """Inbound payload is unusable; never retried."""


class AdmissionRejected(TranscriberError):
    """Client exceeded its request window."""

    def __init__(self, client_key: str, *, limit: int, retry_after: int) -> None:
        super().__init__(f"Maximum {limit} requests per window allowed")
        self.client_key = client_key
        self.limit = limit
        self.retry_after = retry_after


class QueueFull(TranscriberError):
    """Backlog already holds the configured maximum."""

    def __init__(self, max_queue_size: int, *, stats: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            f"Queue is full. Maximum {max_queue_size} requests can be queued. Please try again later."
        )
        self.max_queue_size = max_queue_size
        self.stats = stats or {}


class QueueCleared(TranscriberError):
    """Queued entry dropped by an administrative clear."""

    def __init__(self) -> None:
        super().__init__("Queue cleared by administrator")


class PipelineError(TranscriberError):
    """A pipeline stage failed.

    ``url`` is the target of the failing outbound call (if any) and is used
    to infer ``provider`` when the stage did not set one explicitly.
    """

    stage = "pipeline"

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.detail = message
        self.provider = provider
        self.url = url
        self.status_code = status_code
        self.body = body

    def annotate(self) -> "PipelineError":
        if self.provider is None and self.url:
            self.provider = provider_for_url(self.url)
        return self

    @property
    def message(self) -> str:
        if self.status_code is None:
            return self.detail
        text = f"{self.provider or 'API'} API request failed: {self.detail}"
        if self.body:
            text += f" - {_body_excerpt(self.body)}"
        return text

    def __str__(self) -> str:
        return self.message


class ResolutionError(PipelineError):
    stage = "resolve"


class DownloadError(PipelineError):
    stage = "download"


class TranscriptionError(PipelineError):
    stage = "transcribe"


class AnalysisError(PipelineError):
    stage = "analyze"


class CRMUpdateError(PipelineError):
    stage = "update_crm"


class TokenRefreshError(PipelineError):
    stage = "auth"


def _body_excerpt(body: Any, limit: int = 200) -> str:
    if isinstance(body, (bytes, bytearray)):
        text = body.decode("utf-8", errors="replace")
    elif isinstance(body, str):
        text = body
    else:
        try:
            text = json.dumps(body, ensure_ascii=False)
        except (TypeError, ValueError):
            text = repr(body)
    return text[:limit]


__all__ = [
    "provider_for_url",
    "TranscriberError",
    "ValidationError",
    "AdmissionRejected",
    "QueueFull",
    "QueueCleared",
    "PipelineError",
    "ResolutionError",
    "DownloadError",
    "TranscriptionError",
    "AnalysisError",
    "CRMUpdateError",
    "TokenRefreshError",
]
