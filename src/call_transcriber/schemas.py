from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ProcessAudioResponse(_CamelModel):
    message: str
    record_id: str = Field(alias="recordId")
    transcript: str
    request_id: str = Field(alias="requestId")
    processing_time: int = Field(alias="processingTime")


class ErrorResponse(_CamelModel):
    error: str
    message: str
    request_id: Optional[str] = Field(default=None, alias="requestId")
    retry_after: Optional[int] = Field(default=None, alias="retryAfter")
    client_ip: Optional[str] = Field(default=None, alias="clientIp")
    queue_stats: Optional[Dict[str, Any]] = Field(default=None, alias="queueStats")


class HealthResponse(_CamelModel):
    status: str = "healthy"
    timestamp: str
    service: str = "call-transcriber"
    transcription_provider: Optional[str] = Field(default=None, alias="transcriptionProvider")
    analysis_enabled: bool = Field(default=False, alias="analysisEnabled")
    queue_events: bool = Field(default=False, alias="queueEvents")


class QueueStatusResponse(_CamelModel):
    timestamp: str
    queue: Dict[str, Any]
    active_requests: List[Dict[str, Any]] = Field(default_factory=list, alias="activeRequests")
    process: Dict[str, Any] = Field(default_factory=dict)


class ClearQueueResponse(_CamelModel):
    message: str = "Queue cleared successfully"
    cleared_requests: int = Field(alias="clearedRequests")
    current_stats: Dict[str, Any] = Field(alias="currentStats")


class RequestStatusResponse(_CamelModel):
    request_id: str = Field(alias="requestId")
    status: str
    details: Dict[str, Any]


__all__ = [
    "ProcessAudioResponse",
    "ErrorResponse",
    "HealthResponse",
    "QueueStatusResponse",
    "ClearQueueResponse",
    "RequestStatusResponse",
]
