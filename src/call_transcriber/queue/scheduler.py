"""Bounded FIFO work queue with a fixed number of concurrent slots."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Mapping, Optional, Set

from ..errors import QueueCleared, QueueFull

logger = logging.getLogger(__name__)

Task = Callable[[], Awaitable[Any]]
QueueListener = Callable[[str, Dict[str, Any]], None]


class RequestStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True)
class AdmittedRequest:
    id: str
    task: Task
    future: asyncio.Future
    enqueued_at: float
    payload: Optional[Mapping[str, Any]] = None
    dispatched_at: Optional[float] = None
    status: RequestStatus = RequestStatus.QUEUED
    error: Optional[BaseException] = field(default=None, repr=False)

    def describe(self, now: float) -> Dict[str, Any]:
        data: Optional[Dict[str, Any]] = None
        if isinstance(self.payload, Mapping):
            data = {
                "Call_Record_ID": self.payload.get("Call_Record_ID")
                or self.payload.get("call_record_id")
                or self.payload.get("recordId"),
                "Call_Recording_URL": "present"
                if (
                    self.payload.get("Call_Recording_URL")
                    or self.payload.get("call_recording_url")
                    or self.payload.get("recordingUrl")
                )
                else "missing",
            }
        details: Dict[str, Any] = {
            "id": self.id,
            "status": self.status.value,
            "waitTime": int(((self.dispatched_at or now) - self.enqueued_at) * 1000),
            "data": data,
        }
        if self.dispatched_at is not None:
            details["processingTime"] = int((now - self.dispatched_at) * 1000)
        return details


class RequestScheduler:
    """Dispatches submitted tasks in FIFO order, ``max_concurrent`` at a time.

    ``submit`` never blocks: it either queues the task or raises
    ``QueueFull``. Every settlement frees a slot and dispatches the next
    queued entry, so the backlog drains without an external trigger.
    """

    def __init__(
        self,
        *,
        max_concurrent: int = 5,
        max_queue_size: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._max_concurrent = max_concurrent
        self._max_queue_size = max(0, max_queue_size)
        self._clock = clock
        self._started = clock()

        self._backlog: Deque[AdmittedRequest] = deque()
        self._active: Dict[str, AdmittedRequest] = {}
        self._running: Set[asyncio.Task] = set()
        self._listeners: List[QueueListener] = []

        self._total = 0
        self._completed = 0
        self._failed = 0
        self._queued = 0
        self._processing = 0
        self._processing_seconds = 0.0

        logger.info(
            "queue.init",
            extra={"maxConcurrent": max_concurrent, "maxQueueSize": self._max_queue_size},
        )

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def max_queue_size(self) -> int:
        return self._max_queue_size

    @property
    def queue_length(self) -> int:
        return len(self._backlog)

    @property
    def active_count(self) -> int:
        return len(self._active)

    def add_listener(self, listener: QueueListener) -> None:
        self._listeners.append(listener)

    def _emit(self, event: str, data: Dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, data)
            except Exception:  # pragma: no cover - listener bugs must not stall dispatch
                logger.exception("queue.listener_failed", extra={"event": event})

    def submit(self, request_id: str, task: Task, payload: Optional[Mapping[str, Any]] = None) -> asyncio.Future:
        """Queue ``task`` and return a future for its result."""

        if len(self._backlog) >= self._max_queue_size:
            logger.warning(
                "queue.full",
                extra={"requestId": request_id, "maxQueueSize": self._max_queue_size},
            )
            raise QueueFull(self._max_queue_size, stats=self.stats())
        if request_id in self._active or any(entry.id == request_id for entry in self._backlog):
            raise ValueError(f"request {request_id} is already tracked")

        loop = asyncio.get_running_loop()
        entry = AdmittedRequest(
            id=request_id,
            task=task,
            future=loop.create_future(),
            enqueued_at=self._clock(),
            payload=payload,
        )
        self._backlog.append(entry)
        self._total += 1
        self._queued += 1
        logger.info(
            "queue.enqueued",
            extra={
                "requestId": request_id,
                "queueLength": len(self._backlog),
                "active": len(self._active),
                "total": self._total,
            },
        )
        self._emit("requestQueued", {"requestId": request_id, "queueLength": len(self._backlog)})
        self._dispatch()
        return entry.future

    def _dispatch(self) -> None:
        while self._backlog and len(self._active) < self._max_concurrent:
            entry = self._backlog.popleft()
            entry.status = RequestStatus.PROCESSING
            entry.dispatched_at = self._clock()
            self._active[entry.id] = entry
            self._queued -= 1
            self._processing += 1
            logger.info(
                "queue.dispatched",
                extra={
                    "requestId": entry.id,
                    "waitMs": int((entry.dispatched_at - entry.enqueued_at) * 1000),
                    "active": len(self._active),
                    "queueLength": len(self._backlog),
                },
            )
            runner = asyncio.create_task(self._run(entry), name=f"request-{entry.id}")
            self._running.add(runner)
            runner.add_done_callback(self._running.discard)

    async def _run(self, entry: AdmittedRequest) -> None:
        result: Any = None
        error: Optional[BaseException] = None
        try:
            result = await entry.task()
        except asyncio.CancelledError as exc:
            error = exc
            raise
        except Exception as exc:
            error = exc
        finally:
            self._settle(entry, result, error)

    def _settle(self, entry: AdmittedRequest, result: Any, error: Optional[BaseException]) -> None:
        now = self._clock()
        started = entry.dispatched_at if entry.dispatched_at is not None else now
        self._active.pop(entry.id, None)
        self._processing -= 1
        self._processing_seconds += now - started
        total_ms = int((now - entry.enqueued_at) * 1000)
        processing_ms = int((now - started) * 1000)

        if error is None:
            entry.status = RequestStatus.COMPLETED
            self._completed += 1
            logger.info(
                "queue.completed",
                extra={"requestId": entry.id, "totalMs": total_ms, "processingMs": processing_ms},
            )
            self._emit(
                "requestCompleted",
                {"requestId": entry.id, "totalTime": total_ms, "processingTime": processing_ms},
            )
        else:
            entry.status = RequestStatus.FAILED
            entry.error = error
            self._failed += 1
            logger.warning(
                "queue.failed",
                extra={"requestId": entry.id, "totalMs": total_ms, "error": str(error) or repr(error)},
            )
            self._emit("requestFailed", {"requestId": entry.id, "error": str(error), "totalTime": total_ms})

        self._dispatch()

        if entry.future.done():
            return
        if error is None:
            entry.future.set_result(result)
        elif isinstance(error, asyncio.CancelledError):
            entry.future.cancel()
        else:
            entry.future.set_exception(error)

    def clear(self) -> int:
        """Fail every queued entry with ``QueueCleared``; running work is untouched."""

        cleared = 0
        while self._backlog:
            entry = self._backlog.popleft()
            entry.status = RequestStatus.FAILED
            entry.error = QueueCleared()
            self._queued -= 1
            self._failed += 1
            cleared += 1
            if not entry.future.done():
                entry.future.set_exception(entry.error)
        logger.info("queue.cleared", extra={"cleared": cleared})
        self._emit("queueCleared", {"clearedCount": cleared})
        return cleared

    def stats(self) -> Dict[str, Any]:
        uptime = max(self._clock() - self._started, 1e-9)
        settled = self._completed + self._failed
        avg_ms = (self._processing_seconds / settled * 1000.0) if settled else 0.0
        return {
            "total": self._total,
            "completed": self._completed,
            "failed": self._failed,
            "queued": self._queued,
            "processing": self._processing,
            "queueLength": len(self._backlog),
            "activeRequests": len(self._active),
            "maxConcurrent": self._max_concurrent,
            "maxQueueSize": self._max_queue_size,
            "uptime": int(round(uptime)),
            "avgProcessingTime": int(round(avg_ms)),
            "throughput": self._completed / (uptime / 60.0),
        }

    def active_details(self) -> List[Dict[str, Any]]:
        now = self._clock()
        return [entry.describe(now) for entry in self._active.values()]

    def lookup(self, request_id: str) -> Optional[Dict[str, Any]]:
        now = self._clock()
        entry = self._active.get(request_id)
        if entry is not None:
            return entry.describe(now)
        for position, queued in enumerate(self._backlog):
            if queued.id == request_id:
                details = queued.describe(now)
                details["position"] = position
                return details
        return None

    async def join(self) -> None:
        """Wait until every dispatched run has settled."""

        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)


__all__ = ["RequestScheduler", "AdmittedRequest", "RequestStatus", "QueueListener"]
