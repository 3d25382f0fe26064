"""Publish queue lifecycle events to a Redis stream."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections import deque
from typing import Any, Deque, Dict, Optional, Tuple

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class QueueEventPublisher:
    """Buffers scheduler events in memory and flushes them with XADD.

    ``record`` is a scheduler listener and never blocks. A background task
    flushes the buffer; a batch stops at the first failed XADD and the
    remaining events are retried on the next round.
    """

    def __init__(
        self,
        client: Any,
        *,
        stream: str = "events.transcriber",
        maxlen: int = 100000,
        flush_interval_ms: int = 500,
        buffer_limit: int = 10000,
    ) -> None:
        self._client = client
        self._stream = stream
        self._maxlen = maxlen
        self._interval = max(50, flush_interval_ms) / 1000.0
        self._pending: Deque[Tuple[str, Dict[str, Any]]] = deque(maxlen=buffer_limit)
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "QueueEventPublisher":
        return cls(redis.from_url(url, decode_responses=True), **kwargs)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def record(self, event: str, data: Dict[str, Any]) -> None:
        payload = dict(data)
        payload.setdefault("ts", int(time.time()))
        self._pending.append((event, payload))

    async def flush_once(self) -> int:
        delivered = 0
        while self._pending:
            event, payload = self._pending[0]
            fields = {"type": event, "payload": json.dumps(payload, ensure_ascii=False, default=str)}
            try:
                await self._client.xadd(self._stream, fields, maxlen=self._maxlen, approximate=True)
            except Exception as exc:
                logger.warning("events.flush_failed", extra={"event": event, "error": repr(exc)})
                break
            self._pending.popleft()
            delivered += 1
        return delivered

    def start(self) -> asyncio.Task:
        async def _runner() -> None:
            while True:
                await self.flush_once()
                await asyncio.sleep(self._interval)

        if self._task is None or self._task.done():
            self._task = asyncio.create_task(_runner(), name="queue-event-flush")
        return self._task

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self.flush_once()
        close = getattr(self._client, "aclose", None) or getattr(self._client, "close", None)
        if close is not None:
            result = close()
            if asyncio.iscoroutine(result):
                await result


__all__ = ["QueueEventPublisher"]
