"""Per-client fixed-window rate limiting in front of the work queue."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict

from ..errors import AdmissionRejected

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Window:
    count: int
    reset_at: float


@dataclass(frozen=True, slots=True)
class AdmissionDecision:
    allowed: bool
    count: int
    limit: int
    retry_after: int = 0


class RateLimiter:
    """Fixed window per client key, reset lazily on access.

    All mutation happens synchronously inside ``check`` so a single event
    loop sees each key's read-modify-write as one step.
    """

    def __init__(
        self,
        *,
        max_requests: int = 20,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        prune_threshold: int = 10000,
    ) -> None:
        self._max = max_requests
        self._window = window_seconds
        self._clock = clock
        self._prune_threshold = prune_threshold
        self._windows: Dict[str, _Window] = {}

    @property
    def max_requests(self) -> int:
        return self._max

    @property
    def window_seconds(self) -> float:
        return self._window

    def check(self, client_key: str) -> AdmissionDecision:
        now = self._clock()
        if len(self._windows) >= self._prune_threshold:
            self.prune(now)

        window = self._windows.get(client_key)
        if window is None:
            window = _Window(count=0, reset_at=now + self._window)
            self._windows[client_key] = window
        if now > window.reset_at:
            window.count = 0
            window.reset_at = now + self._window

        if window.count >= self._max:
            retry_after = max(0, math.ceil(window.reset_at - now))
            logger.warning(
                "admission.rejected",
                extra={"clientKey": client_key, "count": window.count, "limit": self._max},
            )
            return AdmissionDecision(allowed=False, count=window.count, limit=self._max, retry_after=retry_after)

        window.count += 1
        logger.debug("admission.accepted", extra={"clientKey": client_key, "count": window.count, "limit": self._max})
        return AdmissionDecision(allowed=True, count=window.count, limit=self._max)

    def allow(self, client_key: str) -> bool:
        return self.check(client_key).allowed

    def admit(self, client_key: str) -> AdmissionDecision:
        """Like ``check`` but raises ``AdmissionRejected`` on rejection."""

        decision = self.check(client_key)
        if not decision.allowed:
            raise AdmissionRejected(client_key, limit=decision.limit, retry_after=decision.retry_after)
        return decision

    def prune(self, now: float | None = None) -> int:
        now = self._clock() if now is None else now
        expired = [key for key, window in self._windows.items() if now > window.reset_at]
        for key in expired:
            del self._windows[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._windows)


__all__ = ["RateLimiter", "AdmissionDecision"]
