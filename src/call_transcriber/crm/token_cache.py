"""Process-wide bearer credential with lazy, coalesced refresh."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BearerCredential:
    token: str
    expires_at: float

    def is_fresh(self, now: float, skew: float) -> bool:
        return now < self.expires_at - skew


CredentialFetcher = Callable[[], Awaitable[BearerCredential]]


class TokenCache:
    """Holds one credential and refreshes it at most once per expiry.

    Concurrent callers that find the credential stale wait on a single
    refresh. A forced refresh is satisfied by any refresh that completed
    while the caller was waiting for the lock.
    """

    def __init__(
        self,
        fetcher: CredentialFetcher,
        *,
        skew_seconds: float = 300.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._fetcher = fetcher
        self._skew = skew_seconds
        self._clock = clock
        self._credential: Optional[BearerCredential] = None
        self._lock = asyncio.Lock()
        self.refresh_count = 0

    @property
    def credential(self) -> Optional[BearerCredential]:
        return self._credential

    def _usable(self, credential: Optional[BearerCredential]) -> bool:
        return credential is not None and credential.is_fresh(self._clock(), self._skew)

    async def get_token(self, force_refresh: bool = False) -> str:
        seen = self._credential
        if not force_refresh and self._usable(seen):
            return seen.token  # type: ignore[union-attr]

        async with self._lock:
            latest = self._credential
            if self._usable(latest) and (not force_refresh or latest is not seen):
                return latest.token  # type: ignore[union-attr]

            logger.info("token.refresh.start", extra={"forced": force_refresh})
            credential = await self._fetcher()
            self._credential = credential
            self.refresh_count += 1
            logger.info("token.refresh.complete", extra={"expiresAt": credential.expires_at})
            return credential.token

    def invalidate(self) -> None:
        if self._credential is not None:
            logger.info("token.invalidated")
        self._credential = None


__all__ = ["BearerCredential", "CredentialFetcher", "TokenCache"]
