"""Knowlarity call-log client used to obtain secured recording URLs."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..errors import ResolutionError
from ..settings import KnowlaritySettings
from .tree import DEFAULT_MAX_DEPTH, find_value, scan_serialized

logger = logging.getLogger(__name__)

SECURED_URL_KEY = "secured_recording_url"
CALL_LOG_PATH = "/Basic/v1/account/call/get-detailed-call-log"


def extract_secured_url(payload: Any, *, max_depth: int = DEFAULT_MAX_DEPTH) -> Optional[str]:
    found = find_value(payload, SECURED_URL_KEY, max_depth=max_depth)
    if found is not None:
        return str(found).strip()
    return scan_serialized(payload, SECURED_URL_KEY)


class KnowlarityClient:
    def __init__(
        self,
        cfg: KnowlaritySettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._cfg = cfg
        self._transport = transport

    @property
    def call_log_url(self) -> str:
        return f"{self._cfg.base_url.rstrip('/')}{CALL_LOG_PATH}"

    def is_configured(self) -> bool:
        return bool(self._cfg.api_key and self._cfg.auth_token)

    async def fetch_secured_url(self, recording_id: str) -> str:
        if not self.is_configured():
            raise ResolutionError(
                "Knowlarity credentials (KNOWLARITY_API_KEY and KNOWLARITY_AUTH_TOKEN) are required but not configured",
                provider="Knowlarity",
            )

        url = self.call_log_url
        headers = {
            "channel": self._cfg.channel,
            "x-api-key": self._cfg.api_key or "",
            "authorization": self._cfg.auth_token or "",
            "content-type": "application/json",
            "cache-control": "no-cache",
        }
        logger.info("knowlarity.lookup.start", extra={"recordingId": recording_id})
        try:
            async with httpx.AsyncClient(timeout=self._cfg.timeout, transport=self._transport) as client:
                response = await client.get(url, headers=headers, params={"uuid": recording_id})
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ResolutionError(
                "Failed to fetch recording URL from Knowlarity",
                url=url,
                status_code=exc.response.status_code,
                body=exc.response.text,
            ) from exc
        except httpx.HTTPError as exc:
            raise ResolutionError(f"Failed to fetch recording URL from Knowlarity: {exc!r}", url=url) from exc
        except (httpx.InvalidURL, ValueError) as exc:
            raise ResolutionError(f"invalid Knowlarity URL: {url}", provider="Knowlarity", url=url) from exc

        try:
            payload: Any = response.json()
        except ValueError:
            payload = response.text

        secured_url = extract_secured_url(payload)
        if not secured_url:
            logger.warning(
                "knowlarity.lookup.missing_url",
                extra={"recordingId": recording_id, "keys": sorted(payload) if isinstance(payload, dict) else None},
            )
            raise ResolutionError(f"{SECURED_URL_KEY} not found in Knowlarity response", url=url)
        logger.info("knowlarity.lookup.complete", extra={"recordingId": recording_id})
        return secured_url


__all__ = ["KnowlarityClient", "extract_secured_url", "SECURED_URL_KEY"]
