from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from ..errors import DownloadError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DownloadedAudio:
    data: bytes
    content_type: Optional[str]
    url: str


class AudioDownloader:
    """Fetches recording bytes with a bounded timeout."""

    def __init__(self, *, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._timeout = timeout
        self._transport = transport

    async def fetch(self, url: str) -> DownloadedAudio:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise DownloadError(f"download timed out after {self._timeout:g}s", url=url) from exc
        except httpx.HTTPStatusError as exc:
            raise DownloadError(
                str(exc),
                url=url,
                status_code=exc.response.status_code,
                body=exc.response.text,
            ) from exc
        except httpx.HTTPError as exc:
            raise DownloadError(f"download failed: {exc!r}", url=url) from exc
        except (httpx.InvalidURL, ValueError) as exc:
            raise DownloadError(f"invalid recording URL: {url}", url=url) from exc

        data = response.content
        logger.info("download.complete", extra={"url": url, "bytes": len(data)})
        return DownloadedAudio(data=data, content_type=response.headers.get("content-type"), url=url)


__all__ = ["AudioDownloader", "DownloadedAudio"]
