"""Derive a fetchable recording URL from a CRM call record."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, Optional, Protocol
from urllib.parse import urlsplit

from .crm.client import ZohoApiError, ZohoAuthError
from .errors import ResolutionError, TokenRefreshError

logger = logging.getLogger(__name__)

RECORDING_FIELDS = ("Voice_Recording__s", "voice_recording__s", "Voice_Recording")

_UUID = r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"

# Tried in order; the first match wins.
RECORDING_ID_PATTERNS = (
    re.compile(r"/recording/(" + _UUID + r")"),
    re.compile(r"/recording/([^/?#]+)"),
    re.compile(r"(" + _UUID + r")"),
)


class CredentialSource(Protocol):
    def invalidate(self) -> None: ...


class RecordSource(Protocol):
    @property
    def tokens(self) -> CredentialSource: ...

    async def get_record(self, record_id: str) -> Dict[str, Any]: ...


class SecuredUrlSource(Protocol):
    async def fetch_secured_url(self, recording_id: str) -> str: ...


def extract_recording_id(reference: Optional[str]) -> Optional[str]:
    if not reference:
        return None
    text = str(reference).strip()
    for pattern in RECORDING_ID_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def recording_reference(record: Dict[str, Any]) -> Optional[str]:
    for name in RECORDING_FIELDS:
        value = record.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _host_matches(host: str, domains: Iterable[str]) -> bool:
    return any(host == domain or host.endswith("." + domain) for domain in domains)


def is_direct_url(reference: str, reauth_domains: Iterable[str] = ()) -> bool:
    """True when the reference can be downloaded as-is."""

    try:
        parts = urlsplit(reference)
        host = parts.hostname
    except ValueError:
        return False
    if parts.scheme.lower() not in {"http", "https"} or not host:
        return False
    return not _host_matches(host.lower(), [d.lower() for d in reauth_domains])


class RecordingResolver:
    def __init__(
        self,
        records: RecordSource,
        telephony: SecuredUrlSource,
        *,
        reauth_domains: Iterable[str] = (),
    ) -> None:
        self._records = records
        self._telephony = telephony
        self._reauth_domains = tuple(reauth_domains)

    async def _fetch_record(self, record_id: str, log_extra: Dict[str, Any]) -> Dict[str, Any]:
        """Fetch the call record, refreshing a rejected credential once."""

        try:
            return await self._records.get_record(record_id)
        except ZohoAuthError:
            logger.warning("resolver.auth_retry", extra=log_extra)
            self._records.tokens.invalidate()
        try:
            return await self._records.get_record(record_id)
        except ZohoAuthError:
            self._records.tokens.invalidate()
            raise

    async def resolve(self, record_id: str, *, request_id: Optional[str] = None) -> str:
        log_extra = {"requestId": request_id, "recordId": record_id}
        logger.info("resolver.start", extra=log_extra)

        try:
            record = await self._fetch_record(record_id, log_extra)
        except ZohoApiError as exc:
            raise ResolutionError(str(exc), provider="Zoho", url=exc.url, status_code=exc.status_code, body=exc.payload) from exc
        except TokenRefreshError as exc:
            raise ResolutionError(exc.message, provider="Zoho", url=exc.url) from exc

        reference = recording_reference(record)
        if not reference:
            raise ResolutionError(f"Voice_Recording__s field not found in call record {record_id}", provider="Zoho")

        if is_direct_url(reference, self._reauth_domains):
            logger.info("resolver.direct_url", extra=log_extra)
            return reference

        recording_id = extract_recording_id(reference)
        if not recording_id:
            raise ResolutionError(f"Could not extract recording ID from Voice_Recording__s: {reference}")
        logger.info("resolver.recording_id", extra={**log_extra, "recordingId": recording_id})

        secured_url = await self._telephony.fetch_secured_url(recording_id)
        logger.info("resolver.complete", extra=log_extra)
        return secured_url


__all__ = [
    "RECORDING_FIELDS",
    "RecordingResolver",
    "extract_recording_id",
    "recording_reference",
    "is_direct_url",
]
