"""Zoho CRM OAuth and record clients."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Optional

import httpx

from ..errors import TokenRefreshError
from ..settings import ZohoSettings
from .token_cache import BearerCredential, TokenCache

logger = logging.getLogger(__name__)

_AUTH_ERROR_CODES = {"INVALID_TOKEN", "AUTHENTICATION_FAILURE"}


def crm_base_url(api_domain: str) -> str:
    """Return the CRM v2 base, appending ``/crm/v2`` to a bare API domain."""

    base = (api_domain or "https://www.zohoapis.com/crm/v2").rstrip("/")
    if "/crm/" not in base:
        base = f"{base}/crm/v2"
    return base


class ZohoApiError(RuntimeError):
    def __init__(self, message: str, *, url: str, status_code: Optional[int] = None, payload: Any = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.payload = payload

    def mentions(self, text: str) -> bool:
        try:
            serialized = json.dumps(self.payload or {}, ensure_ascii=False)
        except (TypeError, ValueError):
            serialized = str(self.payload)
        return text.lower() in serialized.lower()


class ZohoAuthError(ZohoApiError):
    """The CRM rejected the bearer credential."""


def _describe(status_code: int, payload: Any) -> str:
    message = f"Zoho API returned {status_code} error"
    if isinstance(payload, dict):
        if payload.get("code"):
            message += f" (Code: {payload['code']})"
        if payload.get("message"):
            message += f" - {payload['message']}"
        if payload.get("details"):
            message += f" - Details: {json.dumps(payload['details'], ensure_ascii=False)}"
    elif isinstance(payload, str) and payload:
        message += f" - {payload}"
    return message


def _payload_of(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _error_code(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    code = payload.get("code")
    if code:
        return str(code)
    rows = payload.get("data")
    if isinstance(rows, list) and rows and isinstance(rows[0], dict) and rows[0].get("code"):
        return str(rows[0]["code"])
    return None


class ZohoOAuthClient:
    """Exchanges the configured refresh token for short-lived access tokens."""

    def __init__(
        self,
        cfg: ZohoSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock=time.time,
    ) -> None:
        self._cfg = cfg
        self._transport = transport
        self._clock = clock

    @property
    def token_url(self) -> str:
        return f"{self._cfg.accounts_url.rstrip('/')}/oauth/v2/token"

    async def refresh(self) -> BearerCredential:
        cfg = self._cfg
        if not (cfg.client_id and cfg.client_secret and cfg.refresh_token):
            raise TokenRefreshError(
                "Zoho OAuth credentials (ZOHO_CLIENT_ID, ZOHO_CLIENT_SECRET, ZOHO_REFRESH_TOKEN) are not configured",
                provider="Zoho",
            )
        params = {
            "refresh_token": cfg.refresh_token,
            "client_id": cfg.client_id,
            "client_secret": cfg.client_secret,
            "grant_type": "refresh_token",
        }
        url = self.token_url
        try:
            async with httpx.AsyncClient(timeout=cfg.timeout, transport=self._transport) as client:
                response = await client.post(url, params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error("zoho.token.refresh_failed", extra={"status": exc.response.status_code})
            raise TokenRefreshError(
                "Failed to get Zoho access token.",
                provider="Zoho",
                url=url,
                status_code=exc.response.status_code,
                body=_payload_of(exc.response),
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            logger.error("zoho.token.refresh_failed", extra={"error": repr(exc)})
            raise TokenRefreshError(f"Failed to get Zoho access token: {exc!r}", provider="Zoho", url=url) from exc

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise TokenRefreshError(
                "Failed to get Zoho access token.", provider="Zoho", url=url, status_code=response.status_code, body=data
            )
        expires_in = float(data.get("expires_in") or 3600)
        return BearerCredential(token=str(token), expires_at=self._clock() + expires_in)


class ZohoCrmClient:
    def __init__(
        self,
        cfg: ZohoSettings,
        *,
        tokens: TokenCache,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._cfg = cfg
        self._base = crm_base_url(cfg.api_domain)
        self._tokens = tokens
        self._transport = transport

    @property
    def tokens(self) -> TokenCache:
        return self._tokens

    def record_url(self, record_id: str) -> str:
        return f"{self._base}/{self._cfg.module}/{record_id}"

    async def _request(self, method: str, record_id: str, *, json_body: Optional[Dict[str, Any]] = None) -> Any:
        token = await self._tokens.get_token()
        url = self.record_url(record_id)
        headers = {
            "Authorization": f"Zoho-oauthtoken {token}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self._cfg.timeout, transport=self._transport) as client:
                response = await client.request(method, url, headers=headers, json=json_body)
        except httpx.HTTPError as exc:
            raise ZohoApiError(f"Zoho request failed: {exc!r}", url=url) from exc
        except (httpx.InvalidURL, ValueError) as exc:
            raise ZohoApiError(f"invalid Zoho URL: {url}", url=url) from exc

        payload = _payload_of(response)
        if response.is_success:
            return payload
        error_cls = ZohoAuthError if response.status_code == 401 or _error_code(payload) in _AUTH_ERROR_CODES else ZohoApiError
        logger.warning(
            "zoho.request.failed",
            extra={"method": method, "url": url, "status": response.status_code, "code": _error_code(payload)},
        )
        raise error_cls(_describe(response.status_code, payload), url=url, status_code=response.status_code, payload=payload)

    async def get_record(self, record_id: str) -> Dict[str, Any]:
        payload = await self._request("GET", record_id)
        rows = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(rows, list) or not rows or not isinstance(rows[0], dict):
            raise ZohoApiError(
                f"No data found in Zoho response for Call Record ID: {record_id}",
                url=self.record_url(record_id),
                payload=payload,
            )
        return rows[0]

    async def update_record(self, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        payload = await self._request("PUT", record_id, json_body={"data": [fields]})
        rows = payload.get("data") if isinstance(payload, dict) else None
        row = rows[0] if isinstance(rows, list) and rows and isinstance(rows[0], dict) else {}
        if str(row.get("status", "")).lower() == "error":
            url = self.record_url(record_id)
            error_cls = ZohoAuthError if _error_code(payload) in _AUTH_ERROR_CODES else ZohoApiError
            raise error_cls(_describe(200, row), url=url, status_code=200, payload=payload)
        return row


__all__ = [
    "crm_base_url",
    "ZohoApiError",
    "ZohoAuthError",
    "ZohoOAuthClient",
    "ZohoCrmClient",
]
