from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..errors import CRMUpdateError, TokenRefreshError
from .client import ZohoApiError, ZohoAuthError, ZohoCrmClient

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class UpdateAck:
    record_id: str
    attempts: int
    analysis_written: bool
    response: Dict[str, Any] = field(default_factory=dict)


class CrmUpdater:
    """Writes the transcript (and optional analysis) back to a call record.

    Attempts are sequential and share one budget of ``1 + max_retries``.
    A rejected analysis field is dropped once; an auth failure invalidates
    the cached token once. Anything else ends the update.
    """

    def __init__(
        self,
        client: ZohoCrmClient,
        *,
        transcript_field: str = "Description",
        analysis_field: str = "AI_Analysis",
        max_retries: int = 2,
    ) -> None:
        self._client = client
        self._transcript_field = transcript_field
        self._analysis_field = analysis_field
        self._max_attempts = 1 + max(0, max_retries)

    def _fields(self, transcript: str, analysis: Optional[str]) -> Dict[str, Any]:
        fields: Dict[str, Any] = {self._transcript_field: transcript}
        if analysis:
            fields[self._analysis_field] = analysis
        return fields

    async def update(self, record_id: str, transcript: str, analysis: Optional[str] = None) -> UpdateAck:
        include_analysis = bool(analysis)
        dropped_analysis = False
        refreshed_token = False
        attempts: List[str] = []
        last_error: Optional[Exception] = None

        while len(attempts) < self._max_attempts:
            attempts.append("analysis" if include_analysis else "transcript")
            fields = self._fields(transcript, analysis if include_analysis else None)
            try:
                response = await self._client.update_record(record_id, fields)
            except ZohoAuthError as exc:
                last_error = exc
                if refreshed_token:
                    break
                refreshed_token = True
                logger.warning("crm.update.auth_retry", extra={"recordId": record_id, "attempt": len(attempts)})
                self._client.tokens.invalidate()
                continue
            except ZohoApiError as exc:
                last_error = exc
                if include_analysis and not dropped_analysis and exc.mentions(self._analysis_field):
                    dropped_analysis = True
                    include_analysis = False
                    logger.warning(
                        "crm.update.field_rejected",
                        extra={"recordId": record_id, "field": self._analysis_field, "attempt": len(attempts)},
                    )
                    continue
                break
            except TokenRefreshError as exc:
                last_error = exc
                break

            logger.info(
                "crm.update.complete",
                extra={"recordId": record_id, "attempts": len(attempts), "analysis": include_analysis},
            )
            return UpdateAck(
                record_id=record_id,
                attempts=len(attempts),
                analysis_written=include_analysis,
                response=response,
            )

        raise _as_update_error(record_id, last_error, len(attempts))


def _as_update_error(record_id: str, error: Optional[Exception], attempts: int) -> CRMUpdateError:
    if isinstance(error, ZohoApiError):
        result = CRMUpdateError(
            str(error),
            provider="Zoho",
            url=error.url,
            status_code=error.status_code,
            body=error.payload,
        )
    elif isinstance(error, TokenRefreshError):
        result = CRMUpdateError(error.message, provider="Zoho", url=error.url)
    else:
        result = CRMUpdateError(f"CRM update failed for {record_id}", provider="Zoho")
    logger.error("crm.update.failed", extra={"recordId": record_id, "attempts": attempts, "error": str(error)})
    result.__cause__ = error
    return result


__all__ = ["CrmUpdater", "UpdateAck"]
