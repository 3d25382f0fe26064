"""Alias-tolerant parsing of inbound webhook bodies."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence
from urllib.parse import parse_qsl

from ..errors import ValidationError

RECORD_ID_KEYS = ("Call_Record_ID", "call_record_id", "recordId")
RECORDING_URL_KEYS = ("Call_Recording_URL", "call_recording_url", "recordingUrl")

_TRUE_FLAGS = {"true", "1"}


@dataclass(frozen=True, slots=True)
class ParsedRequest:
    record_id: str
    recording_url: Optional[str] = None
    translate: bool = False
    language: Optional[str] = None


def coerce_body(body: Any) -> Mapping[str, Any]:
    """Turn a JSON/form mapping or a raw text body into a mapping."""

    if isinstance(body, Mapping):
        return body
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        text = body.strip()
        if not text:
            return {}
        try:
            decoded = json.loads(text)
        except ValueError:
            return dict(parse_qsl(text, keep_blank_values=False))
        if isinstance(decoded, Mapping):
            return decoded
        raise ValidationError(f"Unable to parse request body. Body type: {type(decoded).__name__}")
    if body is None:
        return {}
    raise ValidationError(f"Unable to parse request body. Body type: {type(body).__name__}")


def first_value(data: Mapping[str, Any], keys: Sequence[str]) -> Optional[str]:
    for key in keys:
        value = data.get(key)
        if value is None or isinstance(value, (dict, list)):
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def _flag(value: Any) -> bool:
    if value is True:
        return True
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_FLAGS
    return False


def parse_request(body: Any) -> ParsedRequest:
    data = coerce_body(body)
    record_id = first_value(data, RECORD_ID_KEYS)
    if not record_id:
        raise ValidationError("Missing required field: Call_Record_ID")
    language = data.get("language")
    return ParsedRequest(
        record_id=record_id,
        recording_url=first_value(data, RECORDING_URL_KEYS),
        translate=_flag(data.get("translate")),
        language=language.strip() if isinstance(language, str) and language.strip() else None,
    )


__all__ = [
    "ParsedRequest",
    "RECORD_ID_KEYS",
    "RECORDING_URL_KEYS",
    "coerce_body",
    "first_value",
    "parse_request",
]
