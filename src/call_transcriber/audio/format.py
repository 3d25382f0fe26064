"""Audio container detection used to name persisted recordings."""

from __future__ import annotations

import re
from typing import Optional

DEFAULT_EXTENSION = "mp3"

# Substring checks against the lowered header value.
_CONTENT_TYPE_TABLE: tuple[tuple[tuple[str, ...], str], ...] = (
    (("audio/wav", "audio/wave", "audio/x-wav"), "wav"),
    (("audio/mpeg", "audio/mp3"), "mp3"),
    (("audio/mp4", "audio/m4a", "audio/x-m4a"), "m4a"),
    (("audio/ogg",), "ogg"),
    (("audio/webm",), "webm"),
    (("audio/flac", "audio/x-flac"), "flac"),
    (("video/mp4",), "mp4"),
)

_URL_EXTENSION = re.compile(r"\.(mp3|wav|m4a|ogg|webm|flac|mp4|mpeg|mpga|oga)(?:[?#]|$)")

_SIGNATURE_BYTES = 12


def extension_from_content_type(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    lowered = content_type.lower()
    for markers, extension in _CONTENT_TYPE_TABLE:
        if any(marker in lowered for marker in markers):
            return extension
    return None


def extension_from_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    match = _URL_EXTENSION.search(url.lower())
    return match.group(1) if match else None


def extension_from_signature(data: Optional[bytes]) -> Optional[str]:
    if not data or len(data) < _SIGNATURE_BYTES:
        return None
    head = bytes(data[:_SIGNATURE_BYTES])
    if head[0:4] == b"RIFF" and head[8:12] == b"WAVE":
        return "wav"
    # MPEG audio frame sync: 11 set bits
    if head[0:3] == b"ID3" or (head[0] == 0xFF and (head[1] & 0xE0) == 0xE0):
        return "mp3"
    if head[0:4] == b"OggS":
        return "ogg"
    if head[4:8] == b"ftyp":
        return "mp4"
    if head[0:4] == b"fLaC":
        return "flac"
    return None


def detect_extension(data: Optional[bytes], content_type: Optional[str], source_url: Optional[str]) -> str:
    """Pick a file extension for downloaded audio.

    The declared content type is trusted first, then the URL, then the
    leading bytes. A mislabeled file keeps its declared type.
    """

    return (
        extension_from_content_type(content_type)
        or extension_from_url(source_url)
        or extension_from_signature(data)
        or DEFAULT_EXTENSION
    )


__all__ = [
    "DEFAULT_EXTENSION",
    "detect_extension",
    "extension_from_content_type",
    "extension_from_url",
    "extension_from_signature",
]
