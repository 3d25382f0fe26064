from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(slots=True)
class TranscriptionOptions:
    language: Optional[str] = None
    translate: bool = False


@dataclass(slots=True)
class TranscriptionResult:
    text: str
    language: Optional[str] = None
    provider: Optional[str] = None
    translated: bool = False
