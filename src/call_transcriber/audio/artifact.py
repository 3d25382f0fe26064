from __future__ import annotations

import asyncio
import logging
import re
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


@dataclass(slots=True)
class AudioArtifact:
    """Downloaded recording persisted for the lifetime of one pipeline run."""

    data: bytes
    extension: str
    path: Path


def artifact_name(record_id: str, extension: str) -> str:
    safe_id = _UNSAFE_NAME_CHARS.sub("_", record_id) or "record"
    return f"audio_{safe_id}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}.{extension}"


@asynccontextmanager
async def scoped_artifact(
    directory: str | Path,
    *,
    record_id: str,
    data: bytes,
    extension: str,
) -> AsyncIterator[AudioArtifact]:
    """Write ``data`` to a unique file and remove it when the block exits."""

    root = Path(directory)
    root.mkdir(parents=True, exist_ok=True)
    path = root / artifact_name(record_id, extension)
    try:
        await asyncio.to_thread(path.write_bytes, data)
        logger.info("artifact.saved", extra={"path": str(path), "bytes": len(data)})
        yield AudioArtifact(data=data, extension=extension, path=path)
    finally:
        release_artifact(path)


def release_artifact(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError:  # pragma: no cover - best effort cleanup
        logger.exception("artifact.cleanup_failed", extra={"path": str(path)})
        return
    logger.info("artifact.removed", extra={"path": str(path)})


__all__ = ["AudioArtifact", "artifact_name", "scoped_artifact", "release_artifact"]
