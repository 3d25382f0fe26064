"""Bounded-depth search through loosely shaped JSON documents.

Provider responses nest the interesting payload as an object, as a JSON
encoded string inside an object, or several levels down. ``find_value``
walks dicts, lists and strings that themselves decode as JSON.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Optional

DEFAULT_MAX_DEPTH = 5

Predicate = Callable[[Any], bool]


def _non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _decode_json_string(value: str) -> Any:
    text = value.strip()
    if not text or text[0] not in "{[":
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None


def find_value(
    document: Any,
    key: str,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    accept: Predicate = _non_empty_string,
) -> Optional[Any]:
    """Return the first value stored under ``key`` that satisfies ``accept``.

    Depth counts container hops; decoding a JSON string costs one hop.
    Keys on the current object are checked before descending.
    """

    def walk(node: Any, depth: int) -> Optional[Any]:
        if depth > max_depth:
            return None
        if isinstance(node, dict):
            if key in node and accept(node[key]):
                return node[key]
            for child in node.values():
                found = walk(child, depth + 1)
                if found is not None:
                    return found
        elif isinstance(node, list):
            for child in node:
                found = walk(child, depth + 1)
                if found is not None:
                    return found
        elif isinstance(node, str):
            decoded = _decode_json_string(node)
            if decoded is not None:
                return walk(decoded, depth + 1)
        return None

    return walk(document, 0)


def scan_serialized(document: Any, key: str) -> Optional[str]:
    """Regex fallback over the serialized document, escaped quotes included."""

    if isinstance(document, (bytes, bytearray)):
        text = document.decode("utf-8", errors="replace")
    elif isinstance(document, str):
        text = document
    else:
        try:
            text = json.dumps(document, ensure_ascii=False)
        except (TypeError, ValueError):
            text = str(document)
    pattern = re.compile(r'\\*"' + re.escape(key) + r'\\*"\s*:\s*\\*"((?:[^"\\]|\\/)+)')
    match = pattern.search(text)
    if not match:
        return None
    value = match.group(1).replace("\\/", "/").strip()
    return value or None


__all__ = ["DEFAULT_MAX_DEPTH", "find_value", "scan_serialized"]
