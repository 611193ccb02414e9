"""JSON decoding for tools that emit one object per line (``--format json``)."""

from __future__ import annotations

import json
from typing import Any

from toolwrap.logging import get_logger

logger = get_logger(__name__)


def decode_ndjson(text: str) -> tuple[dict[str, Any], ...]:
    """Decode newline-delimited JSON objects.

    Blank lines, lines that are not valid JSON, and lines that decode to
    something other than an object are skipped.
    """
    entries: list[dict[str, Any]] = []
    if not text:
        return ()
    for line in text.replace("\r\n", "\n").split("\n"):
        line = line.strip()
        if not line:
            continue
        try:
            value = json.loads(line)
        except json.JSONDecodeError as e:
            logger.debug("Skipping malformed JSON line at position %d: %s", e.pos or 0, e)
            continue
        if isinstance(value, dict):
            entries.append(value)
    return tuple(entries)


def decode_json_document(text: str) -> Any:
    """Decode a whole-document JSON payload, returning None on failure."""
    if not text or not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.debug("JSON parse error at position %d: %s", e.pos or 0, e)
        return None


def as_str(value: Any, default: str = "") -> str:
    """Coerce a decoded field to str; None and containers give the default."""
    if value is None or isinstance(value, (dict, list)):
        return default
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return default
    return default
