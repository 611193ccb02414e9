"""Dual output envelope: rendered text plus the structured record.

Callers that return tool results to an agent send both. When the full
structured form would cost at least as many tokens as the raw stdout, the
compact projection is sent instead.
"""

from __future__ import annotations

import json
import math
from typing import Any

from toolwrap.classify import ErrorReport
from toolwrap.compact import DEFAULT_RULES, CompactRules, compact
from toolwrap.config import DEFAULT_CONFIG, CoreConfig
from toolwrap.formatters import format_record
from toolwrap.logging import get_logger

logger = get_logger(__name__)


def estimate_tokens(text: str) -> int:
    """Rough token count: four characters per token."""
    return math.ceil(len(text) / 4)


def _to_json(record: Any) -> str:
    return json.dumps(record.to_dict(), default=str)


def dual_output(record: Any, *, config: CoreConfig = DEFAULT_CONFIG) -> dict[str, Any]:
    """Build {"content": text, "structured": dict} for a record."""
    response: dict[str, Any] = {
        "content": format_record(record, config=config),
        "structured": record.to_dict(),
    }
    if isinstance(record, ErrorReport):
        response["is_error"] = True
    return response


def compact_dual_output(
    record: Any,
    raw_stdout: str,
    *,
    force_full: bool = False,
    rules: CompactRules = DEFAULT_RULES,
    config: CoreConfig = DEFAULT_CONFIG,
) -> dict[str, Any]:
    """Like dual_output, but switch to the compact projection when it pays off.

    The full record is kept when force_full is set or when its JSON is
    cheaper than the raw text it came from.
    """
    if force_full:
        return dual_output(record, config=config)

    full_tokens = estimate_tokens(_to_json(record))
    raw_tokens = estimate_tokens(raw_stdout)
    if full_tokens < raw_tokens:
        return dual_output(record, config=config)

    logger.debug(
        "Compacting %s: %d structured tokens vs %d raw",
        type(record).__name__,
        full_tokens,
        raw_tokens,
    )
    response = dual_output(compact(record, rules=rules, config=config), config=config)
    response["compacted"] = True
    return response
