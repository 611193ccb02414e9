"""Parameter guard: flag-injection and length checks for tool arguments.

Every caller-supplied string or array is passed through guard() before it
is placed into argv. Both checks run before any subprocess is spawned.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from toolwrap.config import DEFAULT_CONFIG, CoreConfig
from toolwrap.exceptions import InjectionError, LimitExceededError
from toolwrap.logging import get_logger

logger = get_logger(__name__)

# =============================================================================
# Length classes
# =============================================================================

SHORT = "short"
STRING = "string"
MESSAGE = "message"
PATH = "path"

# Enum parameters are restricted to a closed set by the caller's schema.
ENUM = "enum"

ROLE_CLASSES: dict[str, str] = {
    # Identifiers and names
    "label": SHORT,
    "branch": SHORT,
    "ref": SHORT,
    "remote": SHORT,
    "tag": SHORT,
    "author": SHORT,
    "commit": SHORT,
    "container": SHORT,
    "image": SHORT,
    "name": SHORT,
    "service": SHORT,
    "network": SHORT,
    "volume": SHORT,
    "repo": SHORT,
    "hostname": SHORT,
    "header": SHORT,
    "platform": SHORT,
    "project": SHORT,
    "package": SHORT,
    "severity": SHORT,
    "rule": SHORT,
    "since": SHORT,
    "until": SHORT,
    # Free-form arguments
    "command": STRING,
    "endpoint": STRING,
    "jq": STRING,
    "query": STRING,
    "filter": STRING,
    "format": STRING,
    "title": STRING,
    "pattern": STRING,
    "config": STRING,
    "target": STRING,
    "url": STRING,
    "field": STRING,
    "arg": STRING,
    # Long-form text
    "body": MESSAGE,
    "comment": MESSAGE,
    "message": MESSAGE,
    "description": MESSAGE,
    # Filesystem locations
    "path": PATH,
    "file": PATH,
    "cwd": PATH,
    "dockerfile": PATH,
    "context": PATH,
    "compose_file": PATH,
    "input_file": PATH,
    "output_file": PATH,
    "report_path": PATH,
}


def limit_for(role: str, config: CoreConfig = DEFAULT_CONFIG) -> int:
    """Return the length ceiling for a role. Unknown roles use the string class."""
    cls = ROLE_CLASSES.get(role, STRING)
    if cls == SHORT:
        return config.short_string_max
    if cls == MESSAGE:
        return config.message_max
    if cls == PATH:
        return config.path_max
    return config.string_max


# =============================================================================
# Checks
# =============================================================================

def _clip(value: str, n: int = 80) -> str:
    return value if len(value) <= n else value[:n] + "..."


def assert_no_flag_injection(value: str, name: str) -> None:
    """Reject values the wrapped tool would parse as a flag.

    Leading whitespace is ignored for the check; many CLIs trim before
    parsing argv.
    """
    if value.strip().startswith("-"):
        logger.debug("Rejected flag-like value for %s", name)
        raise InjectionError(
            f"Invalid {name}: '{value}'. Values must not start with '-'.",
            param=name,
            value=value,
        )


def check_length(value: str, limit: int, name: str) -> None:
    """Raise LimitExceededError when value is longer than limit characters."""
    if len(value) > limit:
        logger.debug("Rejected %s: length %d exceeds %d", name, len(value), limit)
        raise LimitExceededError(
            f"{name} exceeds maximum length of {limit} characters "
            f"(got {len(value)}): '{_clip(value)}'",
            param=name,
            value=value,
        )


def _guard_string(value: str, limit: int, name: str) -> None:
    check_length(value, limit, name)
    assert_no_flag_injection(value, name)


def guard(
    value: Any,
    role: str,
    *,
    name: str | None = None,
    config: CoreConfig = DEFAULT_CONFIG,
) -> Any:
    """Validate a parameter value for the given role and return it unchanged.

    Strings are checked for length and flag injection. Lists and tuples are
    checked for element count, then every element is checked on its own.
    Enum-role values are passed through.

    Raises:
        InjectionError: value (or an element) starts with '-' after trimming.
        LimitExceededError: value too long, or too many elements.
        TypeError: value is neither a string nor a sequence of strings.
    """
    name = name or role
    if role == ENUM:
        return value

    limit = limit_for(role, config)
    if isinstance(value, str):
        _guard_string(value, limit, name)
        return value

    if isinstance(value, (list, tuple)):
        if len(value) > config.array_max:
            logger.debug("Rejected %s: %d elements", name, len(value))
            raise LimitExceededError(
                f"{name} exceeds maximum of {config.array_max} items (got {len(value)})",
                param=name,
            )
        for i, item in enumerate(value):
            if not isinstance(item, str):
                raise TypeError(
                    f"{name}[{i}] must be a string, got {type(item).__name__}"
                )
            _guard_string(item, limit, f"{name}[{i}]")
        return value

    raise TypeError(f"{name} must be a string or list of strings, got {type(value).__name__}")


def guard_params(
    params: Mapping[str, Any],
    roles: Mapping[str, str] | None = None,
    *,
    config: CoreConfig = DEFAULT_CONFIG,
) -> dict[str, Any]:
    """Validate every parameter of a call in one pass.

    The role of each parameter comes from ``roles``, falling back to the
    parameter name itself. None, booleans and numbers are not argv text and
    are passed through.
    """
    roles = roles or {}
    checked: dict[str, Any] = {}
    for key, value in params.items():
        if value is None or isinstance(value, (bool, int, float)):
            checked[key] = value
            continue
        role = roles.get(key, key)
        if isinstance(value, Sequence) and not isinstance(value, (str, list, tuple)):
            value = list(value)
        checked[key] = guard(value, role, name=key, config=config)
    return checked
