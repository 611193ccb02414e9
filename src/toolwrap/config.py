"""Configuration for toolwrap.

Limits live in one immutable struct built at process start and passed
explicitly into guard, parser, formatter and executor calls.
"""

from __future__ import annotations

import dataclasses
import os
import signal
from dataclasses import dataclass
from typing import Any

import yaml

from toolwrap.exceptions import ConfigurationError
from toolwrap.logging import get_logger

logger = get_logger(__name__)

# Field annotations are strings under postponed evaluation
_FIELD_TYPES: dict[str, type | tuple[type, ...]] = {
    "int": int,
    "float": (int, float),
    "bool": bool,
}


@dataclass(frozen=True)
class CoreConfig:
    """Runtime limits shared by every wrapped tool."""

    # Guard length classes (characters)
    short_string_max: int = 255
    string_max: int = 65_536
    message_max: int = 72_000
    path_max: int = 4_096
    array_max: int = 1_000

    # Compact log window
    log_head: int = 5
    log_tail: int = 5
    log_ceiling: int = 10

    # Unified-diff accumulation ceiling (bytes)
    diff_byte_ceiling: int = 1_048_576

    # Formatter free-text ceilings (characters)
    body_char_max: int = 500
    stderr_preview_max: int = 200

    # Prefix length for identifiers in display records
    display_id_length: int = 12

    # Execution
    default_timeout: int = 60
    max_buffer: int = 10 * 1024 * 1024  # 10MB
    kill_signal: int = signal.SIGTERM
    kill_grace: float = 5.0
    sanitize_all_paths: bool = False

    def __post_init__(self) -> None:
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            expected = _FIELD_TYPES[f.type]
            # bool is an int subclass; only bool fields accept it
            if isinstance(value, bool) != (expected is bool) or not isinstance(value, expected):
                raise ConfigurationError(
                    f"{f.name} must be {f.type}, got {type(value).__name__} {value!r}"
                )
            if expected is bool:
                continue
            if f.name in ("kill_grace",):
                if value < 0:
                    raise ConfigurationError(f"{f.name} must be >= 0, got {value}")
            elif value <= 0:
                raise ConfigurationError(f"{f.name} must be positive, got {value}")
        if self.log_head + self.log_tail > self.log_ceiling:
            raise ConfigurationError(
                f"log_head + log_tail ({self.log_head + self.log_tail}) "
                f"exceeds log_ceiling ({self.log_ceiling})"
            )

    def with_overrides(self, **overrides: Any) -> CoreConfig:
        """Return a copy with the given fields replaced."""
        return dataclasses.replace(self, **overrides)


DEFAULT_CONFIG = CoreConfig()

_FIELD_NAMES = {f.name for f in dataclasses.fields(CoreConfig)}


def _parse_signal(value: str) -> int | None:
    value = value.strip().upper()
    if value.isdigit():
        return int(value)
    if not value.startswith("SIG"):
        value = "SIG" + value
    sig = getattr(signal, value, None)
    return int(sig) if sig is not None else None


def _load_yaml_overrides(path: str) -> dict[str, Any]:
    """Read top-level overrides from a YAML file. Bad files are ignored."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (yaml.YAMLError, OSError) as e:
        logger.warning("Failed to load config overrides from %s: %s", path, e)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("Config file %s is not a mapping, ignoring", path)
        return {}

    overrides: dict[str, Any] = {}
    for key, value in data.items():
        if key not in _FIELD_NAMES:
            logger.warning("Unknown config key %r in %s, ignoring", key, path)
            continue
        if key == "kill_signal" and isinstance(value, str):
            sig = _parse_signal(value)
            if sig is None:
                logger.warning("Unknown kill_signal %r in %s, ignoring", value, path)
                continue
            value = sig
        overrides[key] = value
    return overrides


def load_config(environ: dict[str, str] | None = None) -> CoreConfig:
    """Build a CoreConfig from environment variables and an optional YAML file.

    TOOLWRAP_CONFIG names a YAML file whose keys override any field;
    TOOLWRAP_TIMEOUT, TOOLWRAP_MAX_BUFFER, TOOLWRAP_KILL_SIGNAL and
    TOOLWRAP_SANITIZE_ALL_PATHS are applied on top of it.
    """
    env = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}

    config_path = env.get("TOOLWRAP_CONFIG", "")
    if config_path:
        overrides.update(_load_yaml_overrides(config_path))

    timeout = env.get("TOOLWRAP_TIMEOUT")
    if timeout and timeout.isdigit():
        overrides["default_timeout"] = int(timeout)

    if env.get("TOOLWRAP_MAX_BUFFER"):
        try:
            overrides["max_buffer"] = int(env["TOOLWRAP_MAX_BUFFER"])
        except ValueError:
            logger.warning("Ignoring non-integer TOOLWRAP_MAX_BUFFER=%r", env["TOOLWRAP_MAX_BUFFER"])

    if env.get("TOOLWRAP_KILL_SIGNAL"):
        sig = _parse_signal(env["TOOLWRAP_KILL_SIGNAL"])
        if sig is not None:
            overrides["kill_signal"] = sig

    flag = env.get("TOOLWRAP_SANITIZE_ALL_PATHS", "").strip().lower()
    if flag:
        overrides["sanitize_all_paths"] = flag in ("1", "true", "yes", "on")

    try:
        return CoreConfig(**overrides)
    except TypeError as e:
        raise ConfigurationError(f"Invalid config override: {e}") from e
