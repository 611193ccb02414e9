"""toolwrap: argument guard and typed output normalization for wrapped CLI tools."""

from toolwrap.classify import ErrorCategory, ErrorReport, classify_error
from toolwrap.compact import CompactRules, compact
from toolwrap.config import DEFAULT_CONFIG, CoreConfig, load_config
from toolwrap.exceptions import (
    ConfigurationError,
    ExecutionError,
    ExecutionTimeoutError,
    GuardError,
    InjectionError,
    LimitExceededError,
    ToolwrapError,
)
from toolwrap.executor import execute
from toolwrap.formatters import format_record
from toolwrap.guard import guard, guard_params
from toolwrap.logging import get_logger, setup_logging
from toolwrap.models import RawResult
from toolwrap.output import compact_dual_output, dual_output
from toolwrap.windowing import redact_secret, window_lines

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_CONFIG",
    "CompactRules",
    "ConfigurationError",
    "CoreConfig",
    "ErrorCategory",
    "ErrorReport",
    "ExecutionError",
    "ExecutionTimeoutError",
    "GuardError",
    "InjectionError",
    "LimitExceededError",
    "RawResult",
    "ToolwrapError",
    "classify_error",
    "compact",
    "compact_dual_output",
    "dual_output",
    "execute",
    "format_record",
    "get_logger",
    "guard",
    "guard_params",
    "load_config",
    "redact_secret",
    "setup_logging",
    "window_lines",
]
