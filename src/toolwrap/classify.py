"""Failure classification. Maps a failed invocation to a closed error category.

Categories are matched against stderr (stdout when stderr is empty) in a
fixed order; more specific patterns come first.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass

from toolwrap.exceptions import GuardError
from toolwrap.models import RawResult, Record

# exit status used by timeout(1)
TIMEOUT_EXIT_CODE = 124


class ErrorCategory(str, enum.Enum):
    COMMAND_NOT_FOUND = "command-not-found"
    PERMISSION_DENIED = "permission-denied"
    TIMEOUT = "timeout"
    INVALID_INPUT = "invalid-input"
    NOT_FOUND = "not-found"
    NETWORK_ERROR = "network-error"
    AUTHENTICATION_ERROR = "authentication-error"
    CONFLICT = "conflict"
    CONFIGURATION_ERROR = "configuration-error"
    ALREADY_EXISTS = "already-exists"
    COMMAND_FAILED = "command-failed"


@dataclass(frozen=True)
class ErrorReport(Record):
    category: ErrorCategory
    message: str
    command: str | None = None
    exit_code: int | None = None
    suggestion: str | None = None

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["category"] = self.category.value
        data["isError"] = True
        return data


def _substrings(*needles: str):
    return lambda text: any(n in text for n in needles)


_AUTH_CODE_RE = re.compile(r" 40[13][ :]")
_NOT_FOUND_CODE_RE = re.compile(r" 404[ :]")

_is_command_not_found = _substrings(
    "command not found",
    "not recognized",
    "enoent",
    "no such file or directory",
    "executable file not found",
)
_is_permission_denied = _substrings(
    "permission denied",
    "eacces",
    "eperm",
    "access denied",
    "operation not permitted",
)
_is_timeout = _substrings("timed out", "timeout")
_is_network_error = _substrings(
    "connection refused",
    "econnrefused",
    "etimedout",
    "econnreset",
    "enetunreach",
    "could not resolve host",
    "network is unreachable",
    "dns resolution failed",
)
_is_already_exists = _substrings("already exists", "already exist")
_is_configuration_error = _substrings(
    "missing config",
    "configuration error",
    "config file not found",
    "invalid configuration",
    "no configuration",
    "could not read config",
)
_is_conflict = _substrings("conflict", "lock file", "locked")


def _is_auth_error(text: str) -> bool:
    return bool(_AUTH_CODE_RE.search(text)) or any(
        n in text
        for n in (
            "authentication",
            "authenticated",
            "credential",
            "unauthorized",
            "permission denied (publickey",
            "login required",
        )
    )


def _is_not_found(text: str) -> bool:
    return bool(_NOT_FOUND_CODE_RE.search(text)) or any(
        n in text
        for n in (
            "not found",
            "does not exist",
            "no such",
            "unknown revision",
            "pathspec",
        )
    )


# Order matters: "permission denied (publickey)" is an auth failure, and
# conflict messages can mention paths that are "not found".
_RULES = (
    (ErrorCategory.COMMAND_NOT_FOUND, _is_command_not_found),
    (ErrorCategory.AUTHENTICATION_ERROR, _is_auth_error),
    (ErrorCategory.PERMISSION_DENIED, _is_permission_denied),
    (ErrorCategory.NETWORK_ERROR, _is_network_error),
    (ErrorCategory.ALREADY_EXISTS, _is_already_exists),
    (ErrorCategory.CONFIGURATION_ERROR, _is_configuration_error),
    (ErrorCategory.CONFLICT, _is_conflict),
    (ErrorCategory.NOT_FOUND, _is_not_found),
)

_SUGGESTIONS = {
    ErrorCategory.COMMAND_NOT_FOUND: 'Ensure "{cmd}" is installed and available in your PATH.',
    ErrorCategory.PERMISSION_DENIED: "Check file/directory permissions or run with elevated privileges.",
    ErrorCategory.TIMEOUT: "The command took too long. Retry with a longer timeout or a smaller scope.",
    ErrorCategory.INVALID_INPUT: "Check the input parameters and try again.",
    ErrorCategory.NOT_FOUND: "Verify the resource (file, branch, ref, etc.) exists.",
    ErrorCategory.NETWORK_ERROR: "Check your network connection and try again.",
    ErrorCategory.AUTHENTICATION_ERROR: "Verify your credentials or tokens are valid and not expired.",
    ErrorCategory.CONFLICT: "Resolve the conflict or release the lock and retry.",
    ErrorCategory.CONFIGURATION_ERROR: "Check that all required config files exist and are valid.",
    ErrorCategory.ALREADY_EXISTS: "The resource already exists. Use a different name or remove it first.",
    ErrorCategory.COMMAND_FAILED: 'Inspect the error message from "{cmd}" for more details.',
}


def classify_text(text: str, exit_code: int) -> ErrorCategory:
    """Pick the most specific category for error text and exit code."""
    lower = text.lower()
    if exit_code == TIMEOUT_EXIT_CODE or _is_timeout(lower):
        return ErrorCategory.TIMEOUT
    for category, matches in _RULES:
        if matches(lower):
            return category
    return ErrorCategory.COMMAND_FAILED


def suggest_recovery(category: ErrorCategory, command: str) -> str:
    return _SUGGESTIONS[category].format(cmd=command)


def classify_error(result: RawResult, command: str) -> ErrorReport:
    """Build an ErrorReport for a failed invocation."""
    text = result.stderr or result.stdout
    category = classify_text(text, result.exit_code)
    return ErrorReport(
        category=category,
        message=text.strip() or f"{command} failed with exit code {result.exit_code}",
        command=command,
        exit_code=result.exit_code,
        suggestion=suggest_recovery(category, command),
    )


def guard_error_report(exc: GuardError, command: str | None = None) -> ErrorReport:
    """Report a rejected parameter. No process was started, so no exit code."""
    return ErrorReport(
        category=ErrorCategory.INVALID_INPUT,
        message=str(exc),
        command=command,
        suggestion=_SUGGESTIONS[ErrorCategory.INVALID_INPUT],
    )
