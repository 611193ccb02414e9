"""Windowing, truncation and redaction helpers shared by parsers and formatters."""

from __future__ import annotations

import os
import re
from collections.abc import Sequence
from typing import Any

from toolwrap.models import LogWindow

_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]|\x1b\][^\x07]*(?:\x07|\x1b\\)")
_LINE_SPLIT_RE = re.compile(r"\r?\n")

# /home/<user>/, /Users/<user>/, /root/
_HOME_RE = re.compile(r"(?:/home/[^/\s:'\"]+|/Users/[^/\s:'\"]+|/root)(?=/|\b)")
_ABS_PATH_RE = re.compile(r"(?<![\w~.])/(?:[\w.@+-]+/)+([\w.@+-]+)")


def split_lines(text: str) -> list[str]:
    """Split text on LF or CRLF, dropping one trailing newline."""
    if not text:
        return []
    lines = _LINE_SPLIT_RE.split(text)
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def window_lines(
    lines: Sequence[Any],
    head_limit: int,
    tail_limit: int,
    total_ceiling: int,
) -> LogWindow:
    """Keep the first head_limit and last tail_limit lines when over the ceiling.

    At or under the ceiling every line goes into head, tail is empty and
    the truncation fields stay None. The tail never repeats a head line.
    Works on any sequence, so log entry records window the same way.
    """
    if len(lines) <= total_ceiling:
        return LogWindow(head=tuple(lines), tail=())
    tail_start = max(len(lines) - tail_limit, head_limit)
    tail = tuple(lines[tail_start:]) if tail_limit > 0 else ()
    return LogWindow(
        head=tuple(lines[:head_limit]),
        tail=tail,
        total_lines=len(lines),
        is_truncated=True,
    )


def redact_secret(value: str) -> str:
    """Mask a credential, keeping 3 characters at each end of long values."""
    if len(value) <= 8:
        return "***"
    return f"{value[:3]}***{value[-3:]}"


def truncate_text(text: str, max_chars: int, marker: str = "...") -> str:
    """Truncate text to max_chars, appending marker when cut."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + marker


def strip_ansi(text: str) -> str:
    """Remove terminal color and cursor escape sequences."""
    return _ANSI_RE.sub("", text)


def sanitize_error_output(text: str, all_paths: bool = False) -> str:
    """Hide local filesystem layout in stderr before it leaves the process.

    Home directories become '~'. With all_paths, every other absolute path
    keeps only its basename.
    """
    home = os.path.expanduser("~")
    if home and home != "/":
        text = re.sub(re.escape(home) + r"(?=/|\b)", "~", text)
    text = _HOME_RE.sub("~", text)
    if all_paths:
        text = _ABS_PATH_RE.sub(lambda m: f"<redacted-path>/{m.group(1)}", text)
    return text
