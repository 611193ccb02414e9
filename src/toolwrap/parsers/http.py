"""Generic HTTP API responses captured with headers (``gh api --include``)."""

from __future__ import annotations

import json
import re
from typing import Any

from toolwrap.logging import get_logger
from toolwrap.models import ApiResponse, Pagination

logger = get_logger(__name__)

_STATUS_LINE_RE = re.compile(r"^HTTP/\d+(?:\.\d+)?\s+(\d{3})(?:\s+(.*))?$")
_LINK_PART_RE = re.compile(r'<([^>]*)>\s*;\s*(.*)')
_REL_RE = re.compile(r'rel\s*=\s*"?([^";]+)"?')


def split_http_envelope(text: str) -> tuple[str, str]:
    """Split raw response text into (header block, body) at the first blank line.

    Both CRLF and LF conventions are accepted. Text with no blank line is
    all headers.
    """
    candidates = [i for i in (text.find("\r\n\r\n"), text.find("\n\n")) if i >= 0]
    if not candidates:
        return text, ""
    idx = min(candidates)
    sep_len = 4 if text.startswith("\r\n\r\n", idx) else 2
    return text[:idx], text[idx + sep_len:]


def parse_link_header(value: str) -> Pagination | None:
    """Parse an RFC 8288 Link header into pagination relations."""
    rels: dict[str, str] = {}
    for part in value.split(","):
        m = _LINK_PART_RE.search(part.strip())
        if not m:
            continue
        url, params = m.groups()
        rel = _REL_RE.search(params)
        if not rel:
            continue
        for name in rel.group(1).split():
            if name in ("next", "last", "prev", "first"):
                rels[name] = url
    if not rels:
        return None
    return Pagination(**rels)


def _parse_headers(block: str) -> tuple[int | None, dict[str, str]]:
    lines = block.replace("\r\n", "\n").split("\n")
    status_code = None
    m = _STATUS_LINE_RE.match(lines[0].strip()) if lines else None
    if m:
        status_code = int(m.group(1))
    headers: dict[str, str] = {}
    for line in lines[1:]:
        name, sep, value = line.partition(":")
        if not sep or not name.strip():
            continue
        headers[name.strip().lower()] = value.strip()
    return status_code, headers


def _decode_body(text: str) -> Any:
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.debug("API body is not JSON, keeping text")
        return text


def parse_api_response(
    stdout: str,
    exit_code: int,
    endpoint: str,
    method: str = "GET",
    stderr: str = "",
) -> ApiResponse:
    """Parse an API call's output into an ApiResponse.

    status_code comes from the HTTP status line when headers were captured;
    status reflects only the exit code.
    """
    status = 200 if exit_code == 0 else 422
    status_code: int | None = None
    headers: dict[str, str] | None = None
    body_text = stdout

    if _STATUS_LINE_RE.match(stdout.split("\n", 1)[0].strip()):
        block, body_text = split_http_envelope(stdout)
        status_code, headers = _parse_headers(block)
        # Interim 1xx responses precede the final header block
        while status_code is not None and 100 <= status_code < 200 and _STATUS_LINE_RE.match(
            body_text.split("\n", 1)[0].strip()
        ):
            block, body_text = split_http_envelope(body_text)
            status_code, headers = _parse_headers(block)

    pagination = None
    if headers and "link" in headers:
        pagination = parse_link_header(headers["link"])

    error_body = None
    if exit_code != 0 and not stdout.strip() and stderr.strip():
        error_body = stderr.strip()

    return ApiResponse(
        status=status,
        status_code=status_code if status_code is not None else status,
        body=_decode_body(body_text),
        endpoint=endpoint,
        method=method.upper(),
        headers=headers or None,
        pagination=pagination,
        error_body=error_body,
    )
