"""Output parsers turn raw tool stdout/stderr into typed records.

Parsers never raise on malformed input; garbage yields the empty record.
"""

from toolwrap.parsers.diff import parse_numstat, parse_unified_diff
from toolwrap.parsers.docker import (
    parse_build,
    parse_compose_logs,
    parse_compose_ps,
    parse_images,
    parse_inspect,
    parse_logs,
    parse_network_ls,
    parse_ports,
    parse_ps,
    parse_pull,
    parse_stats,
    parse_volume_ls,
)
from toolwrap.parsers.http import parse_api_response
from toolwrap.parsers.jsonl import decode_json_document, decode_ndjson
from toolwrap.parsers.security import parse_gitleaks, parse_semgrep, parse_trivy

__all__ = [
    "decode_json_document",
    "decode_ndjson",
    "parse_api_response",
    "parse_build",
    "parse_compose_logs",
    "parse_compose_ps",
    "parse_gitleaks",
    "parse_images",
    "parse_inspect",
    "parse_logs",
    "parse_network_ls",
    "parse_numstat",
    "parse_ports",
    "parse_ps",
    "parse_pull",
    "parse_semgrep",
    "parse_stats",
    "parse_trivy",
    "parse_unified_diff",
    "parse_volume_ls",
]
