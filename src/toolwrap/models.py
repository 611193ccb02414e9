"""Typed records produced by the output parsers and compact mappers.

Every record is a frozen dataclass; sequence fields are tuples. A field
set to None means the tool did not report it, and to_dict() leaves the
key out entirely.
"""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass, field
from typing import Any


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _to_json(value: Any) -> Any:
    # JSON has no NaN; unparseable port numbers serialize as null
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, Record):
        return value.to_dict()
    if isinstance(value, (tuple, list)):
        return [_to_json(v) for v in value]
    if isinstance(value, dict):
        return {k: _to_json(v) for k, v in value.items()}
    return value


class Record:
    """Mixin for JSON-ready conversion of record dataclasses."""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in dataclasses.fields(self):  # type: ignore[arg-type]
            value = getattr(self, f.name)
            if value is None:
                continue
            out[_camel(f.name)] = _to_json(value)
        return out


# =============================================================================
# Raw invocation result
# =============================================================================

@dataclass(frozen=True)
class RawResult(Record):
    """What a finished child process produced. Lives for one parse call."""

    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    duration_ms: int = 0
    truncated: bool = False
    command: tuple[str, ...] = ()


# =============================================================================
# Shared sub-structures
# =============================================================================

@dataclass(frozen=True)
class PortBinding(Record):
    """One published or exposed port. Ports are not range-checked."""

    container: float
    protocol: str = "tcp"
    host: float | None = None


@dataclass(frozen=True)
class LogWindow(Record):
    """Head/tail view of a line sequence.

    is_truncated and total_lines are either both set or both None.
    """

    head: tuple[str, ...] = ()
    tail: tuple[str, ...] = ()
    total_lines: int | None = None
    is_truncated: bool | None = None


# =============================================================================
# Docker: ps / images / build / logs
# =============================================================================

@dataclass(frozen=True)
class Container(Record):
    id: str
    name: str
    image: str
    status: str
    state: str
    ports: tuple[PortBinding, ...] = ()
    created: str = ""
    labels: dict[str, str] | None = None
    networks: tuple[str, ...] | None = None


@dataclass(frozen=True)
class ContainerList(Record):
    containers: tuple[Container, ...] = ()
    total: int = 0
    running: int = 0
    stopped: int = 0


@dataclass(frozen=True)
class Image(Record):
    id: str
    repository: str
    tag: str
    size: str
    created: str = ""
    created_at: str | None = None
    digest: str | None = None


@dataclass(frozen=True)
class ImageList(Record):
    images: tuple[Image, ...] = ()
    total: int = 0


@dataclass(frozen=True)
class BuildError(Record):
    message: str
    line: int | None = None
    dockerfile: str | None = None


@dataclass(frozen=True)
class BuildReport(Record):
    success: bool = False
    image_id: str | None = None
    duration: float = 0.0
    steps: int | None = None
    errors: tuple[BuildError, ...] = ()
    cache_hits: int | None = None
    cache_misses: int | None = None


@dataclass(frozen=True)
class LogBundle(Record):
    container: str = ""
    lines: tuple[str, ...] = ()
    total: int = 0
    total_lines: int | None = None
    is_truncated: bool | None = None
    stderr_lines: int | None = None


# =============================================================================
# Docker: inspect / network ls / volume ls
# =============================================================================

@dataclass(frozen=True)
class Mount(Record):
    destination: str
    source: str = ""
    type: str | None = None
    read_write: bool | None = None


@dataclass(frozen=True)
class InspectRecord(Record):
    """Detail record for one container, image, volume or network.

    Identifiers are kept at full length unless the caller asks otherwise.
    """

    id: str = ""
    name: str = ""
    inspect_type: str = "container"
    status: str | None = None
    running: bool | None = None
    started_at: str | None = None
    image: str | None = None
    platform: str | None = None
    created: str | None = None
    health_status: str | None = None
    restart_policy: str | None = None
    ip_address: str | None = None
    env: tuple[str, ...] | None = None
    cmd: tuple[str, ...] | None = None
    entrypoint: tuple[str, ...] | None = None
    mounts: tuple[Mount, ...] | None = None
    repo_tags: tuple[str, ...] | None = None
    repo_digests: tuple[str, ...] | None = None
    size: int | None = None
    driver: str | None = None
    scope: str | None = None
    mountpoint: str | None = None
    labels: dict[str, str] | None = None


@dataclass(frozen=True)
class Network(Record):
    id: str
    name: str
    driver: str
    scope: str
    ipv6: bool | None = None
    internal: bool | None = None
    created_at: str | None = None
    labels: dict[str, str] | None = None


@dataclass(frozen=True)
class NetworkList(Record):
    networks: tuple[Network, ...] = ()
    total: int = 0


@dataclass(frozen=True)
class Volume(Record):
    name: str
    driver: str
    mountpoint: str = ""
    scope: str = ""
    labels: dict[str, str] | None = None


@dataclass(frozen=True)
class VolumeList(Record):
    volumes: tuple[Volume, ...] = ()
    total: int = 0


# =============================================================================
# Docker compose
# =============================================================================

@dataclass(frozen=True)
class ComposeService(Record):
    name: str
    service: str
    state: str
    status: str = ""
    image: str | None = None
    ports: tuple[PortBinding, ...] | None = None
    health: str | None = None
    exit_code: int | None = None


@dataclass(frozen=True)
class ComposeServiceList(Record):
    services: tuple[ComposeService, ...] = ()
    total: int = 0
    running: int = 0
    stopped: int = 0


@dataclass(frozen=True)
class ComposeLogEntry(Record):
    service: str
    message: str
    timestamp: str | None = None
    level: str | None = None


@dataclass(frozen=True)
class ComposeLogBundle(Record):
    entries: tuple[ComposeLogEntry, ...] = ()
    services: tuple[str, ...] = ()
    total: int = 0
    total_entries: int | None = None
    is_truncated: bool | None = None


# =============================================================================
# Docker stats / pull
# =============================================================================

@dataclass(frozen=True)
class ContainerStats(Record):
    id: str
    name: str
    cpu_percent: float = 0.0
    memory_usage: str = ""
    memory_limit: str = ""
    memory_percent: float = 0.0
    net_io: str = ""
    block_io: str = ""
    pids: int = 0


@dataclass(frozen=True)
class ResourceUsageList(Record):
    containers: tuple[ContainerStats, ...] = ()
    total: int = 0


@dataclass(frozen=True)
class PullReport(Record):
    image: str = ""
    tag: str = "latest"
    status: str = "error"
    success: bool = False
    digest: str | None = None
    error_type: str | None = None
    error_message: str | None = None


# =============================================================================
# Diff
# =============================================================================

@dataclass(frozen=True)
class DiffChunk(Record):
    header: str
    lines: tuple[str, ...] = ()


@dataclass(frozen=True)
class DiffFileEntry(Record):
    """One file in a diff. old_file is set only for renames."""

    file: str
    status: str = "modified"
    additions: int = 0
    deletions: int = 0
    binary: bool = False
    old_file: str | None = None
    mode: str | None = None
    chunks: tuple[DiffChunk, ...] | None = None


@dataclass(frozen=True)
class DiffReport(Record):
    files: tuple[DiffFileEntry, ...] = ()
    total_additions: int = 0
    total_deletions: int = 0
    total_files: int = 0
    truncated: bool = False


# =============================================================================
# Security scanners
# =============================================================================

@dataclass(frozen=True)
class SeveritySummary(Record):
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    unknown: int = 0


@dataclass(frozen=True)
class Vulnerability(Record):
    id: str
    package: str
    installed_version: str
    severity: str
    title: str = ""
    fixed_version: str | None = None
    target: str | None = None


@dataclass(frozen=True)
class VulnerabilityReport(Record):
    target: str = ""
    scan_type: str = "image"
    vulnerabilities: tuple[Vulnerability, ...] = ()
    total: int = 0
    summary: SeveritySummary = field(default_factory=SeveritySummary)


@dataclass(frozen=True)
class FindingSummary(Record):
    error: int = 0
    warning: int = 0
    info: int = 0


@dataclass(frozen=True)
class StaticAnalysisFinding(Record):
    rule_id: str
    path: str
    start_line: int
    end_line: int
    message: str
    severity: str
    category: str | None = None
    cwe: tuple[str, ...] | None = None


@dataclass(frozen=True)
class StaticAnalysisReport(Record):
    config: str = "auto"
    findings: tuple[StaticAnalysisFinding, ...] = ()
    total: int = 0
    summary: FindingSummary = field(default_factory=FindingSummary)
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class SecretFinding(Record):
    """A discovered credential. secret and match are redacted when built."""

    rule_id: str
    description: str
    match: str
    secret: str
    file: str
    start_line: int = 0
    end_line: int = 0
    commit: str = ""
    author: str = ""
    date: str = ""


@dataclass(frozen=True)
class SecretReport(Record):
    findings: tuple[SecretFinding, ...] = ()
    total: int = 0
    rule_counts: dict[str, int] = field(default_factory=dict)


# =============================================================================
# HTTP API
# =============================================================================

@dataclass(frozen=True)
class Pagination(Record):
    next: str | None = None
    last: str | None = None
    prev: str | None = None
    first: str | None = None


@dataclass(frozen=True)
class ApiResponse(Record):
    """Response from an API call captured with headers included.

    status follows the subprocess exit code; status_code is the HTTP
    status from the response line. They may disagree.
    """

    status: int = 200
    status_code: int = 200
    body: Any = None
    endpoint: str = ""
    method: str = "GET"
    headers: dict[str, str] | None = None
    pagination: Pagination | None = None
    error_body: str | None = None


# =============================================================================
# Compact records
# =============================================================================

@dataclass(frozen=True)
class ContainerSummary(Record):
    id: str
    name: str
    image: str
    status: str


@dataclass(frozen=True)
class ContainerListCompact(Record):
    containers: tuple[ContainerSummary, ...] = ()
    total: int = 0
    running: int = 0
    stopped: int = 0


@dataclass(frozen=True)
class ImageSummary(Record):
    id: str
    repository: str
    tag: str
    size: str


@dataclass(frozen=True)
class ImageListCompact(Record):
    images: tuple[ImageSummary, ...] = ()
    total: int = 0


@dataclass(frozen=True)
class BuildReportCompact(Record):
    success: bool = False
    image_id: str | None = None
    duration: float = 0.0
    error_count: int = 0


@dataclass(frozen=True)
class LogBundleCompact(Record):
    container: str = ""
    window: LogWindow = field(default_factory=LogWindow)
    total: int = 0


@dataclass(frozen=True)
class InspectRecordCompact(Record):
    id: str = ""
    name: str = ""
    inspect_type: str = "container"
    status: str | None = None
    running: bool | None = None
    image: str | None = None
    health_status: str | None = None
    repo_tags: tuple[str, ...] | None = None


@dataclass(frozen=True)
class NetworkSummary(Record):
    id: str
    name: str
    driver: str


@dataclass(frozen=True)
class NetworkListCompact(Record):
    networks: tuple[NetworkSummary, ...] = ()
    total: int = 0


@dataclass(frozen=True)
class VolumeSummary(Record):
    name: str
    driver: str
    mountpoint: str = ""


@dataclass(frozen=True)
class VolumeListCompact(Record):
    volumes: tuple[VolumeSummary, ...] = ()
    total: int = 0


@dataclass(frozen=True)
class ComposeServiceSummary(Record):
    name: str
    service: str
    state: str
    exit_code: int | None = None


@dataclass(frozen=True)
class ComposeServiceListCompact(Record):
    services: tuple[ComposeServiceSummary, ...] = ()
    total: int = 0
    running: int = 0
    stopped: int = 0


@dataclass(frozen=True)
class ComposeLogBundleCompact(Record):
    head: tuple[ComposeLogEntry, ...] = ()
    tail: tuple[ComposeLogEntry, ...] = ()
    services: tuple[str, ...] = ()
    total: int = 0
    is_truncated: bool | None = None


@dataclass(frozen=True)
class StatsSummary(Record):
    id: str
    name: str
    cpu_percent: float = 0.0
    memory_usage: str = ""
    memory_percent: float = 0.0
    pids: int = 0


@dataclass(frozen=True)
class ResourceUsageListCompact(Record):
    containers: tuple[StatsSummary, ...] = ()
    total: int = 0


@dataclass(frozen=True)
class PullReportCompact(Record):
    success: bool = False
    status: str | None = None
    digest: str | None = None
    error_type: str | None = None


@dataclass(frozen=True)
class DiffReportCompact(Record):
    files: tuple[DiffFileEntry, ...] = ()
    total_additions: int = 0
    total_deletions: int = 0
    total_files: int = 0
    truncated: bool = False


@dataclass(frozen=True)
class VulnerabilityReportCompact(Record):
    target: str = ""
    scan_type: str = "image"
    total: int = 0
    summary: SeveritySummary = field(default_factory=SeveritySummary)


@dataclass(frozen=True)
class StaticAnalysisReportCompact(Record):
    config: str = "auto"
    total: int = 0
    summary: FindingSummary = field(default_factory=FindingSummary)


@dataclass(frozen=True)
class SecretReportCompact(Record):
    total: int = 0
    rule_counts: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ApiResponseCompact(Record):
    status: int = 200
    status_code: int = 200
    endpoint: str = ""
    method: str = "GET"
    pagination: Pagination | None = None


PARSED_RECORD_TYPES: tuple[type, ...] = (
    ContainerList,
    ImageList,
    BuildReport,
    LogBundle,
    InspectRecord,
    NetworkList,
    VolumeList,
    ComposeServiceList,
    ComposeLogBundle,
    ResourceUsageList,
    PullReport,
    DiffReport,
    VulnerabilityReport,
    StaticAnalysisReport,
    SecretReport,
    ApiResponse,
)

COMPACT_RECORD_TYPES: tuple[type, ...] = (
    ContainerListCompact,
    ImageListCompact,
    BuildReportCompact,
    LogBundleCompact,
    InspectRecordCompact,
    NetworkListCompact,
    VolumeListCompact,
    ComposeServiceListCompact,
    ComposeLogBundleCompact,
    ResourceUsageListCompact,
    PullReportCompact,
    DiffReportCompact,
    VulnerabilityReportCompact,
    StaticAnalysisReportCompact,
    SecretReportCompact,
    ApiResponseCompact,
)
