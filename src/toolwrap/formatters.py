"""Human-readable renderings of parsed and compact records.

Output is deterministic: one line per item in record order, and free text
(API bodies, log blobs, stderr previews) is cut at config.body_char_max.
"""

from __future__ import annotations

import json
import math
from collections.abc import Callable
from typing import Any

from toolwrap.classify import ErrorReport
from toolwrap.config import DEFAULT_CONFIG, CoreConfig
from toolwrap.models import (
    ApiResponse,
    ApiResponseCompact,
    BuildReport,
    BuildReportCompact,
    ComposeLogBundle,
    ComposeLogBundleCompact,
    ComposeLogEntry,
    ComposeServiceList,
    ComposeServiceListCompact,
    ContainerList,
    ContainerListCompact,
    DiffReport,
    DiffReportCompact,
    ImageList,
    ImageListCompact,
    InspectRecord,
    InspectRecordCompact,
    LogBundle,
    LogBundleCompact,
    NetworkList,
    NetworkListCompact,
    Pagination,
    PortBinding,
    PullReport,
    PullReportCompact,
    ResourceUsageList,
    ResourceUsageListCompact,
    SecretReport,
    SecretReportCompact,
    SeveritySummary,
    StaticAnalysisReport,
    StaticAnalysisReportCompact,
    VolumeList,
    VolumeListCompact,
    VulnerabilityReport,
    VulnerabilityReportCompact,
)
from toolwrap.windowing import truncate_text

_HTTP_REASONS = {
    200: "OK",
    201: "Created",
    202: "Accepted",
    204: "No Content",
    301: "Moved Permanently",
    302: "Found",
    304: "Not Modified",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    409: "Conflict",
    422: "Unprocessable Entity",
    429: "Too Many Requests",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
}


# =============================================================================
# Helpers
# =============================================================================

def _num(value: float) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return "nan"
        if value.is_integer():
            return str(int(value))
    return str(value)


def format_port(port: PortBinding) -> str:
    if port.host is not None:
        return f"{_num(port.host)}->{_num(port.container)}/{port.protocol}"
    return f"{_num(port.container)}/{port.protocol}"


def _ports(ports: tuple[PortBinding, ...] | None) -> str:
    if not ports:
        return ""
    return f" [{', '.join(format_port(p) for p in ports)}]"


def _summary_counts(s: SeveritySummary) -> str:
    return f"{s.critical}C/{s.high}H/{s.medium}M/{s.low}L"


# =============================================================================
# Docker
# =============================================================================

def format_ps(data: ContainerList, config: CoreConfig) -> str:
    lines = [f"{data.total} containers ({data.running} running, {data.stopped} stopped)"]
    for c in data.containers:
        labels = f" labels={len(c.labels)}" if c.labels else ""
        nets = f" nets={','.join(c.networks)}" if c.networks else ""
        lines.append(
            f"  {(c.state or 'unknown'):<10} {c.name} ({c.image}){_ports(c.ports)}{labels}{nets}"
        )
    return "\n".join(lines)


def format_ps_compact(data: ContainerListCompact, config: CoreConfig) -> str:
    lines = [f"{data.total} containers ({data.running} running)"]
    for c in data.containers:
        lines.append(f"  {c.id[:config.display_id_length]} {c.name} ({c.image}) {c.status}")
    return "\n".join(lines)


def format_images(data: ImageList, config: CoreConfig) -> str:
    if not data.images:
        return "No images found."
    lines = [f"{data.total} images:"]
    for img in data.images:
        tag = f":{img.tag}" if img.tag and img.tag != "<none>" else ""
        created = f" {img.created}" if img.created else ""
        lines.append(f"  {img.repository}{tag} ({img.size}){created}")
    return "\n".join(lines)


def format_images_compact(data: ImageListCompact, config: CoreConfig) -> str:
    if not data.images:
        return "No images found."
    lines = [f"{data.total} images:"]
    for img in data.images:
        tag = f":{img.tag}" if img.tag and img.tag != "<none>" else ""
        lines.append(f"  {img.repository}{tag} ({img.size})")
    return "\n".join(lines)


def _cache_counts(data: BuildReport) -> str:
    return f"cache hits={data.cache_hits}, misses={data.cache_misses or 0}"


def format_build(data: BuildReport, config: CoreConfig) -> str:
    if data.success:
        parts = [f"Build succeeded in {data.duration}s"]
        if data.image_id:
            parts[0] += f" → {data.image_id}"
        if data.steps:
            parts.append(f"{data.steps} steps")
        if data.cache_hits is not None:
            parts.append(_cache_counts(data))
        return ", ".join(parts)
    lines = ["Build failed"]
    if data.cache_hits is not None:
        lines.append(f"  {_cache_counts(data)}")
    for err in data.errors:
        prefix = f"line {err.line}: " if err.line is not None else ""
        lines.append(f"  {prefix}{truncate_text(err.message, config.body_char_max)}")
    return "\n".join(lines)


def format_build_compact(data: BuildReportCompact, config: CoreConfig) -> str:
    if data.success:
        return f"Build succeeded → {data.image_id}" if data.image_id else "Build succeeded"
    return f"Build failed ({data.error_count} errors)"


def format_logs(data: LogBundle, config: CoreConfig) -> str:
    header = f"{data.container}: {data.total} lines"
    if data.is_truncated:
        header += f" (truncated from {data.total_lines})"
    if not data.lines:
        return header
    body = truncate_text("\n".join(data.lines), config.body_char_max)
    return f"{header}\n{body}"


def format_logs_compact(data: LogBundleCompact, config: CoreConfig) -> str:
    window = data.window
    parts = [f"{data.container}: {data.total} lines"]
    parts.extend(window.head)
    if window.is_truncated:
        omitted = (window.total_lines or 0) - len(window.head) - len(window.tail)
        parts.append(f"  ... {omitted} lines omitted ...")
        parts.extend(window.tail)
    return "\n".join(parts)


def format_inspect(data: InspectRecord, config: CoreConfig) -> str:
    if data.inspect_type == "image":
        lines = [f"Image: {data.name} ({data.id})"]
        if data.repo_tags:
            lines.append(f"  Tags: {', '.join(data.repo_tags)}")
        if data.size is not None:
            lines.append(f"  Size: {data.size / (1024 * 1024):.1f} MB")
        if data.platform:
            lines.append(f"  Platform: {data.platform}")
        if data.created:
            lines.append(f"  Created: {data.created}")
        if data.entrypoint:
            lines.append(f"  Entrypoint: {' '.join(data.entrypoint)}")
        if data.cmd:
            lines.append(f"  Cmd: {' '.join(data.cmd)}")
        if data.env:
            lines.append(f"  Env: {len(data.env)} variables")
        return "\n".join(lines)

    if data.inspect_type in ("volume", "network"):
        lines = [f"{data.inspect_type.title()}: {data.name} ({data.id})"]
        if data.driver:
            lines.append(f"  Driver: {data.driver}")
        if data.scope:
            lines.append(f"  Scope: {data.scope}")
        if data.mountpoint:
            lines.append(f"  Mountpoint: {data.mountpoint}")
        if data.created:
            lines.append(f"  Created: {data.created}")
        if data.labels:
            lines.append(f"  Labels: {len(data.labels)}")
        return "\n".join(lines)

    lines = [f"{data.name} ({data.id})"]
    if data.image:
        lines.append(f"  Image: {data.image}")
    if data.status is not None:
        lines.append(f"  State: {data.status} (running: {str(bool(data.running)).lower()})")
    if data.started_at:
        lines.append(f"  Started: {data.started_at}")
    if data.health_status:
        lines.append(f"  Health: {data.health_status}")
    if data.restart_policy:
        lines.append(f"  Restart: {data.restart_policy}")
    if data.platform:
        lines.append(f"  Platform: {data.platform}")
    if data.created:
        lines.append(f"  Created: {data.created}")
    if data.env:
        lines.append(f"  Env: {len(data.env)} variables")
    if data.ip_address:
        lines.append(f"  Network: IP={data.ip_address}")
    if data.mounts:
        lines.append(f"  Mounts: {len(data.mounts)} mount(s)")
        for m in data.mounts:
            mode = "" if m.read_write is None else (" (rw)" if m.read_write else " (ro)")
            lines.append(f"    {m.source} → {m.destination}{mode}")
    return "\n".join(lines)


def format_inspect_compact(data: InspectRecordCompact, config: CoreConfig) -> str:
    if data.inspect_type == "image":
        tags = f" [{', '.join(data.repo_tags)}]" if data.repo_tags else ""
        return f"Image {data.name} ({data.id}){tags}"
    if data.inspect_type in ("volume", "network"):
        return f"{data.inspect_type.title()} {data.name} ({data.id})"
    text = f"{data.name} ({data.id})"
    if data.status is not None:
        text += f" {data.status}"
    if data.running is not None:
        text += " [running]" if data.running else " [stopped]"
    if data.image:
        text += f" image={data.image}"
    if data.health_status:
        text += f" health={data.health_status}"
    return text


def format_network_ls(data: NetworkList, config: CoreConfig) -> str:
    if not data.networks:
        return "No networks found."
    lines = [f"{data.total} networks:"]
    for n in data.networks:
        flags = [name for name, on in (("ipv6", n.ipv6), ("internal", n.internal)) if on]
        flag_str = f" [{', '.join(flags)}]" if flags else ""
        labels = f" labels={len(n.labels)}" if n.labels else ""
        lines.append(f"  {n.name} ({n.driver}, {n.scope}){flag_str}{labels}")
    return "\n".join(lines)


def format_network_ls_compact(data: NetworkListCompact, config: CoreConfig) -> str:
    if not data.networks:
        return "No networks found."
    lines = [f"{data.total} networks:"]
    for n in data.networks:
        lines.append(f"  {n.name} ({n.driver}) {n.id}")
    return "\n".join(lines)


def format_volume_ls(data: VolumeList, config: CoreConfig) -> str:
    if not data.volumes:
        return "No volumes found."
    lines = [f"{data.total} volumes:"]
    for v in data.volumes:
        labels = f" labels={len(v.labels)}" if v.labels else ""
        lines.append(f"  {v.name} ({v.driver}, {v.scope}){labels}")
    return "\n".join(lines)


def format_volume_ls_compact(data: VolumeListCompact, config: CoreConfig) -> str:
    if not data.volumes:
        return "No volumes found."
    lines = [f"{data.total} volumes:"]
    for v in data.volumes:
        mountpoint = f" {v.mountpoint}" if v.mountpoint else ""
        lines.append(f"  {v.name} ({v.driver}){mountpoint}")
    return "\n".join(lines)


def format_compose_ps(data: ComposeServiceList, config: CoreConfig) -> str:
    if not data.services:
        return "No compose services found."
    lines = [f"{data.total} services ({data.running} running, {data.stopped} stopped):"]
    for s in data.services:
        health = f" health={s.health}" if s.health else ""
        exit_code = f" exit={s.exit_code}" if s.exit_code is not None else ""
        lines.append(
            f"  {s.state:<10} {s.name} ({s.service}) {s.status}{_ports(s.ports)}{health}{exit_code}"
        )
    return "\n".join(lines)


def format_compose_ps_compact(data: ComposeServiceListCompact, config: CoreConfig) -> str:
    if not data.services:
        return "No compose services found."
    lines = [f"{data.total} services:"]
    for s in data.services:
        exit_code = f" exit={s.exit_code}" if s.exit_code is not None else ""
        lines.append(f"  {s.state:<10} {s.name} ({s.service}){exit_code}")
    return "\n".join(lines)


def _log_entry(entry: ComposeLogEntry, config: CoreConfig) -> str:
    ts = f"{entry.timestamp} " if entry.timestamp else ""
    level = f"[{entry.level.upper()}] " if entry.level else ""
    message = truncate_text(entry.message, config.body_char_max)
    return f"  {entry.service} | {ts}{level}{message}"


def format_compose_logs(data: ComposeLogBundle, config: CoreConfig) -> str:
    header = f"Compose logs: {len(data.services)} services, {data.total} entries"
    if data.is_truncated:
        header += " (truncated)"
    return "\n".join([header] + [_log_entry(e, config) for e in data.entries])


def format_compose_logs_compact(data: ComposeLogBundleCompact, config: CoreConfig) -> str:
    parts = [f"Compose logs: {len(data.services)} services, {data.total} entries"]
    parts.extend(_log_entry(e, config) for e in data.head)
    if data.tail:
        parts.append("  ... entries omitted ...")
        parts.extend(_log_entry(e, config) for e in data.tail)
    return "\n".join(parts)


def format_stats(data: ResourceUsageList, config: CoreConfig) -> str:
    if not data.containers:
        return "No container stats available."
    lines = [f"{data.total} containers:"]
    for c in data.containers:
        lines.append(
            f"  {c.name} ({c.id}) CPU: {c.cpu_percent:.2f}% "
            f"Mem: {c.memory_usage}/{c.memory_limit} ({c.memory_percent:.2f}%) "
            f"Net: {c.net_io} Block: {c.block_io} PIDs: {c.pids}"
        )
    return "\n".join(lines)


def format_stats_compact(data: ResourceUsageListCompact, config: CoreConfig) -> str:
    if not data.containers:
        return "No container stats available."
    lines = [f"{data.total} containers:"]
    for c in data.containers:
        lines.append(
            f"  {c.name} ({c.id}) CPU: {c.cpu_percent:.2f}% "
            f"Mem: {c.memory_usage} ({c.memory_percent:.2f}%) PIDs: {c.pids}"
        )
    return "\n".join(lines)


def format_pull(data: PullReport, config: CoreConfig) -> str:
    ref = f"{data.image}:{data.tag}"
    if not data.success:
        err_type = f" ({data.error_type})" if data.error_type else ""
        message = (
            f": {truncate_text(data.error_message, config.stderr_preview_max)}"
            if data.error_message
            else ""
        )
        return f"Pull failed for {ref}{err_type}{message}"
    digest = f" ({data.digest[:19]}...)" if data.digest else ""
    if data.status == "up-to-date":
        return f"{ref} is up to date{digest}"
    return f"Pulled {ref}{digest}"


def format_pull_compact(data: PullReportCompact, config: CoreConfig) -> str:
    if not data.success:
        return f"Pull failed ({data.error_type})" if data.error_type else "Pull failed"
    digest = f" ({data.digest[:19]}...)" if data.digest else ""
    if data.status == "up-to-date":
        return f"Image is up to date{digest}"
    return f"Pulled{digest}"


# =============================================================================
# Diff
# =============================================================================

def _diff_lines(files, total_files: int, additions: int, deletions: int, truncated: bool) -> str:
    header = f"{total_files} files changed, +{additions} -{deletions}"
    if truncated:
        header += " (truncated)"
    lines = [header]
    for f in files:
        if f.binary:
            counts = " (binary)"
        else:
            counts = f" +{f.additions} -{f.deletions}"
        if f.status == "renamed" and f.old_file:
            name = f"{f.old_file} → {f.file}"
        else:
            name = f.file
        status = f" [{f.status}]" if f.status != "modified" else ""
        lines.append(f"  {name}{counts}{status}")
    return "\n".join(lines)


def format_diff(data: DiffReport, config: CoreConfig) -> str:
    return _diff_lines(
        data.files, data.total_files, data.total_additions, data.total_deletions, data.truncated
    )


def format_diff_compact(data: DiffReportCompact, config: CoreConfig) -> str:
    return _diff_lines(
        data.files, data.total_files, data.total_additions, data.total_deletions, data.truncated
    )


# =============================================================================
# Security scanners
# =============================================================================

def format_trivy(data: VulnerabilityReport, config: CoreConfig) -> str:
    lines = [f"Trivy {data.scan_type} scan: {data.target}"]
    if not data.vulnerabilities:
        lines.append("No vulnerabilities found.")
        return "\n".join(lines)
    s = data.summary
    lines.append(
        f"Found {data.total} vulnerabilities: {s.critical} critical, {s.high} high, "
        f"{s.medium} medium, {s.low} low, {s.unknown} unknown"
    )
    for v in data.vulnerabilities:
        fixed = f" (fixed in {v.fixed_version})" if v.fixed_version else ""
        title = f": {truncate_text(v.title, config.body_char_max)}" if v.title else ""
        lines.append(f"  [{v.severity}] {v.id} {v.package}@{v.installed_version}{fixed}{title}")
    return "\n".join(lines)


def format_trivy_compact(data: VulnerabilityReportCompact, config: CoreConfig) -> str:
    return (
        f"Trivy {data.scan_type} scan: {data.target} -- {data.total} vulnerabilities "
        f"({_summary_counts(data.summary)})"
    )


def format_semgrep(data: StaticAnalysisReport, config: CoreConfig) -> str:
    s = data.summary
    lines = [
        f"Semgrep scan ({data.config}): {data.total} findings "
        f"({s.error} errors, {s.warning} warnings, {s.info} info)"
    ]
    for f in data.findings:
        lines.append(
            f"  {f.path}:{f.start_line} [{f.severity}] {f.rule_id}: "
            f"{truncate_text(f.message, config.body_char_max)}"
        )
    for err in data.errors:
        lines.append(f"  error: {truncate_text(err, config.stderr_preview_max)}")
    return "\n".join(lines)


def format_semgrep_compact(data: StaticAnalysisReportCompact, config: CoreConfig) -> str:
    s = data.summary
    return f"Semgrep scan -- {data.total} findings ({s.error}E/{s.warning}W/{s.info}I)"


def format_gitleaks(data: SecretReport, config: CoreConfig) -> str:
    if not data.findings:
        return "No secrets found."
    lines = [f"Found {data.total} secrets:"]
    for f in data.findings:
        commit = f" commit={f.commit[:8]}" if f.commit else ""
        lines.append(f"  {f.file}:{f.start_line} [{f.rule_id}] {f.secret}{commit}")
    return "\n".join(lines)


def format_gitleaks_compact(data: SecretReportCompact, config: CoreConfig) -> str:
    if not data.total:
        return "No secrets found."
    rules = ", ".join(f"{rule}={count}" for rule, count in sorted(data.rule_counts.items()))
    return f"Found {data.total} secrets ({rules})"


# =============================================================================
# HTTP API
# =============================================================================

def _pagination(p: Pagination | None) -> list[str]:
    if p is None:
        return []
    rels = [f"{name}={url}" for name, url in (("next", p.next), ("last", p.last)) if url]
    return [f"  Pagination: {', '.join(rels)}"] if rels else []


def format_api(data: ApiResponse, config: CoreConfig) -> str:
    reason = _HTTP_REASONS.get(data.status_code, "")
    lines = [f"HTTP {data.status_code} {reason}".rstrip() + f" {data.method} {data.endpoint}"]
    if data.headers:
        lines.append(f"  Headers: {len(data.headers)}")
    lines.extend(_pagination(data.pagination))
    if data.body is not None:
        body = data.body if isinstance(data.body, str) else json.dumps(data.body, sort_keys=True)
        lines.append(truncate_text(body, config.body_char_max))
    if data.error_body:
        lines.append(f"stderr: {truncate_text(data.error_body, config.stderr_preview_max)}")
    return "\n".join(lines)


def format_api_compact(data: ApiResponseCompact, config: CoreConfig) -> str:
    reason = _HTTP_REASONS.get(data.status_code, "")
    lines = [f"HTTP {data.status_code} {reason}".rstrip() + f" {data.method} {data.endpoint}"]
    lines.extend(_pagination(data.pagination))
    return "\n".join(lines)


# =============================================================================
# Errors
# =============================================================================

def format_error(data: ErrorReport, config: CoreConfig) -> str:
    lines = [f"Error [{data.category.value}]: {truncate_text(data.message, config.body_char_max)}"]
    if data.command:
        lines.append(f"Command: {data.command}")
    if data.exit_code is not None:
        lines.append(f"Exit code: {data.exit_code}")
    if data.suggestion:
        lines.append(f"Suggestion: {data.suggestion}")
    return "\n".join(lines)


_FORMATTERS: dict[type, Callable[[Any, CoreConfig], str]] = {
    ContainerList: format_ps,
    ContainerListCompact: format_ps_compact,
    ImageList: format_images,
    ImageListCompact: format_images_compact,
    BuildReport: format_build,
    BuildReportCompact: format_build_compact,
    LogBundle: format_logs,
    LogBundleCompact: format_logs_compact,
    InspectRecord: format_inspect,
    InspectRecordCompact: format_inspect_compact,
    NetworkList: format_network_ls,
    NetworkListCompact: format_network_ls_compact,
    VolumeList: format_volume_ls,
    VolumeListCompact: format_volume_ls_compact,
    ComposeServiceList: format_compose_ps,
    ComposeServiceListCompact: format_compose_ps_compact,
    ComposeLogBundle: format_compose_logs,
    ComposeLogBundleCompact: format_compose_logs_compact,
    ResourceUsageList: format_stats,
    ResourceUsageListCompact: format_stats_compact,
    PullReport: format_pull,
    PullReportCompact: format_pull_compact,
    DiffReport: format_diff,
    DiffReportCompact: format_diff_compact,
    VulnerabilityReport: format_trivy,
    VulnerabilityReportCompact: format_trivy_compact,
    StaticAnalysisReport: format_semgrep,
    StaticAnalysisReportCompact: format_semgrep_compact,
    SecretReport: format_gitleaks,
    SecretReportCompact: format_gitleaks_compact,
    ApiResponse: format_api,
    ApiResponseCompact: format_api_compact,
    ErrorReport: format_error,
}


def format_record(record: Any, *, config: CoreConfig = DEFAULT_CONFIG) -> str:
    """Render any parsed, compact or error record as text.

    Raises:
        TypeError: record has no formatter.
    """
    formatter = _FORMATTERS.get(type(record))
    if formatter is None:
        raise TypeError(f"No formatter for {type(record).__name__}")
    return formatter(record, config)
