"""Compact projections shrink a parsed record to the fields an agent needs.

Each mapper is total and keeps only a subset of its source fields (or
replaces a list with its count). Compact records passed back in are
returned unchanged.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from toolwrap.config import DEFAULT_CONFIG, CoreConfig
from toolwrap.models import (
    COMPACT_RECORD_TYPES,
    ApiResponse,
    ApiResponseCompact,
    BuildReport,
    BuildReportCompact,
    ComposeLogBundle,
    ComposeLogBundleCompact,
    ComposeServiceList,
    ComposeServiceListCompact,
    ComposeServiceSummary,
    ContainerList,
    ContainerListCompact,
    ContainerSummary,
    DiffReport,
    DiffReportCompact,
    ImageList,
    ImageListCompact,
    ImageSummary,
    InspectRecord,
    InspectRecordCompact,
    LogBundle,
    LogBundleCompact,
    NetworkList,
    NetworkListCompact,
    NetworkSummary,
    PullReport,
    PullReportCompact,
    ResourceUsageList,
    ResourceUsageListCompact,
    SecretReport,
    SecretReportCompact,
    StaticAnalysisReport,
    StaticAnalysisReportCompact,
    StatsSummary,
    VolumeList,
    VolumeListCompact,
    VolumeSummary,
    VulnerabilityReport,
    VulnerabilityReportCompact,
)
from toolwrap.parsers.docker import shorten_id
from toolwrap.windowing import window_lines


@dataclass(frozen=True)
class CompactRules:
    """Versioned choices for fields whose compaction has varied over time.

    Version 1 drops digest and status from pull records; version 2 keeps
    them. Log window sizes are limits, so they come from CoreConfig.
    """

    version: int = 2
    pull_keeps_digest: bool = True
    id_length: int = 12


RULES_V1 = CompactRules(version=1, pull_keeps_digest=False)
RULES_V2 = CompactRules(version=2, pull_keeps_digest=True)
DEFAULT_RULES = RULES_V2


def _ps(r: ContainerList, rules: CompactRules, config: CoreConfig) -> ContainerListCompact:
    return ContainerListCompact(
        containers=tuple(
            ContainerSummary(
                id=shorten_id(c.id, rules.id_length),
                name=c.name,
                image=c.image,
                status=c.status,
            )
            for c in r.containers
        ),
        total=r.total,
        running=r.running,
        stopped=r.stopped,
    )


def _images(r: ImageList, rules: CompactRules, config: CoreConfig) -> ImageListCompact:
    return ImageListCompact(
        images=tuple(
            ImageSummary(
                id=shorten_id(i.id, rules.id_length),
                repository=i.repository,
                tag=i.tag,
                size=i.size,
            )
            for i in r.images
        ),
        total=r.total,
    )


def _build(r: BuildReport, rules: CompactRules, config: CoreConfig) -> BuildReportCompact:
    return BuildReportCompact(
        success=r.success,
        image_id=r.image_id,
        duration=r.duration,
        error_count=len(r.errors),
    )


def _logs(r: LogBundle, rules: CompactRules, config: CoreConfig) -> LogBundleCompact:
    return LogBundleCompact(
        container=r.container,
        window=window_lines(r.lines, config.log_head, config.log_tail, config.log_ceiling),
        total=r.total,
    )


def _inspect(r: InspectRecord, rules: CompactRules, config: CoreConfig) -> InspectRecordCompact:
    return InspectRecordCompact(
        id=r.id,
        name=r.name,
        inspect_type=r.inspect_type,
        status=r.status,
        running=r.running,
        image=r.image,
        health_status=r.health_status,
        repo_tags=r.repo_tags,
    )


def _networks(r: NetworkList, rules: CompactRules, config: CoreConfig) -> NetworkListCompact:
    return NetworkListCompact(
        networks=tuple(NetworkSummary(id=n.id, name=n.name, driver=n.driver) for n in r.networks),
        total=r.total,
    )


def _volumes(r: VolumeList, rules: CompactRules, config: CoreConfig) -> VolumeListCompact:
    return VolumeListCompact(
        volumes=tuple(
            VolumeSummary(name=v.name, driver=v.driver, mountpoint=v.mountpoint) for v in r.volumes
        ),
        total=r.total,
    )


def _compose_ps(r: ComposeServiceList, rules: CompactRules, config: CoreConfig) -> ComposeServiceListCompact:
    return ComposeServiceListCompact(
        services=tuple(
            ComposeServiceSummary(name=s.name, service=s.service, state=s.state, exit_code=s.exit_code)
            for s in r.services
        ),
        total=r.total,
        running=r.running,
        stopped=r.stopped,
    )


def _compose_logs(r: ComposeLogBundle, rules: CompactRules, config: CoreConfig) -> ComposeLogBundleCompact:
    entries = [dataclasses.replace(e, level=None) for e in r.entries]
    window = window_lines(entries, config.log_head, config.log_tail, config.log_ceiling)
    return ComposeLogBundleCompact(
        head=window.head,
        tail=window.tail,
        services=r.services,
        total=r.total_entries if r.total_entries is not None else r.total,
        is_truncated=window.is_truncated or r.is_truncated,
    )


def _stats(r: ResourceUsageList, rules: CompactRules, config: CoreConfig) -> ResourceUsageListCompact:
    return ResourceUsageListCompact(
        containers=tuple(
            StatsSummary(
                id=shorten_id(c.id, rules.id_length),
                name=c.name,
                cpu_percent=c.cpu_percent,
                memory_usage=c.memory_usage,
                memory_percent=c.memory_percent,
                pids=c.pids,
            )
            for c in r.containers
        ),
        total=r.total,
    )


def _pull(r: PullReport, rules: CompactRules, config: CoreConfig) -> PullReportCompact:
    return PullReportCompact(
        success=r.success,
        status=r.status if rules.pull_keeps_digest else None,
        digest=r.digest if rules.pull_keeps_digest else None,
        error_type=r.error_type,
    )


def _diff(r: DiffReport, rules: CompactRules, config: CoreConfig) -> DiffReportCompact:
    return DiffReportCompact(
        files=tuple(dataclasses.replace(f, chunks=None) for f in r.files),
        total_additions=r.total_additions,
        total_deletions=r.total_deletions,
        total_files=r.total_files,
        truncated=r.truncated,
    )


def _trivy(r: VulnerabilityReport, rules: CompactRules, config: CoreConfig) -> VulnerabilityReportCompact:
    return VulnerabilityReportCompact(
        target=r.target, scan_type=r.scan_type, total=r.total, summary=r.summary
    )


def _semgrep(r: StaticAnalysisReport, rules: CompactRules, config: CoreConfig) -> StaticAnalysisReportCompact:
    return StaticAnalysisReportCompact(config=r.config, total=r.total, summary=r.summary)


def _gitleaks(r: SecretReport, rules: CompactRules, config: CoreConfig) -> SecretReportCompact:
    return SecretReportCompact(total=r.total, rule_counts=dict(r.rule_counts))


def _api(r: ApiResponse, rules: CompactRules, config: CoreConfig) -> ApiResponseCompact:
    return ApiResponseCompact(
        status=r.status,
        status_code=r.status_code,
        endpoint=r.endpoint,
        method=r.method,
        pagination=r.pagination,
    )


_MAPPERS: dict[type, Callable[[Any, CompactRules, CoreConfig], Any]] = {
    ContainerList: _ps,
    ImageList: _images,
    BuildReport: _build,
    LogBundle: _logs,
    InspectRecord: _inspect,
    NetworkList: _networks,
    VolumeList: _volumes,
    ComposeServiceList: _compose_ps,
    ComposeLogBundle: _compose_logs,
    ResourceUsageList: _stats,
    PullReport: _pull,
    DiffReport: _diff,
    VulnerabilityReport: _trivy,
    StaticAnalysisReport: _semgrep,
    SecretReport: _gitleaks,
    ApiResponse: _api,
}


def compact(
    record: Any,
    *,
    rules: CompactRules = DEFAULT_RULES,
    config: CoreConfig = DEFAULT_CONFIG,
) -> Any:
    """Project a parsed record onto its compact form.

    Log windows are sized by config.log_head, log_tail and log_ceiling.

    Raises:
        TypeError: record is not a known parsed or compact record.
    """
    if isinstance(record, COMPACT_RECORD_TYPES):
        return record
    mapper = _MAPPERS.get(type(record))
    if mapper is None:
        raise TypeError(f"No compact projection for {type(record).__name__}")
    return mapper(record, rules, config)
