"""Docker and docker compose output parsers.

Most docker subcommands are invoked with ``--format json`` and emit one
JSON object per line; inspect emits a JSON array; build, logs and pull are
parsed from text.
"""

from __future__ import annotations

import math
import re
from typing import Any

from toolwrap.logging import get_logger
from toolwrap.models import (
    BuildError,
    BuildReport,
    ComposeLogBundle,
    ComposeLogEntry,
    ComposeService,
    ComposeServiceList,
    Container,
    ContainerList,
    ContainerStats,
    Image,
    ImageList,
    InspectRecord,
    LogBundle,
    Mount,
    Network,
    NetworkList,
    PortBinding,
    PullReport,
    ResourceUsageList,
    Volume,
    VolumeList,
)
from toolwrap.parsers.jsonl import as_int, as_str, decode_json_document, decode_ndjson
from toolwrap.windowing import split_lines

logger = get_logger(__name__)

# Docker reports this for containers that never started
_ZERO_TIME_PREFIX = "0001-01-01"

_LEADING_DIGITS_RE = re.compile(r"\s*(\d+)")


# =============================================================================
# Shared helpers
# =============================================================================

def shorten_id(value: str, length: int | None) -> str:
    """Return the first ``length`` characters of an identifier, or all of it."""
    if length is None or length <= 0:
        return value
    return value[:length]


def _prefer(relative: Any, absolute: Any) -> str:
    """Pick the human-relative timestamp when present, else the absolute one."""
    rel = as_str(relative).strip()
    if rel:
        return rel
    return as_str(absolute).strip()


def _strip_slash(name: str) -> str:
    return name[1:] if name.startswith("/") else name


def _optional(value: Any) -> str | None:
    text = as_str(value).strip()
    return text or None


def _parse_labels(value: Any) -> dict[str, str] | None:
    """Labels arrive as a dict from inspect and as 'k=v,k2=v2' from ls/ps."""
    if isinstance(value, dict):
        labels = {str(k): as_str(v) for k, v in value.items()}
        return labels or None
    text = as_str(value).strip()
    if not text:
        return None
    labels = {}
    for pair in text.split(","):
        if not pair.strip():
            continue
        key, _, val = pair.partition("=")
        labels[key.strip()] = val.strip()
    return labels or None


def _parse_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    text = as_str(value).strip().lower()
    if text == "true":
        return True
    if text == "false":
        return False
    return None


def _parse_percent(value: Any) -> float:
    text = as_str(value).strip().rstrip("%").strip()
    try:
        percent = float(text)
    except ValueError:
        return 0.0
    return percent if math.isfinite(percent) else 0.0


def _tuple_of_str(value: Any) -> tuple[str, ...] | None:
    if isinstance(value, list):
        return tuple(as_str(v) for v in value)
    if isinstance(value, str) and value:
        return (value,)
    return None


# =============================================================================
# Ports
# =============================================================================

def _port_number(text: str) -> float:
    """Leading decimal digits of text, or NaN when there are none."""
    m = _LEADING_DIGITS_RE.match(text)
    if not m:
        return float("nan")
    return int(m.group(1))


def parse_ports(spec: str) -> tuple[PortBinding, ...]:
    """Parse a docker port column such as '0.0.0.0:8080->80/tcp, 53/udp'.

    Port numbers are not range-checked; non-numeric text becomes NaN. A
    binding that is not published has no host port.
    """
    if not spec:
        return ()
    bindings: list[PortBinding] = []
    for segment in spec.split(","):
        segment = segment.strip()
        if not segment:
            continue
        host: float | None = None
        target = segment
        if "->" in segment:
            left, _, target = segment.partition("->")
            host = _port_number(left.rsplit(":", 1)[-1])
        port_text, _, protocol = target.partition("/")
        bindings.append(
            PortBinding(
                container=_port_number(port_text),
                protocol=protocol.strip() or "tcp",
                host=host,
            )
        )
    return tuple(bindings)


def _ports_from_publishers(publishers: list[Any]) -> tuple[PortBinding, ...]:
    """Compose 'Publishers' entries, in either PascalCase or snake_case."""
    bindings: list[PortBinding] = []
    for pub in publishers:
        if not isinstance(pub, dict):
            continue
        target = pub.get("TargetPort", pub.get("target_port"))
        if target is None:
            continue
        published = as_int(pub.get("PublishedPort", pub.get("published_port")), 0)
        protocol = as_str(pub.get("Protocol", pub.get("protocol")), "tcp") or "tcp"
        bindings.append(
            PortBinding(
                container=as_int(target, 0),
                protocol=protocol,
                host=published if published else None,
            )
        )
    return tuple(bindings)


# =============================================================================
# ps / images
# =============================================================================

def parse_ps(stdout: str, *, id_length: int | None = None) -> ContainerList:
    """Parse ``docker ps -a --no-trunc --format json``.

    Ids are kept at full length unless id_length is given.
    """
    containers = []
    for obj in decode_ndjson(stdout):
        networks = as_str(obj.get("Networks")).strip()
        containers.append(
            Container(
                id=shorten_id(as_str(obj.get("ID")), id_length),
                name=_strip_slash(as_str(obj.get("Names"))),
                image=as_str(obj.get("Image")),
                status=as_str(obj.get("Status")),
                state=as_str(obj.get("State")).lower(),
                ports=parse_ports(as_str(obj.get("Ports"))),
                created=_prefer(obj.get("RunningFor"), obj.get("CreatedAt")),
                labels=_parse_labels(obj.get("Labels")),
                networks=tuple(n for n in networks.split(",") if n) or None,
            )
        )
    running = sum(1 for c in containers if c.state == "running")
    return ContainerList(
        containers=tuple(containers),
        total=len(containers),
        running=running,
        stopped=len(containers) - running,
    )


def parse_images(stdout: str, *, id_length: int | None = 12) -> ImageList:
    """Parse ``docker images --format json``."""
    images = []
    for obj in decode_ndjson(stdout):
        digest = as_str(obj.get("Digest")).strip()
        images.append(
            Image(
                id=shorten_id(as_str(obj.get("ID")), id_length),
                repository=as_str(obj.get("Repository")),
                tag=as_str(obj.get("Tag")),
                size=as_str(obj.get("Size")),
                created=_prefer(obj.get("CreatedSince"), obj.get("CreatedAt")),
                created_at=_optional(obj.get("CreatedAt")),
                digest=digest if digest and digest != "<none>" else None,
            )
        )
    return ImageList(images=tuple(images), total=len(images))


# =============================================================================
# build
# =============================================================================

_IMAGE_ID_RES = (
    re.compile(r"writing image sha256:([0-9a-f]+)"),
    re.compile(r"Successfully built ([0-9a-f]+)"),
)
_STEP_RE = re.compile(r"^#(\d+)\s")
# "#3 CACHED" or "#3 [web 3/3] CACHED"
_CACHED_RE = re.compile(r"^#(\d+)\s+(?:\[[^\]]*\]\s+)?CACHED\b")
_BUILD_ERROR_RE = re.compile(
    r"\berror\b|did not complete successfully|failed to solve", re.IGNORECASE
)
_DOCKERFILE_REF_RE = re.compile(r"(Dockerfile[\w.-]*):(\d+)")


def _build_errors(lines: list[str]) -> list[BuildError]:
    errors: list[BuildError] = []
    seen: set[str] = set()
    for raw in lines:
        line = raw.strip()
        if not line or line in seen:
            continue
        ref = _DOCKERFILE_REF_RE.search(line)
        if not ref and not _BUILD_ERROR_RE.search(line):
            continue
        seen.add(line)
        errors.append(
            BuildError(
                message=line,
                line=int(ref.group(2)) if ref else None,
                dockerfile=ref.group(1) if ref else None,
            )
        )
    return errors


def parse_build(stdout: str, stderr: str, exit_code: int, duration: float) -> BuildReport:
    """Parse ``docker build`` progress output.

    A build succeeds when the exit code is 0. Failed builds always carry at
    least one error; successful builds carry none.
    """
    combined = split_lines(stdout) + split_lines(stderr)
    success = exit_code == 0

    image_id = None
    if success:
        text = "\n".join(combined)
        for pattern in _IMAGE_ID_RES:
            m = pattern.search(text)
            if m:
                image_id = m.group(1)[:12]
                break

    steps: set[str] = set()
    cached: set[str] = set()
    for line in combined:
        step = _STEP_RE.match(line)
        if step:
            steps.add(step.group(1))
        hit = _CACHED_RE.match(line)
        if hit:
            cached.add(hit.group(1))

    errors: list[BuildError] = []
    if not success:
        errors = _build_errors(split_lines(stderr)) or _build_errors(split_lines(stdout))
        if not errors:
            tail = [line.strip() for line in split_lines(stderr) if line.strip()]
            message = tail[-1] if tail else f"Build failed with exit code {exit_code}"
            errors = [BuildError(message=message)]

    return BuildReport(
        success=success,
        image_id=image_id,
        duration=duration,
        steps=len(steps) if steps else None,
        errors=tuple(errors),
        cache_hits=len(cached) if steps else None,
        cache_misses=len(steps - cached) if steps else None,
    )


# =============================================================================
# logs
# =============================================================================

def parse_logs(
    stdout: str,
    container: str,
    *,
    limit: int | None = None,
    stderr: str = "",
) -> LogBundle:
    """Parse ``docker logs``. The container's stderr stream follows stdout."""
    out_lines = split_lines(stdout)
    err_lines = split_lines(stderr)
    lines = out_lines + err_lines
    total_lines = None
    is_truncated = None
    if limit is not None and limit >= 0 and len(lines) > limit:
        total_lines = len(lines)
        is_truncated = True
        lines = lines[:limit]
    return LogBundle(
        container=container,
        lines=tuple(lines),
        total=len(lines),
        total_lines=total_lines,
        is_truncated=is_truncated,
        stderr_lines=len(err_lines) if stderr else None,
    )


# =============================================================================
# inspect
# =============================================================================

def _detect_inspect_type(obj: dict[str, Any]) -> str:
    if isinstance(obj.get("State"), dict):
        return "container"
    if "RepoTags" in obj or "RootFS" in obj:
        return "image"
    if "Mountpoint" in obj:
        return "volume"
    if "IPAM" in obj or "EnableIPv6" in obj:
        return "network"
    return "container"


def _start_time(value: Any) -> str | None:
    text = as_str(value).strip()
    if not text or text.startswith(_ZERO_TIME_PREFIX):
        return None
    return text


def _container_ip(obj: dict[str, Any]) -> str | None:
    settings = obj.get("NetworkSettings")
    if not isinstance(settings, dict):
        return None
    ip = as_str(settings.get("IPAddress")).strip()
    if ip:
        return ip
    networks = settings.get("Networks")
    if isinstance(networks, dict):
        for net in networks.values():
            if isinstance(net, dict) and as_str(net.get("IPAddress")).strip():
                return as_str(net.get("IPAddress")).strip()
    return None


def _mounts(value: Any) -> tuple[Mount, ...] | None:
    if not isinstance(value, list) or not value:
        return None
    mounts = []
    for m in value:
        if not isinstance(m, dict):
            continue
        mounts.append(
            Mount(
                destination=as_str(m.get("Destination")),
                source=as_str(m.get("Source")),
                type=_optional(m.get("Type")),
                read_write=m.get("RW") if isinstance(m.get("RW"), bool) else None,
            )
        )
    return tuple(mounts) or None


def _inspect_container(obj: dict[str, Any], id_length: int | None) -> InspectRecord:
    state = obj.get("State") if isinstance(obj.get("State"), dict) else {}
    config = obj.get("Config") if isinstance(obj.get("Config"), dict) else {}
    host_config = obj.get("HostConfig") if isinstance(obj.get("HostConfig"), dict) else {}
    health = state.get("Health") if isinstance(state.get("Health"), dict) else {}
    restart = host_config.get("RestartPolicy")
    return InspectRecord(
        id=shorten_id(as_str(obj.get("Id")), id_length),
        name=_strip_slash(as_str(obj.get("Name"))),
        inspect_type="container",
        status=_optional(state.get("Status")),
        running=state.get("Running") if isinstance(state.get("Running"), bool) else None,
        started_at=_start_time(state.get("StartedAt")),
        image=_optional(config.get("Image")) or _optional(obj.get("Image")),
        platform=_optional(obj.get("Platform")),
        created=_optional(obj.get("Created")),
        health_status=_optional(health.get("Status")),
        restart_policy=_optional(restart.get("Name")) if isinstance(restart, dict) else None,
        ip_address=_container_ip(obj),
        env=_tuple_of_str(config.get("Env")),
        cmd=_tuple_of_str(config.get("Cmd")),
        entrypoint=_tuple_of_str(config.get("Entrypoint")),
        mounts=_mounts(obj.get("Mounts")),
        labels=_parse_labels(config.get("Labels")),
    )


def _inspect_image(obj: dict[str, Any], id_length: int | None) -> InspectRecord:
    config = obj.get("Config") if isinstance(obj.get("Config"), dict) else {}
    image_id = shorten_id(as_str(obj.get("Id")), id_length)
    repo_tags = _tuple_of_str(obj.get("RepoTags"))
    os_name = as_str(obj.get("Os")).strip()
    arch = as_str(obj.get("Architecture")).strip()
    size = obj.get("Size")
    return InspectRecord(
        id=image_id,
        name=repo_tags[0] if repo_tags else image_id,
        inspect_type="image",
        platform=f"{os_name}/{arch}" if os_name and arch else (os_name or None),
        created=_optional(obj.get("Created")),
        env=_tuple_of_str(config.get("Env")),
        cmd=_tuple_of_str(config.get("Cmd")),
        entrypoint=_tuple_of_str(config.get("Entrypoint")),
        repo_tags=repo_tags,
        repo_digests=_tuple_of_str(obj.get("RepoDigests")),
        size=size if isinstance(size, int) and not isinstance(size, bool) else None,
        labels=_parse_labels(config.get("Labels")),
    )


def _inspect_volume(obj: dict[str, Any]) -> InspectRecord:
    name = as_str(obj.get("Name"))
    return InspectRecord(
        id=name,
        name=name,
        inspect_type="volume",
        created=_optional(obj.get("CreatedAt")),
        driver=_optional(obj.get("Driver")),
        scope=_optional(obj.get("Scope")),
        mountpoint=_optional(obj.get("Mountpoint")),
        labels=_parse_labels(obj.get("Labels")),
    )


def _inspect_network(obj: dict[str, Any], id_length: int | None) -> InspectRecord:
    return InspectRecord(
        id=shorten_id(as_str(obj.get("Id")), id_length),
        name=as_str(obj.get("Name")),
        inspect_type="network",
        created=_optional(obj.get("Created")),
        driver=_optional(obj.get("Driver")),
        scope=_optional(obj.get("Scope")),
        labels=_parse_labels(obj.get("Labels")),
    )


def parse_inspect(stdout: str, *, id_length: int | None = None) -> InspectRecord:
    """Parse ``docker inspect`` output for the first object returned.

    Accepts the usual JSON array or a bare object. Full identifiers are
    kept unless id_length is given.
    """
    data = decode_json_document(stdout)
    if isinstance(data, list):
        data = next((item for item in data if isinstance(item, dict)), None)
    if not isinstance(data, dict):
        return InspectRecord()

    kind = _detect_inspect_type(data)
    if kind == "image":
        return _inspect_image(data, id_length)
    if kind == "volume":
        return _inspect_volume(data)
    if kind == "network":
        return _inspect_network(data, id_length)
    return _inspect_container(data, id_length)


# =============================================================================
# network ls / volume ls
# =============================================================================

def parse_network_ls(stdout: str, *, id_length: int | None = 12) -> NetworkList:
    """Parse ``docker network ls --format json``."""
    networks = [
        Network(
            id=shorten_id(as_str(obj.get("ID")), id_length),
            name=as_str(obj.get("Name")),
            driver=as_str(obj.get("Driver")),
            scope=as_str(obj.get("Scope")),
            ipv6=_parse_bool(obj.get("IPv6")),
            internal=_parse_bool(obj.get("Internal")),
            created_at=_optional(obj.get("CreatedAt")),
            labels=_parse_labels(obj.get("Labels")),
        )
        for obj in decode_ndjson(stdout)
    ]
    return NetworkList(networks=tuple(networks), total=len(networks))


def parse_volume_ls(stdout: str) -> VolumeList:
    """Parse ``docker volume ls --format json``."""
    volumes = [
        Volume(
            name=as_str(obj.get("Name")),
            driver=as_str(obj.get("Driver")),
            mountpoint=as_str(obj.get("Mountpoint")),
            scope=as_str(obj.get("Scope")),
            labels=_parse_labels(obj.get("Labels")),
        )
        for obj in decode_ndjson(stdout)
    ]
    return VolumeList(volumes=tuple(volumes), total=len(volumes))


# =============================================================================
# compose ps / compose logs
# =============================================================================

def _compose_objects(stdout: str) -> tuple[dict[str, Any], ...]:
    # Older compose releases print a single JSON array instead of NDJSON
    if stdout.lstrip().startswith("["):
        data = decode_json_document(stdout)
        if isinstance(data, list):
            return tuple(item for item in data if isinstance(item, dict))
        return ()
    return decode_ndjson(stdout)


def parse_compose_ps(stdout: str) -> ComposeServiceList:
    """Parse ``docker compose ps --format json``."""
    services = []
    for obj in _compose_objects(stdout):
        publishers = obj.get("Publishers")
        if isinstance(publishers, list) and publishers:
            ports = _ports_from_publishers(publishers)
        else:
            ports = parse_ports(as_str(obj.get("Ports")))
        exit_code = obj.get("ExitCode")
        services.append(
            ComposeService(
                name=as_str(obj.get("Name")),
                service=as_str(obj.get("Service")),
                state=as_str(obj.get("State")).lower(),
                status=as_str(obj.get("Status")),
                image=_optional(obj.get("Image")),
                ports=ports or None,
                health=_optional(obj.get("Health")),
                exit_code=exit_code if isinstance(exit_code, int) and not isinstance(exit_code, bool) else None,
            )
        )
    running = sum(1 for s in services if s.state == "running")
    return ComposeServiceList(
        services=tuple(services),
        total=len(services),
        running=running,
        stopped=len(services) - running,
    )


_COMPOSE_LINE_RE = re.compile(r"^(\S+)\s+\|\s?(.*)$")
_TIMESTAMP_RES = (
    re.compile(r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})?)\s+(.*)$"),
    re.compile(r"^\[(\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}[^\]]*)\]\s*(.*)$"),
)
_LEVEL_RES = (
    re.compile(r"^\[(TRACE|DEBUG|INFO|WARN|WARNING|ERROR|FATAL)\]", re.IGNORECASE),
    re.compile(r"\blevel=\"?(trace|debug|info|warn|warning|error|fatal)\b", re.IGNORECASE),
    re.compile(r"^(TRACE|DEBUG|INFO|WARN|WARNING|ERROR|FATAL):", re.IGNORECASE),
)
_LEVEL_ALIASES = {"warning": "warn"}


def _log_level(message: str) -> str | None:
    for pattern in _LEVEL_RES:
        m = pattern.search(message)
        if m:
            level = m.group(1).lower()
            return _LEVEL_ALIASES.get(level, level)
    return None


def _compose_entry(line: str) -> ComposeLogEntry:
    m = _COMPOSE_LINE_RE.match(line)
    if not m:
        return ComposeLogEntry(service="unknown", message=line.strip(), level=_log_level(line.strip()))
    service, message = m.group(1), m.group(2).strip()
    timestamp = None
    for pattern in _TIMESTAMP_RES:
        ts = pattern.match(message)
        if ts:
            timestamp, message = ts.group(1), ts.group(2)
            break
    return ComposeLogEntry(
        service=service,
        message=message,
        timestamp=timestamp,
        level=_log_level(message),
    )


def parse_compose_logs(stdout: str, *, limit: int | None = None) -> ComposeLogBundle:
    """Parse ``docker compose logs`` lines of the form 'svc  | [ts] message'."""
    entries = [_compose_entry(line) for line in split_lines(stdout) if line.strip()]
    services: list[str] = []
    for entry in entries:
        if entry.service not in services:
            services.append(entry.service)

    total_entries = None
    is_truncated = None
    if limit is not None and limit >= 0 and len(entries) > limit:
        total_entries = len(entries)
        is_truncated = True
        entries = entries[:limit]

    return ComposeLogBundle(
        entries=tuple(entries),
        services=tuple(services),
        total=len(entries),
        total_entries=total_entries,
        is_truncated=is_truncated,
    )


# =============================================================================
# stats / pull
# =============================================================================

def parse_stats(stdout: str, *, id_length: int | None = 12) -> ResourceUsageList:
    """Parse ``docker stats --no-stream --format json``."""
    containers = []
    for obj in decode_ndjson(stdout):
        usage, _, limit = as_str(obj.get("MemUsage")).partition("/")
        containers.append(
            ContainerStats(
                id=shorten_id(as_str(obj.get("Container") or obj.get("ID")), id_length),
                name=_strip_slash(as_str(obj.get("Name"))),
                cpu_percent=_parse_percent(obj.get("CPUPerc")),
                memory_usage=usage.strip(),
                memory_limit=limit.strip(),
                memory_percent=_parse_percent(obj.get("MemPerc")),
                net_io=as_str(obj.get("NetIO")),
                block_io=as_str(obj.get("BlockIO")),
                pids=as_int(obj.get("PIDs"), 0),
            )
        )
    return ResourceUsageList(containers=tuple(containers), total=len(containers))


_DIGEST_RE = re.compile(r"Digest:\s*(sha256:[0-9a-f]+)")
_UP_TO_DATE_RE = re.compile(r"Image is up to date", re.IGNORECASE)

# Checked in order; first match wins
_PULL_ERROR_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("rate-limit", re.compile(r"toomanyrequests|rate limit", re.IGNORECASE)),
    ("not-found", re.compile(r"manifest unknown|not found|repository does not exist|no such image", re.IGNORECASE)),
    ("auth", re.compile(r"unauthorized|authentication required|denied|login", re.IGNORECASE)),
    (
        "network-timeout",
        re.compile(
            r"timeout|timed out|request canceled|connection refused|no such host|network is unreachable|i/o timeout",
            re.IGNORECASE,
        ),
    ),
)


def split_image_ref(ref: str) -> tuple[str, str]:
    """Split 'registry:5000/app:tag' into ('registry:5000/app', 'tag')."""
    ref = ref.strip().split("@", 1)[0]
    slash = ref.rfind("/")
    colon = ref.rfind(":")
    if colon > slash:
        return ref[:colon], ref[colon + 1:] or "latest"
    return ref, "latest"


def classify_pull_error(stderr: str) -> str:
    for error_type, pattern in _PULL_ERROR_PATTERNS:
        if pattern.search(stderr):
            return error_type
    return "unknown"


def parse_pull(stdout: str, stderr: str, exit_code: int, image: str) -> PullReport:
    """Parse ``docker pull`` for the given image reference."""
    name, tag = split_image_ref(image)
    m = _DIGEST_RE.search(stdout) or _DIGEST_RE.search(stderr)
    digest = m.group(1) if m else None

    if exit_code != 0:
        tail = [line.strip() for line in split_lines(stderr) if line.strip()]
        return PullReport(
            image=name,
            tag=tag,
            status="error",
            success=False,
            error_type=classify_pull_error(stderr),
            error_message=tail[-1] if tail else None,
        )

    up_to_date = _UP_TO_DATE_RE.search(stdout) or _UP_TO_DATE_RE.search(stderr)
    return PullReport(
        image=name,
        tag=tag,
        status="up-to-date" if up_to_date else "pulled",
        success=True,
        digest=digest,
    )
