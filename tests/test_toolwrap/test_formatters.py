"""Tests for text renderings of records."""

import json

import pytest

from toolwrap.classify import ErrorCategory, ErrorReport
from toolwrap.compact import compact
from toolwrap.config import CoreConfig
from toolwrap.formatters import format_port, format_record
from toolwrap.models import (
    ApiResponse,
    BuildError,
    BuildReport,
    BuildReportCompact,
    Container,
    ContainerList,
    DiffFileEntry,
    DiffReport,
    InspectRecord,
    InspectRecordCompact,
    LogBundle,
    LogBundleCompact,
    Pagination,
    PortBinding,
    PullReport,
    SecretReportCompact,
    SeveritySummary,
    VulnerabilityReportCompact,
)
from toolwrap.parsers import parse_compose_logs, parse_images, parse_network_ls, parse_stats
from toolwrap.windowing import window_lines


class TestPorts:
    def test_published(self):
        assert format_port(PortBinding(container=80, host=8080)) == "8080->80/tcp"

    def test_exposed(self):
        assert format_port(PortBinding(container=53, protocol="udp")) == "53/udp"

    def test_nan(self):
        assert format_port(PortBinding(container=float("nan"))) == "nan/tcp"


class TestDockerFormatters:
    def test_ps(self):
        data = ContainerList(
            containers=(
                Container(id="abc", name="web", image="nginx", status="Up", state="running",
                          ports=(PortBinding(container=80, host=8080),)),
                Container(id="def", name="db", image="postgres", status="Exited", state="exited"),
            ),
            total=2,
            running=1,
            stopped=1,
        )
        text = format_record(data)
        lines = text.split("\n")
        assert lines[0] == "2 containers (1 running, 1 stopped)"
        assert lines[1] == "  running    web (nginx) [8080->80/tcp]"
        assert lines[2] == "  exited     db (postgres)"

    def test_ps_compact(self):
        data = ContainerList(
            containers=(Container(id="a" * 64, name="web", image="nginx", status="Up 1h", state="running"),),
            total=1,
            running=1,
        )
        text = format_record(compact(data))
        assert text == "1 containers (1 running)\n  aaaaaaaaaaaa web (nginx) Up 1h"

    def test_no_images(self):
        assert format_record(parse_images("")) == "No images found."

    def test_build_success(self):
        report = BuildReport(
            success=True, image_id="abc123def456", duration=4.2, steps=3, cache_hits=1, cache_misses=2
        )
        assert format_record(report) == "Build succeeded in 4.2s → abc123def456, 3 steps, cache hits=1, misses=2"

    def test_build_failure_shows_cache_counts(self):
        report = BuildReport(steps=2, cache_hits=1, cache_misses=1, errors=(BuildError("failed to solve"),))
        assert format_record(report) == "Build failed\n  cache hits=1, misses=1\n  failed to solve"

    def test_empty_inspect_compact(self):
        assert format_record(compact(InspectRecord())) == " ()"

    def test_inspect_compact_container(self):
        record = InspectRecordCompact(
            id="abc", name="web", status="running", running=True, image="nginx", health_status="healthy"
        )
        assert format_record(record) == "web (abc) running [running] image=nginx health=healthy"

    def test_logs_compact_omitted_count_never_negative(self):
        lines = [f"l{i}" for i in range(7)]
        record = LogBundleCompact(container="c", window=window_lines(lines, 5, 5, 6), total=7)
        assert "  ... 0 lines omitted ..." in format_record(record)

    def test_build_failure(self):
        report = BuildReport(errors=(BuildError("unknown instruction", line=5), BuildError("failed to solve")))
        assert format_record(report) == "Build failed\n  line 5: unknown instruction\n  failed to solve"

    @pytest.mark.parametrize(
        "record, expected",
        [
            (BuildReportCompact(success=True, image_id="abc"), "Build succeeded → abc"),
            (BuildReportCompact(success=True), "Build succeeded"),
            (BuildReportCompact(success=False, error_count=2), "Build failed (2 errors)"),
        ],
    )
    def test_build_compact(self, record, expected):
        assert format_record(record) == expected

    def test_logs_truncated_header(self):
        bundle = LogBundle(container="web", lines=("a", "b"), total=2, total_lines=10, is_truncated=True)
        assert format_record(bundle) == "web: 2 lines (truncated from 10)\na\nb"

    def test_logs_body_cut(self):
        bundle = LogBundle(container="web", lines=("x" * 100,), total=1)
        text = format_record(bundle, config=CoreConfig(body_char_max=10))
        assert text == "web: 1 lines\n" + "x" * 10 + "..."

    def test_logs_compact_window(self):
        lines = tuple(str(i) for i in range(20))
        text = format_record(compact(LogBundle(container="c", lines=lines, total=20)))
        assert "  ... 10 lines omitted ..." in text
        assert text.endswith("19")

    def test_empty_networks(self):
        assert format_record(parse_network_ls("")) == "No networks found."

    def test_stats(self):
        stdout = json.dumps({"Container": "abc", "Name": "web", "CPUPerc": "1.5%", "MemUsage": "10MiB / 1GiB",
                             "MemPerc": "1%", "NetIO": "0B / 0B", "BlockIO": "0B / 0B", "PIDs": "3"})
        text = format_record(parse_stats(stdout))
        assert text.startswith("1 containers:\n  web (abc) CPU: 1.50% Mem: 10MiB/1GiB (1.00%)")
        assert text.endswith("PIDs: 3")

    def test_compose_logs_header(self):
        text = format_record(parse_compose_logs("web  | hi\ndb  | hello", limit=1))
        assert text.split("\n")[0] == "Compose logs: 2 services, 1 entries (truncated)"

    def test_pull(self):
        report = PullReport(image="nginx", tag="latest", status="pulled", success=True,
                            digest="sha256:" + "a" * 64)
        assert format_record(report) == "Pulled nginx:latest (sha256:aaaaaaaaaaaa...)"

    def test_pull_up_to_date(self):
        report = PullReport(image="nginx", tag="1.25", status="up-to-date", success=True)
        assert format_record(report) == "nginx:1.25 is up to date"

    def test_pull_failure(self):
        report = PullReport(image="x", tag="latest", error_type="not-found", error_message="manifest unknown")
        assert format_record(report) == "Pull failed for x:latest (not-found): manifest unknown"


class TestDiffFormatter:
    def test_lines(self):
        report = DiffReport(
            files=(
                DiffFileEntry(file="a.py", additions=3, deletions=1),
                DiffFileEntry(file="new.py", status="renamed", old_file="old.py"),
                DiffFileEntry(file="logo.png", binary=True),
            ),
            total_additions=3,
            total_deletions=1,
            total_files=3,
            truncated=True,
        )
        assert format_record(report).split("\n") == [
            "3 files changed, +3 -1 (truncated)",
            "  a.py +3 -1",
            "  old.py → new.py +0 -0 [renamed]",
            "  logo.png (binary)",
        ]


class TestScannerFormatters:
    def test_trivy_compact(self):
        record = VulnerabilityReportCompact(
            target="alpine", total=3, summary=SeveritySummary(critical=1, high=2)
        )
        assert format_record(record) == "Trivy image scan: alpine -- 3 vulnerabilities (1C/2H/0M/0L)"

    def test_gitleaks_compact_sorted(self):
        record = SecretReportCompact(total=3, rule_counts={"zeta": 1, "aws": 2})
        assert format_record(record) == "Found 3 secrets (aws=2, zeta=1)"

    def test_gitleaks_none(self):
        assert format_record(SecretReportCompact()) == "No secrets found."


class TestApiFormatter:
    def test_response(self):
        response = ApiResponse(
            status_code=200,
            body={"b": 1, "a": 2},
            endpoint="/repos/o/r",
            headers={"content-type": "application/json"},
            pagination=Pagination(next="https://x?page=2"),
        )
        assert format_record(response).split("\n") == [
            "HTTP 200 OK GET /repos/o/r",
            "  Headers: 1",
            "  Pagination: next=https://x?page=2",
            '{"a": 2, "b": 1}',
        ]

    def test_unknown_status_has_no_reason(self):
        response = ApiResponse(status_code=418, endpoint="/teapot", method="POST")
        assert format_record(response) == "HTTP 418 POST /teapot"

    def test_body_cut(self):
        response = ApiResponse(body="y" * 50, endpoint="/x")
        text = format_record(response, config=CoreConfig(body_char_max=5))
        assert text.endswith("yyyyy...")


class TestErrorFormatter:
    def test_full(self):
        report = ErrorReport(
            category=ErrorCategory.NOT_FOUND,
            message="No such container: web",
            command="docker",
            exit_code=1,
            suggestion="Verify the resource exists.",
        )
        assert format_record(report).split("\n") == [
            "Error [not-found]: No such container: web",
            "Command: docker",
            "Exit code: 1",
            "Suggestion: Verify the resource exists.",
        ]


class TestDispatch:
    def test_unknown_type(self):
        with pytest.raises(TypeError, match="No formatter for str"):
            format_record("plain")
