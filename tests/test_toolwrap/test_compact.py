"""Tests for compact projections."""

import dataclasses
import json

import pytest

from toolwrap.compact import DEFAULT_RULES, RULES_V1, RULES_V2, CompactRules, compact
from toolwrap.config import CoreConfig, load_config
from toolwrap.models import (
    COMPACT_RECORD_TYPES,
    PARSED_RECORD_TYPES,
    BuildError,
    BuildReport,
    DiffChunk,
    DiffFileEntry,
    DiffReport,
    LogBundle,
)
from toolwrap.parsers import (
    parse_api_response,
    parse_build,
    parse_compose_logs,
    parse_compose_ps,
    parse_gitleaks,
    parse_images,
    parse_inspect,
    parse_logs,
    parse_network_ls,
    parse_ps,
    parse_pull,
    parse_semgrep,
    parse_stats,
    parse_trivy,
    parse_unified_diff,
    parse_volume_ls,
)


def _empty_records():
    return [
        parse_ps(""),
        parse_images(""),
        parse_build("", "", 0, 0.0),
        parse_logs("", "c"),
        parse_inspect(""),
        parse_network_ls(""),
        parse_volume_ls(""),
        parse_compose_ps(""),
        parse_compose_logs(""),
        parse_stats(""),
        parse_pull("", "", 0, "alpine"),
        parse_unified_diff(""),
        parse_trivy("", "alpine"),
        parse_semgrep(""),
        parse_gitleaks(""),
        parse_api_response("", 0, "/x"),
    ]


class TestMapperTable:
    def test_every_parsed_type_has_a_projection(self):
        kinds = {type(r) for r in _empty_records()}
        assert kinds == set(PARSED_RECORD_TYPES)

    @pytest.mark.parametrize("record", _empty_records(), ids=lambda r: type(r).__name__)
    def test_projection_is_compact_type(self, record):
        assert isinstance(compact(record), COMPACT_RECORD_TYPES)

    @pytest.mark.parametrize("record", _empty_records(), ids=lambda r: type(r).__name__)
    def test_idempotent(self, record):
        once = compact(record)
        assert compact(once) is once

    def test_unknown_type_rejected(self):
        with pytest.raises(TypeError, match="No compact projection for dict"):
            compact({"a": 1})


class TestContainerProjections:
    def test_ps_drops_ports_and_shortens_ids(self):
        stdout = json.dumps({
            "ID": "a" * 64, "Names": "web", "Image": "nginx", "Status": "Up", "State": "running",
            "Ports": "0.0.0.0:80->80/tcp", "Labels": "x=y",
        })
        result = compact(parse_ps(stdout))
        data = result.to_dict()
        assert data["containers"] == [{"id": "a" * 12, "name": "web", "image": "nginx", "status": "Up"}]
        assert data["running"] == 1

    def test_id_length_rule(self):
        stdout = json.dumps({"ID": "b" * 64, "Names": "x", "State": "exited"})
        result = compact(parse_ps(stdout), rules=CompactRules(id_length=6))
        assert result.containers[0].id == "bbbbbb"

    def test_build_counts_errors(self):
        report = BuildReport(success=False, errors=(BuildError("a"), BuildError("b")))
        result = compact(report)
        assert result.error_count == 2
        assert "errors" not in result.to_dict()


class TestLogProjections:
    def test_short_log_all_in_head(self):
        result = compact(LogBundle(container="c", lines=("a", "b"), total=2))
        assert result.window.head == ("a", "b")
        assert result.window.tail == ()
        assert result.total == 2

    def test_long_log_windowed(self):
        lines = tuple(f"line {i}" for i in range(50))
        result = compact(LogBundle(container="c", lines=lines, total=50))
        assert result.window.head == lines[:5]
        assert result.window.tail == lines[-5:]
        assert result.window.is_truncated is True
        assert result.window.total_lines == 50

    def test_window_sized_by_config(self):
        lines = tuple(str(i) for i in range(20))
        config = CoreConfig(log_head=2, log_tail=1, log_ceiling=3)
        result = compact(LogBundle(container="c", lines=lines, total=20), config=config)
        assert result.window.head == ("0", "1")
        assert result.window.tail == ("19",)

    def test_window_from_config_file(self, config_file):
        path = config_file("log_head: 2\nlog_tail: 2\nlog_ceiling: 4\n")
        config = load_config({"TOOLWRAP_CONFIG": path})
        lines = tuple(f"l{i}" for i in range(8))
        result = compact(LogBundle(container="c", lines=lines, total=8), config=config)
        assert result.window.head == ("l0", "l1")
        assert result.window.tail == ("l6", "l7")

    def test_rules_carry_no_window_sizes(self):
        names = {f.name for f in dataclasses.fields(CompactRules)}
        assert not names & {"log_head", "log_tail", "log_ceiling"}

    def test_compose_logs_drop_level(self):
        text = "\n".join(f"web  | [INFO] msg {i}" for i in range(12))
        result = compact(parse_compose_logs(text))
        assert len(result.head) == 5
        assert len(result.tail) == 5
        assert result.is_truncated is True
        assert result.total == 12
        assert all(e.level is None for e in result.head + result.tail)

    def test_compose_logs_sized_by_config(self):
        text = "\n".join(f"web  | m {i}" for i in range(6))
        config = CoreConfig(log_head=1, log_tail=2, log_ceiling=3)
        result = compact(parse_compose_logs(text), config=config)
        assert [e.message for e in result.head] == ["m 0"]
        assert [e.message for e in result.tail] == ["m 4", "m 5"]
        assert result.is_truncated is True

    def test_compose_logs_at_ceiling_not_truncated(self):
        text = "\n".join(f"web  | m {i}" for i in range(10))
        result = compact(parse_compose_logs(text))
        assert len(result.head) == 10
        assert result.tail == ()
        assert not result.is_truncated

    def test_compose_logs_keep_parse_limit_total(self):
        text = "\n".join(f"web  | m {i}" for i in range(30))
        result = compact(parse_compose_logs(text, limit=8))
        assert result.total == 30
        assert result.is_truncated is True
        assert result.tail == ()


class TestPullRules:
    _PULLED = parse_pull("Digest: sha256:abc\nStatus: Downloaded newer image", "", 0, "nginx")

    def test_v2_keeps_digest(self):
        result = compact(self._PULLED, rules=RULES_V2)
        assert result.digest == "sha256:abc"
        assert result.status == "pulled"

    def test_v1_drops_digest(self):
        result = compact(self._PULLED, rules=RULES_V1)
        assert result.digest is None
        assert result.status is None
        assert result.to_dict() == {"success": True}

    def test_default_is_v2(self):
        assert DEFAULT_RULES == RULES_V2
        assert DEFAULT_RULES.version == 2

    def test_error_type_kept(self):
        failed = parse_pull("", "manifest unknown", 1, "nope")
        assert compact(failed, rules=RULES_V1).error_type == "not-found"


class TestReportProjections:
    def test_diff_drops_chunks(self):
        entry = DiffFileEntry(file="a", additions=1, chunks=(DiffChunk(header="@@ -1 +1 @@", lines=("+x",)),))
        report = DiffReport(files=(entry,), total_additions=1, total_files=1)
        result = compact(report)
        assert result.files[0].chunks is None
        assert result.total_additions == 1
        assert dataclasses.replace(result.files[0], chunks=entry.chunks) == entry

    def test_trivy_keeps_summary_only(self):
        text = json.dumps({"Results": [{"Vulnerabilities": [
            {"VulnerabilityID": "CVE-1", "PkgName": "p", "InstalledVersion": "1", "Severity": "HIGH"},
        ]}]})
        result = compact(parse_trivy(text, "img"))
        assert result.total == 1
        assert result.summary.high == 1
        assert "vulnerabilities" not in result.to_dict()

    def test_gitleaks_rule_counts(self):
        text = json.dumps([{"RuleID": "aws", "Secret": "AKIAXXXXXXXXXXXX", "Match": ""}])
        result = compact(parse_gitleaks(text))
        assert result.to_dict() == {"total": 1, "ruleCounts": {"aws": 1}}

    def test_api_drops_body_and_headers(self):
        raw = 'HTTP/2 200\nLink: <https://x?page=2>; rel="next"\n\n{"big": "payload"}'
        result = compact(parse_api_response(raw, 0, "/x"))
        data = result.to_dict()
        assert "body" not in data
        assert "headers" not in data
        assert data["pagination"] == {"next": "https://x?page=2"}
