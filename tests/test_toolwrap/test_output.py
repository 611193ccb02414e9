"""Tests for the dual output envelope and compaction switch."""

import json
import logging

from toolwrap.classify import ErrorCategory, ErrorReport
from toolwrap.compact import RULES_V1
from toolwrap.config import CoreConfig
from toolwrap.models import ContainerListCompact, LogBundle, PullReport
from toolwrap.output import compact_dual_output, dual_output, estimate_tokens
from toolwrap.parsers import parse_ps


def _ps_stdout(count):
    return "\n".join(
        json.dumps({
            "ID": f"{i:064x}",
            "Names": f"svc-{i}",
            "Image": "nginx:latest",
            "Status": "Up 2 hours",
            "State": "running",
            "Ports": "0.0.0.0:8080->80/tcp",
            "Labels": "com.docker.compose.project=demo,com.docker.compose.service=web",
            "Networks": "demo_default",
        })
        for i in range(count)
    )


class TestEstimateTokens:
    def test_rounds_up(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("abc") == 1
        assert estimate_tokens("abcde") == 2


class TestDualOutput:
    def test_shape(self):
        record = parse_ps(_ps_stdout(1))
        out = dual_output(record)
        assert set(out) == {"content", "structured"}
        assert out["content"].startswith("1 containers (1 running, 0 stopped)")
        assert out["structured"]["total"] == 1

    def test_error_flag(self):
        out = dual_output(ErrorReport(category=ErrorCategory.TIMEOUT, message="slow"))
        assert out["is_error"] is True
        assert out["structured"]["isError"] is True
        assert out["content"].startswith("Error [timeout]: slow")

    def test_structured_is_strict_json_with_bad_port(self):
        stdout = json.dumps(
            {"ID": "a", "Names": "x", "Image": "i", "State": "running", "Ports": "0.0.0.0:abc->xyz/tcp"}
        )
        out = dual_output(parse_ps(stdout))
        encoded = json.dumps(out["structured"], allow_nan=False)
        assert json.loads(encoded)["containers"][0]["ports"][0]["container"] is None


class TestCompactDualOutput:
    def test_full_when_cheaper_than_raw(self):
        record = PullReport(image="nginx", tag="latest", status="pulled", success=True)
        raw = "latest: Pulling from library/nginx\n" * 50
        out = compact_dual_output(record, raw)
        assert "compacted" not in out
        assert out["structured"]["image"] == "nginx"

    def test_compact_when_full_costs_more(self):
        stdout = _ps_stdout(5)
        record = parse_ps(stdout)
        # Raw text that is much shorter than the structured JSON
        out = compact_dual_output(record, "x")
        assert out["compacted"] is True
        assert "ports" not in out["structured"]["containers"][0]
        assert len(out["structured"]["containers"][0]["id"]) == 12

    def test_force_full(self):
        record = parse_ps(_ps_stdout(2))
        out = compact_dual_output(record, "", force_full=True)
        assert "compacted" not in out
        assert "ports" in out["structured"]["containers"][0]

    def test_rules_passed_through(self):
        record = PullReport(image="a", tag="1", status="pulled", success=True, digest="sha256:abc")
        out = compact_dual_output(record, "", rules=RULES_V1)
        assert out["structured"] == {"success": True}

    def test_config_window_passed_through(self):
        record = LogBundle(container="c", lines=tuple(f"l{i}" for i in range(8)), total=8)
        config = CoreConfig(log_head=1, log_tail=1, log_ceiling=2)
        out = compact_dual_output(record, "", config=config)
        assert out["structured"]["window"]["head"] == ["l0"]
        assert out["structured"]["window"]["tail"] == ["l7"]

    def test_compact_record_stays_compact(self):
        record = ContainerListCompact()
        out = compact_dual_output(record, "")
        assert out["compacted"] is True
        assert out["structured"] == {"containers": [], "total": 0, "running": 0, "stopped": 0}

    def test_logs_decision(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="toolwrap.output"):
            compact_dual_output(parse_ps(_ps_stdout(1)), "")
        assert "Compacting ContainerList" in caplog.text
