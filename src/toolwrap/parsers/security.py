"""Security scanner parsers: trivy, semgrep and gitleaks JSON reports.

Credentials found by gitleaks are redacted here, before they are stored in
any record.
"""

from __future__ import annotations

from collections import Counter
from typing import Any

from toolwrap.logging import get_logger
from toolwrap.models import (
    FindingSummary,
    SecretFinding,
    SecretReport,
    SeveritySummary,
    StaticAnalysisFinding,
    StaticAnalysisReport,
    Vulnerability,
    VulnerabilityReport,
)
from toolwrap.parsers.jsonl import as_int, as_str, decode_json_document
from toolwrap.windowing import redact_secret

logger = get_logger(__name__)

_SEVERITIES = ("CRITICAL", "HIGH", "MEDIUM", "LOW", "UNKNOWN")


def _dicts(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


# =============================================================================
# Trivy
# =============================================================================

def _severity(value: Any) -> str:
    sev = as_str(value).strip().upper()
    return sev if sev in _SEVERITIES else "UNKNOWN"


def parse_trivy(text: str, target: str, scan_type: str = "image") -> VulnerabilityReport:
    """Parse ``trivy <type> --format json``.

    Vulnerabilities and misconfigurations from every result are flattened
    into one list.
    """
    data = decode_json_document(text)
    if not isinstance(data, dict):
        return VulnerabilityReport(target=target, scan_type=scan_type)

    vulns: list[Vulnerability] = []
    for result in _dicts(data.get("Results")):
        result_target = _optional_str(result.get("Target"))
        for v in _dicts(result.get("Vulnerabilities")):
            vulns.append(
                Vulnerability(
                    id=as_str(v.get("VulnerabilityID")),
                    package=as_str(v.get("PkgName")),
                    installed_version=as_str(v.get("InstalledVersion")),
                    severity=_severity(v.get("Severity")),
                    title=as_str(v.get("Title")),
                    fixed_version=_optional_str(v.get("FixedVersion")),
                    target=result_target,
                )
            )
        for m in _dicts(result.get("Misconfigurations")):
            vulns.append(
                Vulnerability(
                    id=as_str(m.get("ID") or m.get("AVDID")),
                    package=as_str(m.get("Type")) or "config",
                    installed_version="N/A",
                    severity=_severity(m.get("Severity")),
                    title=as_str(m.get("Title")),
                    fixed_version=_optional_str(m.get("Resolution")),
                    target=result_target,
                )
            )

    counts = Counter(v.severity for v in vulns)
    return VulnerabilityReport(
        target=target or as_str(data.get("ArtifactName")),
        scan_type=scan_type,
        vulnerabilities=tuple(vulns),
        total=len(vulns),
        summary=SeveritySummary(
            critical=counts["CRITICAL"],
            high=counts["HIGH"],
            medium=counts["MEDIUM"],
            low=counts["LOW"],
            unknown=counts["UNKNOWN"],
        ),
    )


def _optional_str(value: Any) -> str | None:
    text = as_str(value).strip()
    return text or None


# =============================================================================
# Semgrep
# =============================================================================

def _cwe(value: Any) -> tuple[str, ...] | None:
    if isinstance(value, list):
        return tuple(as_str(v) for v in value) or None
    text = as_str(value).strip()
    return (text,) if text else None


def parse_semgrep(text: str, config_name: str = "auto") -> StaticAnalysisReport:
    """Parse ``semgrep --json``."""
    data = decode_json_document(text)
    if not isinstance(data, dict):
        return StaticAnalysisReport(config=config_name)

    findings: list[StaticAnalysisFinding] = []
    for r in _dicts(data.get("results")):
        extra = r.get("extra") if isinstance(r.get("extra"), dict) else {}
        metadata = extra.get("metadata") if isinstance(extra.get("metadata"), dict) else {}
        start = r.get("start") if isinstance(r.get("start"), dict) else {}
        end = r.get("end") if isinstance(r.get("end"), dict) else {}
        start_line = as_int(start.get("line"), 0)
        findings.append(
            StaticAnalysisFinding(
                rule_id=as_str(r.get("check_id")),
                path=as_str(r.get("path")),
                start_line=start_line,
                end_line=as_int(end.get("line"), start_line),
                message=as_str(extra.get("message")),
                severity=as_str(extra.get("severity"), "INFO").upper() or "INFO",
                category=_optional_str(metadata.get("category")),
                cwe=_cwe(metadata.get("cwe")),
            )
        )

    counts = Counter(f.severity for f in findings)
    errors = tuple(
        as_str(e.get("message")) or as_str(e.get("type"))
        for e in _dicts(data.get("errors"))
    )
    return StaticAnalysisReport(
        config=config_name,
        findings=tuple(findings),
        total=len(findings),
        summary=FindingSummary(
            error=counts["ERROR"],
            warning=counts["WARNING"],
            info=counts["INFO"],
        ),
        errors=errors,
    )


# =============================================================================
# Gitleaks
# =============================================================================

def parse_gitleaks(text: str) -> SecretReport:
    """Parse ``gitleaks detect --report-format json``. Secrets are redacted."""
    data = decode_json_document(text)
    if not isinstance(data, list):
        return SecretReport()

    findings: list[SecretFinding] = []
    for f in _dicts(data):
        secret = as_str(f.get("Secret"))
        match = as_str(f.get("Match"))
        if secret and secret in match:
            match = match.replace(secret, redact_secret(secret))
        else:
            match = redact_secret(match) if match else ""
        findings.append(
            SecretFinding(
                rule_id=as_str(f.get("RuleID")),
                description=as_str(f.get("Description")),
                match=match,
                secret=redact_secret(secret),
                file=as_str(f.get("File")),
                start_line=as_int(f.get("StartLine"), 0),
                end_line=as_int(f.get("EndLine"), 0),
                commit=as_str(f.get("Commit")),
                author=as_str(f.get("Author")),
                date=as_str(f.get("Date")),
            )
        )

    return SecretReport(
        findings=tuple(findings),
        total=len(findings),
        rule_counts=dict(Counter(f.rule_id for f in findings)),
    )
