"""
tuning_advisor.advisory.findings

Result types produced by the advisory engine.

Responsibilities:
- Define severities and individual findings.
- Aggregate findings into a report with a verdict and a stable ordering.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any


class Severity(enum.StrEnum):
    info = "info"
    warning = "warning"
    error = "error"

    @property
    def rank(self) -> int:
        return _RANK[self]


_RANK = {Severity.info: 0, Severity.warning: 1, Severity.error: 2}


class Verdict(enum.StrEnum):
    passed = "PASS"
    warn = "WARN"
    fail = "FAIL"


@dataclass(frozen=True, slots=True)
class Finding:
    rule_id: str
    severity: Severity
    message: str
    keys: tuple[str, ...] = ()
    current: str | None = None
    recommended: str | None = None
    source: str | None = None
    line: int | None = None
    waived: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "severity": self.severity.value,
            "message": self.message,
            "keys": list(self.keys),
            "current": self.current,
            "recommended": self.recommended,
            "source": self.source,
            "line": self.line,
            "waived": self.waived,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Finding:
        return cls(
            rule_id=str(data["rule_id"]),
            severity=Severity(data["severity"]),
            message=str(data["message"]),
            keys=tuple(data.get("keys", ())),
            current=data.get("current"),
            recommended=data.get("recommended"),
            source=data.get("source"),
            line=data.get("line"),
            waived=bool(data.get("waived", False)),
        )


@dataclass(slots=True)
class AdvisoryReport:
    findings: list[Finding] = field(default_factory=list)
    recommendations: dict[str, dict[str, str]] = field(default_factory=dict)
    environment: str = "prod"
    profile: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.findings = sort_findings(self.findings)

    @property
    def active(self) -> list[Finding]:
        return [f for f in self.findings if not f.waived]

    @property
    def errors(self) -> list[Finding]:
        return [f for f in self.active if f.severity == Severity.error]

    @property
    def warnings(self) -> list[Finding]:
        return [f for f in self.active if f.severity == Severity.warning]

    @property
    def verdict(self) -> Verdict:
        if self.errors:
            return Verdict.fail
        if self.warnings:
            return Verdict.warn
        return Verdict.passed

    def summary(self) -> dict[str, int]:
        counts = {s.value: 0 for s in Severity}
        for f in self.active:
            counts[f.severity.value] += 1
        counts["waived"] = sum(1 for f in self.findings if f.waived)
        return counts

    def waive(self, rule_ids: set[str] | frozenset[str]) -> AdvisoryReport:
        return AdvisoryReport(
            findings=[replace(f, waived=True) if f.rule_id in rule_ids else f for f in self.findings],
            recommendations=self.recommendations,
            environment=self.environment,
            profile=self.profile,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "verdict": self.verdict.value,
            "environment": self.environment,
            "profile": self.profile,
            "summary": self.summary(),
            "findings": [f.to_dict() for f in self.findings],
            "recommendations": self.recommendations,
        }


def sort_findings(findings: list[Finding]) -> list[Finding]:
    # Most severe first; rule id then line keeps output deterministic.
    return sorted(findings, key=lambda f: (-f.severity.rank, f.rule_id, f.line or 0))
