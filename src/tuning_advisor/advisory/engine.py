"""
tuning_advisor.advisory.engine

Evaluation entry point for the advisory engine.

Responsibilities:
- Load configuration sources and run every applicable rule.
- Convert unparseable values into findings instead of aborting the run.
- Attach tuned recommendations for the hardware profile.
"""

from __future__ import annotations

from collections.abc import Iterable

from tuning_advisor.advisory.findings import AdvisoryReport, Finding, Severity
from tuning_advisor.advisory.hardware import HardwareProfile
from tuning_advisor.advisory.recommend import recommend
from tuning_advisor.advisory.rules import RuleContext, catalog
from tuning_advisor.advisory.sources import ConfigSet, ConfigSource, load_sources
from tuning_advisor.observability.logging import get_logger

log = get_logger(__name__)

INVALID_VALUE_RULE = "config.invalid-value"


def evaluate(
    sources: Iterable[ConfigSource],
    profile: HardwareProfile,
    *,
    environment: str = "prod",
    profile_name: str | None = None,
    disabled_rules: Iterable[str] = (),
) -> AdvisoryReport:
    # ConfigParseError propagates: a file that cannot be read cannot be advised on.
    config = load_sources(sources, profile_name)
    return evaluate_config(
        config, profile, environment=environment, disabled_rules=disabled_rules
    )


def evaluate_config(
    config: ConfigSet,
    profile: HardwareProfile,
    *,
    environment: str = "prod",
    disabled_rules: Iterable[str] = (),
) -> AdvisoryReport:
    disabled = frozenset(disabled_rules)
    ctx = RuleContext(config=config, profile=profile, environment=environment)
    findings: list[Finding] = []
    for r in catalog():
        if r.id in disabled or not r.applies_to(environment):
            continue
        try:
            findings.extend(r.check(ctx))
        except ValueError as e:
            findings.append(
                Finding(
                    rule_id=INVALID_VALUE_RULE,
                    severity=Severity.error,
                    message=f"{r.id}: {e}",
                )
            )

    report = AdvisoryReport(
        findings=findings,
        recommendations=recommend(profile).grouped(),
        environment=environment,
        profile=profile.to_dict(),
    )
    log.info(
        "advisory_evaluated",
        environment=environment,
        keys=len(config),
        verdict=report.verdict.value,
        **report.summary(),
    )
    return report


def waive(report: AdvisoryReport, rule_ids: Iterable[str]) -> AdvisoryReport:
    return report.waive(frozenset(rule_ids))


# --- Module Notes -----------------------------------------------------------
# The orchestrator calls `evaluate_config` per run; the API and CLI call `evaluate`
# directly for stateless checks.
