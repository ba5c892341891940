"""
tuning_advisor.advisory.report

Human-readable rendering of an advisory report.

Responsibilities:
- Render a markdown summary: verdict, hardware profile, findings, recommendations.
"""

from __future__ import annotations

from tuning_advisor.advisory.findings import AdvisoryReport, Finding

_SECTION_TITLES = {"spring": "Spring Boot", "jvm": "JVM", "postgres": "PostgreSQL"}


def render_markdown(
    report: AdvisoryReport,
    *,
    title: str = "Tuning assessment",
    rationale: dict[str, str] | None = None,
) -> str:
    rationale = rationale or {}
    out: list[str] = [f"# {title}", ""]
    out.append(f"**Verdict:** {report.verdict.value}  ")
    out.append(f"**Environment:** {report.environment}")
    out.append("")

    if report.profile:
        out += ["## Hardware profile", "", "| Setting | Value |", "| --- | --- |"]
        out += [f"| {k} | {v} |" for k, v in report.profile.items()]
        out.append("")

    counts = report.summary()
    out += [
        "## Findings",
        "",
        f"{counts['error']} error(s), {counts['warning']} warning(s), "
        f"{counts['info']} info, {counts['waived']} waived.",
        "",
    ]
    if report.findings:
        out += ["| Severity | Rule | Location | Message |", "| --- | --- | --- | --- |"]
        out += [_finding_row(f) for f in report.findings]
        out.append("")

    for group, values in report.recommendations.items():
        if not values:
            continue
        out += [
            f"## Recommended {_SECTION_TITLES.get(group, group)} settings",
            "",
            "| Key | Value | Why |",
            "| --- | --- | --- |",
        ]
        out += [f"| `{k}` | `{v}` | {_cell(rationale.get(k, ''))} |" for k, v in values.items()]
        out.append("")
    return "\n".join(out)


def _finding_row(f: Finding) -> str:
    severity = f"~~{f.severity.value}~~ (waived)" if f.waived else f.severity.value
    location = f"{f.source}:{f.line}" if f.source and f.line else (f.source or "")
    message = f.message
    if f.recommended is not None:
        message += f" (recommended: `{f.recommended}`)"
    return f"| {severity} | `{f.rule_id}` | {_cell(location)} | {_cell(message)} |"


def _cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")
