"""
tuning_advisor.guides.lint

Guide-level checks built on the markdown reader and the advisory engine.

Responsibilities:
- Verify snippet language tags against snippet contents.
- Combine structural and language checks into a per-guide report.
- Detect near-duplicate guides.
- Turn a guide's configuration snippets into advisory-engine sources.
"""

from __future__ import annotations

import difflib
import json
import re
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from itertools import combinations
from typing import Any

import yaml

from tuning_advisor.advisory.engine import evaluate
from tuning_advisor.advisory.findings import AdvisoryReport, Severity
from tuning_advisor.advisory.hardware import HardwareProfile
from tuning_advisor.advisory.sources import (
    ConfigFormat,
    ConfigParseError,
    ConfigSource,
    parse_properties,
    parse_source,
)
from tuning_advisor.guides.languages import (
    KNOWN_LANGUAGES,
    detect_language,
    is_compatible,
)
from tuning_advisor.guides.markdown import Guide, GuideIssue, Snippet, check_structure, parse_guide

_JVM_FLAG_RE = re.compile(r"(?<![\w-])-(Xm[sx]\d|XX:)")
_ALTER_SYSTEM_RE = re.compile(
    r"ALTER\s+SYSTEM\s+SET\s+(?P<name>[a-z_][a-z0-9_]*)\s*(?:=|\bTO\b)\s*(?P<value>[^;]+);?",
    re.IGNORECASE,
)
_PG_PARAM_RE = re.compile(r"^\s*[a-z_][a-z0-9_]*\s*=", re.MULTILINE)


@dataclass(slots=True)
class GuideReport:
    path: str
    issues: list[GuideIssue] = field(default_factory=list)
    snippet_count: int = 0
    section_count: int = 0
    languages: dict[str, int] = field(default_factory=dict)
    advisory: AdvisoryReport | None = None

    @property
    def ok(self) -> bool:
        return not any(i.severity == Severity.error for i in self.issues)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "ok": self.ok,
            "snippet_count": self.snippet_count,
            "section_count": self.section_count,
            "languages": self.languages,
            "issues": [i.to_dict() for i in self.issues],
            "advisory": self.advisory.to_dict() if self.advisory is not None else None,
        }


@dataclass(frozen=True, slots=True)
class GuideSimilarity:
    path_a: str
    path_b: str
    ratio: float
    shared_snippets: int
    only_in_a: int
    only_in_b: int

    def is_duplicate(self, threshold: float) -> bool:
        return self.ratio >= threshold

    def to_dict(self) -> dict[str, Any]:
        return {
            "path_a": self.path_a,
            "path_b": self.path_b,
            "ratio": round(self.ratio, 4),
            "shared_snippets": self.shared_snippets,
            "only_in_a": self.only_in_a,
            "only_in_b": self.only_in_b,
        }


def check_snippet_languages(guide: Guide) -> list[GuideIssue]:
    issues: list[GuideIssue] = []
    for snippet in guide.snippets:
        if not snippet.content.strip():
            continue
        detected = detect_language(snippet.content)
        if not snippet.language:
            hint = f" (looks like {detected})" if detected else ""
            issues.append(
                GuideIssue("missing-language", f"code fence has no language tag{hint}", snippet.line)
            )
            continue
        if snippet.language not in KNOWN_LANGUAGES:
            issues.append(
                GuideIssue(
                    "unknown-language",
                    f"unrecognised language tag {snippet.declared!r}",
                    snippet.line,
                    Severity.info,
                )
            )
            continue
        if detected and not is_compatible(snippet.language, detected):
            issues.append(
                GuideIssue(
                    "language-mismatch",
                    f"fence is tagged {snippet.declared!r} but the content looks like {detected}",
                    snippet.line,
                    Severity.error,
                )
            )
            continue
        problem = _syntax_problem(snippet.language, snippet.content)
        if problem:
            issues.append(
                GuideIssue(
                    "invalid-snippet",
                    f"{snippet.language} snippet does not parse: {problem}",
                    snippet.line,
                    Severity.error,
                )
            )
    return issues


def _syntax_problem(language: str, content: str) -> str | None:
    # Only formats with a strict, cheap parser are checked.
    if language == "json":
        try:
            json.loads(content)
        except ValueError as e:
            return str(e)
    elif language == "yaml":
        try:
            list(yaml.safe_load_all(content))
        except yaml.YAMLError as e:
            return str(getattr(e, "problem", None) or e)
    elif language == "properties":
        try:
            parse_properties(content)
        except ConfigParseError as e:
            return e.message
    return None


def lint_guide(
    text: str,
    path: str = "<guide>",
    *,
    profile: HardwareProfile | None = None,
    environment: str = "prod",
) -> GuideReport:
    guide = parse_guide(text, path)
    issues = check_structure(guide) + check_snippet_languages(guide)
    issues.sort(key=lambda i: (i.line or 0, i.code))
    report = GuideReport(
        path=path,
        issues=issues,
        snippet_count=len(guide.snippets),
        section_count=len(guide.sections),
        languages=dict(Counter(s.language or "<none>" for s in guide.snippets)),
    )
    if profile is not None:
        report.advisory = advise_guide(guide, profile, environment=environment)
    return report


def advise_guide(
    guide: Guide, profile: HardwareProfile, *, environment: str = "prod"
) -> AdvisoryReport:
    return evaluate(extract_config_sources(guide), profile, environment=environment)


def extract_config_sources(guide: Guide) -> list[ConfigSource]:
    """
    Snippets become sources in document order, so a later example overrides an
    earlier one, the same way later property sources win in Spring.
    Snippets that do not parse are skipped; `check_snippet_languages` reports them.
    """

    sources: list[ConfigSource] = []
    for idx, snippet in enumerate(guide.snippets):
        if not snippet.closed or not snippet.content.strip():
            continue
        source = _snippet_source(f"{guide.path}#snippet-{idx + 1}@L{snippet.line}", snippet)
        if source is None:
            continue
        try:
            parse_source(source)
        except ConfigParseError:
            continue
        sources.append(source)
    return sources


def _snippet_source(name: str, snippet: Snippet) -> ConfigSource | None:
    lang, content = snippet.language, snippet.content
    if lang == "properties":
        return ConfigSource(name, content, ConfigFormat.properties)
    if lang == "yaml":
        return ConfigSource(name, content, ConfigFormat.yaml)
    if lang == "conf" and _PG_PARAM_RE.search(content):
        return ConfigSource(name, content, ConfigFormat.postgresql_conf)
    if lang == "sql" and _ALTER_SYSTEM_RE.search(content):
        return ConfigSource(name, _alter_system_to_conf(content), ConfigFormat.postgresql_conf)
    if lang in ("bash", "dockerfile", "text", "") and _JVM_FLAG_RE.search(content):
        return ConfigSource(name, content, ConfigFormat.jvm_options)
    return None



def _alter_system_to_conf(sql: str) -> str:
    return "\n".join(
        f"{m.group('name').lower()} = {m.group('value').strip()}"
        for m in _ALTER_SYSTEM_RE.finditer(sql)
    )


def compare_guides(a: Guide, b: Guide) -> GuideSimilarity:
    matcher = difflib.SequenceMatcher(None, a.lines, b.lines, autojunk=False)
    snippets_a = {_snippet_key(s.content) for s in a.snippets if s.content.strip()}
    snippets_b = {_snippet_key(s.content) for s in b.snippets if s.content.strip()}
    return GuideSimilarity(
        path_a=a.path,
        path_b=b.path,
        ratio=matcher.ratio(),
        shared_snippets=len(snippets_a & snippets_b),
        only_in_a=len(snippets_a - snippets_b),
        only_in_b=len(snippets_b - snippets_a),
    )


def _snippet_key(content: str) -> str:
    return "\n".join(line.strip() for line in content.splitlines() if line.strip())


def find_duplicates(guides: Sequence[Guide], threshold: float = 0.9) -> list[GuideSimilarity]:
    out: list[GuideSimilarity] = []
    for a, b in combinations(guides, 2):
        # real_quick_ratio is an upper bound; skip the full diff when it cannot pass.
        if difflib.SequenceMatcher(None, a.lines, b.lines).real_quick_ratio() < threshold:
            continue
        similarity = compare_guides(a, b)
        if similarity.is_duplicate(threshold):
            out.append(similarity)
    return out


def lint_guides(
    documents: Iterable[tuple[str, str]],
    *,
    duplicate_threshold: float = 0.9,
    profile: HardwareProfile | None = None,
    environment: str = "prod",
) -> tuple[list[GuideReport], list[GuideSimilarity]]:
    docs = list(documents)
    reports = [
        lint_guide(text, path, profile=profile, environment=environment) for path, text in docs
    ]
    duplicates = find_duplicates([parse_guide(text, path) for path, text in docs], duplicate_threshold)
    return reports, duplicates


# --- Module Notes -----------------------------------------------------------
# A mismatch is only reported when `detect_language` is confident; prose-like or
# mixed snippets are never flagged.
