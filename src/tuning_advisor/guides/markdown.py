"""
tuning_advisor.guides.markdown

Minimal markdown reader for operations guides.

Responsibilities:
- Split a guide into ATX headings and fenced snippets (``` and ~~~).
- Report structural problems: unclosed fences, skipped heading levels, empty
  snippets, duplicate headings and a missing document title.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from tuning_advisor.advisory.findings import Severity
from tuning_advisor.guides.languages import normalize_language

_FENCE_OPEN_RE = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})\s*(?P<info>.*)$")
_HEADING_RE = re.compile(r"^ {0,3}(?P<hashes>#{1,6})(?:\s+(?P<title>.*?))?\s*#*\s*$")


@dataclass(frozen=True, slots=True)
class Section:
    level: int
    title: str
    line: int


@dataclass(frozen=True, slots=True)
class Snippet:
    language: str
    content: str
    line: int
    end_line: int
    closed: bool = True
    # The tag as written, before alias normalisation.
    declared: str = ""


@dataclass(frozen=True, slots=True)
class GuideIssue:
    code: str
    message: str
    line: int | None = None
    severity: Severity = Severity.warning

    def to_dict(self) -> dict[str, object]:
        return {
            "code": self.code,
            "message": self.message,
            "line": self.line,
            "severity": self.severity.value,
        }


@dataclass(slots=True)
class Guide:
    path: str
    lines: list[str] = field(default_factory=list)
    sections: list[Section] = field(default_factory=list)
    snippets: list[Snippet] = field(default_factory=list)


def parse_guide(text: str, path: str = "<guide>") -> Guide:
    lines = text.splitlines()
    guide = Guide(path=path, lines=lines)

    start = _skip_front_matter(lines)
    fence: str | None = None
    indent = 0
    info = ""
    opened_at = 0
    body: list[str] = []

    for lineno, line in enumerate(lines[start:], start=start + 1):
        if fence is not None:
            stripped = line.strip()
            # A fence closes only on the same character, at least as long as the opener.
            if (
                len(line) - len(line.lstrip(" ")) <= 3
                and stripped
                and set(stripped) == {fence[0]}
                and len(stripped) >= len(fence)
            ):
                guide.snippets.append(_snippet(info, body, opened_at, lineno, closed=True))
                fence, body = None, []
                continue
            body.append(line[min(indent, len(line) - len(line.lstrip(" "))) :])
            continue

        m = _FENCE_OPEN_RE.match(line)
        if m and not (m.group("fence")[0] == "`" and "`" in m.group("info")):
            fence = m.group("fence")
            indent = len(m.group("indent"))
            info = m.group("info").strip()
            opened_at = lineno
            continue

        h = _HEADING_RE.match(line)
        if h:
            guide.sections.append(
                Section(level=len(h.group("hashes")), title=(h.group("title") or "").strip(), line=lineno)
            )

    if fence is not None:
        guide.snippets.append(_snippet(info, body, opened_at, len(lines), closed=False))
    return guide


def _skip_front_matter(lines: list[str]) -> int:
    if not lines or lines[0].strip() != "---":
        return 0
    for idx in range(1, len(lines)):
        if lines[idx].strip() in ("---", "..."):
            return idx + 1
    return 0


def _snippet(info: str, body: list[str], start: int, end: int, *, closed: bool) -> Snippet:
    declared = info.split()[0] if info else ""
    # `{.yaml}` / `{yaml}` attribute syntax shows up in pandoc-flavoured guides.
    declared = declared.strip("{}").lstrip(".")
    return Snippet(
        language=normalize_language(declared),
        content="\n".join(body),
        line=start,
        end_line=end,
        closed=closed,
        declared=declared,
    )


def check_structure(guide: Guide) -> list[GuideIssue]:
    issues: list[GuideIssue] = []

    for snippet in guide.snippets:
        if not snippet.closed:
            issues.append(
                GuideIssue(
                    "unclosed-fence",
                    "code fence is never closed; the rest of the guide renders as code",
                    snippet.line,
                    Severity.error,
                )
            )
        elif not snippet.content.strip():
            issues.append(GuideIssue("empty-snippet", "code fence has no content", snippet.line))

    if not guide.sections:
        issues.append(GuideIssue("missing-title", "guide has no headings"))
        return issues
    if guide.sections[0].level != 1:
        issues.append(
            GuideIssue(
                "missing-title",
                f"first heading is level {guide.sections[0].level}, expected a level-1 title",
                guide.sections[0].line,
            )
        )

    seen: dict[tuple[int, str], int] = {}
    previous = 0
    for section in guide.sections:
        if previous and section.level > previous + 1:
            issues.append(
                GuideIssue(
                    "heading-skip",
                    f"heading jumps from level {previous} to {section.level}: {section.title!r}",
                    section.line,
                )
            )
        previous = section.level

        key = (section.level, section.title.lower())
        if key in seen:
            issues.append(
                GuideIssue(
                    "duplicate-heading",
                    f"heading {section.title!r} repeats line {seen[key]}",
                    section.line,
                    Severity.info,
                )
            )
        else:
            seen[key] = section.line
    return issues
