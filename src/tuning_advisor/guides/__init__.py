"""
tuning_advisor.guides

Checks over markdown operations guides and their fenced snippets.
"""

from tuning_advisor.guides.lint import (
    GuideReport,
    GuideSimilarity,
    advise_guide,
    check_snippet_languages,
    compare_guides,
    extract_config_sources,
    find_duplicates,
    lint_guide,
    lint_guides,
)
from tuning_advisor.guides.markdown import Guide, GuideIssue, Section, Snippet, check_structure, parse_guide

__all__ = [
    "Guide",
    "GuideIssue",
    "GuideReport",
    "GuideSimilarity",
    "Section",
    "Snippet",
    "advise_guide",
    "check_snippet_languages",
    "check_structure",
    "compare_guides",
    "extract_config_sources",
    "find_duplicates",
    "lint_guide",
    "lint_guides",
    "parse_guide",
]
