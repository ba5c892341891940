"""
tuning_advisor.orchestrator.reducers

Reducers define how LangGraph merges partial state updates returned by nodes.
"""

from __future__ import annotations

from typing import Any


def append_audit(
    left: list[dict[str, Any]] | None, right: list[dict[str, Any]] | None
) -> list[dict[str, Any]]:
    """
    Append-only reducer for audit log entries.

    Nodes return `{"audit_log": [event]}` with only their new entries.
    """

    if not left:
        return list(right or [])
    if not right:
        return list(left)
    return [*left, *right]
