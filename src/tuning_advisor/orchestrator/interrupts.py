"""
tuning_advisor.orchestrator.interrupts

Domain-specific exceptions used by the assessment graph.

Responsibilities:
- Signal that a reviewer must sign off before tuned artifacts are rendered.
"""

from __future__ import annotations

from typing import Any


class ReviewRequired(Exception):
    """
    Raised by the gate node when unwaived errors remain and no reviewer decision
    is present. The service persists the payload and exposes a review endpoint.
    """

    def __init__(self, reason: str, payload: dict[str, Any]) -> None:
        super().__init__(reason)
        self.reason = reason
        self.payload = payload


# --- Module Notes -----------------------------------------------------------
# The service layer catches this exception, marks the run AWAITING_REVIEW, and
# `resume` merges the reviewer decision back into state under `review.decision`.
