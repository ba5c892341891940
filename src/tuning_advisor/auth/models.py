"""
tuning_advisor.auth.models

Auth domain models.

Responsibilities:
- Name the roles the advisor understands.
- Define the authenticated identity type (`Principal`) injected into endpoints.
"""

from __future__ import annotations

from dataclasses import dataclass

# Operators submit configurations; reviewers sign off on gated runs.
ROLE_OPERATOR = "operator"
ROLE_REVIEWER = "reviewer"
ROLE_ADMIN = "admin"
KNOWN_ROLES = frozenset({ROLE_OPERATOR, ROLE_REVIEWER, ROLE_ADMIN})


@dataclass(frozen=True, slots=True)
class Principal:
    subject: str
    roles: frozenset[str]

    @property
    def is_admin(self) -> bool:
        return ROLE_ADMIN in self.roles

    def has_roles(self, required: frozenset[str]) -> bool:
        return self.is_admin or required <= self.roles

    def can_see(self, owner: str) -> bool:
        # Assessments belong to the operator who registered them.
        return self.is_admin or owner == self.subject
