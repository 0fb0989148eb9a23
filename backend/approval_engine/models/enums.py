from __future__ import annotations

import enum


class UserRole(enum.StrEnum):
    """Role held by a user in the identity directory."""

    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"


# Roles allowed to sit in an approval chain.
APPROVER_ROLES = frozenset({UserRole.ADMIN, UserRole.MANAGER})


class ExpenseStatus(enum.StrEnum):
    """State machine for expenses. APPROVED and REJECTED are absorbing."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalStatus(enum.StrEnum):
    """Status of a single ledger step."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Decision(enum.StrEnum):
    """A decision an approver may enter on their step."""

    APPROVED = "approved"
    REJECTED = "rejected"


class RuleType(enum.StrEnum):
    """Shape of a company approval rule."""

    PERCENTAGE = "percentage"
    SPECIFIC_APPROVER = "specific_approver"
    HYBRID = "hybrid"
