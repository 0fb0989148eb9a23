# ruff: noqa: TC003
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlmodel import Field

from approval_engine.models.base import TimestampMixin, UUIDBase

# Field presence must match rule_type even if a write bypasses the schemas.
_RULE_SHAPE_SQL = (
    "(rule_type = 'percentage' AND percentage_threshold IS NOT NULL AND specific_approver_id IS NULL)"
    " OR (rule_type = 'specific_approver' AND percentage_threshold IS NULL AND specific_approver_id IS NOT NULL)"
    " OR (rule_type = 'hybrid' AND percentage_threshold IS NOT NULL AND specific_approver_id IS NOT NULL)"
)


class ApprovalRule(UUIDBase, TimestampMixin, table=True):
    """Company-level policy deciding when an approval chain resolves an expense."""

    __tablename__ = "approval_rule"
    __table_args__ = (
        sa.Index("ix_rule_company_active", "company_id", "is_active"),
        sa.CheckConstraint(_RULE_SHAPE_SQL, name="ck_approval_rule_shape"),
        sa.CheckConstraint(
            "percentage_threshold IS NULL OR (percentage_threshold >= 1 AND percentage_threshold <= 100)",
            name="ck_approval_rule_threshold_range",
        ),
    )

    company_id: uuid.UUID = Field(index=True)
    rule_type: str = Field(max_length=50)
    percentage_threshold: int | None = None
    specific_approver_id: uuid.UUID | None = None
    is_active: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})
