# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from approval_engine.models.base import TimestampMixin, UUIDBase
from approval_engine.models.enums import ApprovalStatus


class ExpenseApproval(UUIDBase, TimestampMixin, table=True):
    """Ledger row recording who was asked at a step and what they decided."""

    __tablename__ = "expense_approval"
    __table_args__ = (
        sa.UniqueConstraint("expense_id", "step_order", name="uq_approval_expense_step"),
        sa.Index("ix_approval_approver_status", "approver_id", "status"),
        sa.CheckConstraint("step_order > 0", name="ck_approval_step_positive"),
    )

    expense_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("expense.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    approver_id: uuid.UUID
    step_order: int
    status: str = Field(
        default=ApprovalStatus.PENDING, max_length=50, sa_column_kwargs={"server_default": "pending"}
    )
    comments: str | None = None
    approved_at: datetime | None = Field(
        default=None,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
