# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from approval_engine.models.base import TimestampMixin, UUIDBase
from approval_engine.models.enums import ExpenseStatus


class Expense(UUIDBase, TimestampMixin, table=True):
    """A financial claim and its approval state machine pointer."""

    __tablename__ = "expense"
    __table_args__ = (
        sa.Index("ix_expense_company_status", "company_id", "status"),
        sa.CheckConstraint("current_approval_step >= 0", name="ck_expense_step_non_negative"),
    )

    company_id: uuid.UUID = Field(index=True)
    employee_id: uuid.UUID = Field(index=True)
    amount: float
    currency: str = Field(max_length=3)
    converted_amount: float
    category: str = Field(max_length=255)
    description: str | None = None
    expense_date: date
    receipt_url: str | None = Field(default=None, max_length=2048)
    status: str = Field(
        default=ExpenseStatus.PENDING, max_length=50, index=True, sa_column_kwargs={"server_default": "pending"}
    )
    current_approver_id: uuid.UUID | None = Field(default=None, index=True)
    current_approval_step: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    approval_workflow_id: uuid.UUID | None = None
    # Ordered approver ids resolved at creation; only ever grows by one step.
    approval_chain_json: list[str] = Field(default_factory=list, sa_type=sa.JSON)
    decided_at: datetime | None = Field(
        default=None,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
