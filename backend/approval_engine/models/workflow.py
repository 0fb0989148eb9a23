# ruff: noqa: TC003
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlmodel import Field

from approval_engine.models.base import TimestampMixin, UUIDBase


class ApprovalWorkflow(UUIDBase, TimestampMixin, table=True):
    """Named, reusable ordered list of approvers for a company."""

    __tablename__ = "approval_workflow"

    company_id: uuid.UUID = Field(index=True)
    name: str = Field(max_length=255)
    is_active: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})


class ApprovalStep(UUIDBase, TimestampMixin, table=True):
    """One position in a workflow template."""

    __tablename__ = "approval_step"
    __table_args__ = (
        sa.UniqueConstraint("workflow_id", "step_order", name="uq_step_workflow_order"),
        sa.CheckConstraint("step_order > 0", name="ck_step_order_positive"),
    )

    workflow_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("approval_workflow.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    approver_id: uuid.UUID
    step_order: int
