"""Initial approval engine schema.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "approval_rule",
        sa.Column("id", sa.Uuid(), nullable=False),
        _created_at(),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("rule_type", sa.String(length=50), nullable=False),
        sa.Column("percentage_threshold", sa.Integer(), nullable=True),
        sa.Column("specific_approver_id", sa.Uuid(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "(rule_type = 'percentage' AND percentage_threshold IS NOT NULL AND specific_approver_id IS NULL)"
            " OR (rule_type = 'specific_approver' AND percentage_threshold IS NULL"
            " AND specific_approver_id IS NOT NULL)"
            " OR (rule_type = 'hybrid' AND percentage_threshold IS NOT NULL AND specific_approver_id IS NOT NULL)",
            name="ck_approval_rule_shape",
        ),
        sa.CheckConstraint(
            "percentage_threshold IS NULL OR (percentage_threshold >= 1 AND percentage_threshold <= 100)",
            name="ck_approval_rule_threshold_range",
        ),
    )
    op.create_index("ix_approval_rule_company_id", "approval_rule", ["company_id"])
    op.create_index("ix_rule_company_active", "approval_rule", ["company_id", "is_active"])

    op.create_table(
        "approval_workflow",
        sa.Column("id", sa.Uuid(), nullable=False),
        _created_at(),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_approval_workflow_company_id", "approval_workflow", ["company_id"])

    op.create_table(
        "approval_step",
        sa.Column("id", sa.Uuid(), nullable=False),
        _created_at(),
        sa.Column("workflow_id", sa.Uuid(), nullable=False),
        sa.Column("approver_id", sa.Uuid(), nullable=False),
        sa.Column("step_order", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["workflow_id"], ["approval_workflow.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("workflow_id", "step_order", name="uq_step_workflow_order"),
        sa.CheckConstraint("step_order > 0", name="ck_step_order_positive"),
    )
    op.create_index("ix_approval_step_workflow_id", "approval_step", ["workflow_id"])

    op.create_table(
        "expense",
        sa.Column("id", sa.Uuid(), nullable=False),
        _created_at(),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("converted_amount", sa.Float(), nullable=False),
        sa.Column("category", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("expense_date", sa.Date(), nullable=False),
        sa.Column("receipt_url", sa.String(length=2048), nullable=True),
        sa.Column("status", sa.String(length=50), server_default="pending", nullable=False),
        sa.Column("current_approver_id", sa.Uuid(), nullable=True),
        sa.Column("current_approval_step", sa.Integer(), server_default="0", nullable=False),
        sa.Column("approval_workflow_id", sa.Uuid(), nullable=True),
        sa.Column("approval_chain_json", sa.JSON(), nullable=False),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("current_approval_step >= 0", name="ck_expense_step_non_negative"),
    )
    op.create_index("ix_expense_company_id", "expense", ["company_id"])
    op.create_index("ix_expense_employee_id", "expense", ["employee_id"])
    op.create_index("ix_expense_status", "expense", ["status"])
    op.create_index("ix_expense_current_approver_id", "expense", ["current_approver_id"])
    op.create_index("ix_expense_company_status", "expense", ["company_id", "status"])

    op.create_table(
        "expense_approval",
        sa.Column("id", sa.Uuid(), nullable=False),
        _created_at(),
        sa.Column("expense_id", sa.Uuid(), nullable=False),
        sa.Column("approver_id", sa.Uuid(), nullable=False),
        sa.Column("step_order", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=50), server_default="pending", nullable=False),
        sa.Column("comments", sa.String(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["expense_id"], ["expense.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("expense_id", "step_order", name="uq_approval_expense_step"),
        sa.CheckConstraint("step_order > 0", name="ck_approval_step_positive"),
    )
    op.create_index("ix_expense_approval_expense_id", "expense_approval", ["expense_id"])
    op.create_index("ix_approval_approver_status", "expense_approval", ["approver_id", "status"])


def downgrade() -> None:
    op.drop_table("expense_approval")
    op.drop_table("expense")
    op.drop_table("approval_step")
    op.drop_table("approval_workflow")
    op.drop_table("approval_rule")
