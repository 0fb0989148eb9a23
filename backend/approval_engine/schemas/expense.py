# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from approval_engine.models.enums import ApprovalStatus, Decision, ExpenseStatus

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class CreateExpenseRequest(BaseModel):
    """Request body for submitting an expense.

    ``converted_amount`` is supplied by the currency conversion collaborator
    and is taken as-is in the company currency.
    """

    employee_id: uuid.UUID
    amount: float = Field(gt=0)
    currency: str = Field(pattern=r"^[A-Za-z]{3}$")
    converted_amount: float = Field(gt=0)
    category: str = Field(max_length=255)
    description: str | None = None
    expense_date: date
    receipt_url: str | None = Field(default=None, max_length=2048)
    workflow_id: uuid.UUID | None = None

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()

    @field_validator("category")
    @classmethod
    def _strip_category(cls, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "Category is required"
            raise ValueError(msg)
        return value

    @field_validator("description")
    @classmethod
    def _strip_description(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class DecisionRequest(BaseModel):
    """Request body for an approver's decision on their step.

    ``step_order`` is the step the caller believes is current; when given it
    is checked against the expense so late decisions fail with STALE_STEP.
    """

    decision: Decision
    comments: str | None = Field(default=None, max_length=2000)
    step_order: int | None = Field(default=None, gt=0)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ExpenseResponse(BaseModel):
    """Response schema for a single expense."""

    id: uuid.UUID
    company_id: uuid.UUID
    employee_id: uuid.UUID
    amount: float
    currency: str
    converted_amount: float
    category: str
    description: str | None
    expense_date: date
    receipt_url: str | None
    status: ExpenseStatus
    current_approver_id: uuid.UUID | None
    current_approval_step: int
    approval_workflow_id: uuid.UUID | None
    approval_chain: list[uuid.UUID]
    decided_at: datetime | None
    created_at: datetime


class ExpenseListResponse(BaseModel):
    """Paginated list of expenses."""

    items: list[ExpenseResponse]
    total: int


class ApprovalResponse(BaseModel):
    """Response schema for a ledger entry."""

    id: uuid.UUID
    expense_id: uuid.UUID
    approver_id: uuid.UUID
    step_order: int
    status: ApprovalStatus
    comments: str | None
    approved_at: datetime | None
    created_at: datetime


class ApprovalListResponse(BaseModel):
    """Ledger history of one expense, ascending by step."""

    items: list[ApprovalResponse]
    total: int


class DecisionResponse(BaseModel):
    """Outcome of a decision: the updated expense and the decided ledger entry."""

    expense: ExpenseResponse
    approval: ApprovalResponse


class PendingApprovalItem(BaseModel):
    """A pending step awaiting the approver, with its expense."""

    approval: ApprovalResponse
    expense: ExpenseResponse


class PendingApprovalListResponse(BaseModel):
    """Paginated pending steps for an approver."""

    items: list[PendingApprovalItem]
    total: int
