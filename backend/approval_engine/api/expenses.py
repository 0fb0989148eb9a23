# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query, status

from approval_engine.api.deps import AdminDep, AuthDep, validate_company_scope
from approval_engine.db import SessionDep
from approval_engine.models.enums import ExpenseStatus
from approval_engine.schemas.expense import (
    ApprovalListResponse,
    CreateExpenseRequest,
    DecisionRequest,
    DecisionResponse,
    ExpenseListResponse,
    ExpenseResponse,
    PendingApprovalListResponse,
)
from approval_engine.services import expense as expense_service

expenses_router = APIRouter(
    prefix="/companies/{company_id}/expenses",
    tags=["expenses"],
    dependencies=[Depends(validate_company_scope)],
)

approvers_router = APIRouter(
    prefix="/companies/{company_id}/approvers",
    tags=["approvals"],
    dependencies=[Depends(validate_company_scope)],
)


@expenses_router.post("", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def create_expense(
    payload: CreateExpenseRequest,
    session: SessionDep,
    auth: AuthDep,
) -> ExpenseResponse:
    """Submit an expense and route it to its first approver."""
    return await expense_service.create_expense(session, auth, payload)


@expenses_router.get("", response_model=ExpenseListResponse)
async def list_expenses(
    session: SessionDep,
    auth: AuthDep,
    status_filter: ExpenseStatus | None = Query(default=None, alias="status"),
    employee_id: uuid.UUID | None = Query(default=None),
    category: str | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    search: str | None = Query(default=None, max_length=255),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> ExpenseListResponse:
    """List expenses with optional filters."""
    return await expense_service.list_expenses(
        session,
        auth.company_id,
        status_filter,
        employee_id,
        category,
        date_from,
        date_to,
        search,
        offset,
        limit,
    )


@expenses_router.get("/{expense_id}", response_model=ExpenseResponse)
async def get_expense(
    expense_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> ExpenseResponse:
    """Get a single expense."""
    return await expense_service.get_expense(session, auth.company_id, expense_id)


@expenses_router.get("/{expense_id}/approvals", response_model=ApprovalListResponse)
async def list_expense_approvals(
    expense_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> ApprovalListResponse:
    """Ledger history of an expense."""
    return await expense_service.list_expense_approvals(session, auth.company_id, expense_id)


@expenses_router.post("/{expense_id}/decision", response_model=DecisionResponse)
async def decide(
    expense_id: uuid.UUID,
    payload: DecisionRequest,
    session: SessionDep,
    auth: AuthDep,
) -> DecisionResponse:
    """Approve or reject the expense's current step as its assigned approver."""
    return await expense_service.decide(session, auth, expense_id, payload)


@expenses_router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_expense(
    expense_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> None:
    """Delete an expense and its approval history (admin only)."""
    await expense_service.delete_expense(session, auth, expense_id)


@approvers_router.get("/{approver_id}/pending", response_model=PendingApprovalListResponse)
async def list_pending_for_approver(
    approver_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    category: str | None = Query(default=None, max_length=255),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> PendingApprovalListResponse:
    """Pending steps awaiting an approver, newest expense first."""
    return await expense_service.list_pending_for_approver(session, auth, approver_id, category, offset, limit)
