# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import func, or_, select
from sqlmodel import col

from approval_engine.config import get_settings
from approval_engine.exceptions import (
    AlreadyDecidedError,
    ForbiddenError,
    InvalidRoleError,
    NotFoundError,
    InternalError,
    StaleStepError,
    ValidationFailed,
)
from approval_engine.models.base import utc_now
from approval_engine.models.enums import ApprovalStatus, ExpenseStatus
from approval_engine.models.expense import Expense
from approval_engine.models.ledger import ExpenseApproval
from approval_engine.schemas.expense import (
    ApprovalListResponse,
    DecisionResponse,
    ExpenseListResponse,
    ExpenseResponse,
    PendingApprovalItem,
    PendingApprovalListResponse,
)
from approval_engine.services import ledger
from approval_engine.services.directory import get_directory, require_company, require_user
from approval_engine.services.resolver import Outcome, StepOutcome, evaluate, resolve_chain
from approval_engine.services.rule import get_active_rule
from approval_engine.services.workflow import get_workflow_approvers

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from approval_engine.schemas.auth import AuthContext
    from approval_engine.schemas.expense import CreateExpenseRequest, DecisionRequest
    from approval_engine.services.resolver import Resolution

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_expense_response(expense: Expense) -> ExpenseResponse:
    """Map an expense model to its response schema."""
    return ExpenseResponse(
        id=expense.id,
        company_id=expense.company_id,
        employee_id=expense.employee_id,
        amount=expense.amount,
        currency=expense.currency,
        converted_amount=expense.converted_amount,
        category=expense.category,
        description=expense.description,
        expense_date=expense.expense_date,
        receipt_url=expense.receipt_url,
        status=ExpenseStatus(expense.status),
        current_approver_id=expense.current_approver_id,
        current_approval_step=expense.current_approval_step,
        approval_workflow_id=expense.approval_workflow_id,
        approval_chain=[uuid.UUID(a) for a in expense.approval_chain_json or []],
        decided_at=expense.decided_at,
        created_at=expense.created_at,
    )


async def _get_expense_or_404(
    session: AsyncSession,
    company_id: uuid.UUID,
    expense_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> Expense:
    """Fetch an expense scoped to company, optionally locking the row."""
    query = select(Expense).where(
        col(Expense.id) == expense_id,
        col(Expense.company_id) == company_id,
    )
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    expense = result.scalar_one_or_none()
    if expense is None:
        raise NotFoundError("Expense not found")
    return expense


async def _require_acting_approver(auth: AuthContext) -> None:
    """The caller must currently be an approver in this company."""
    actor = await get_directory().get_user(auth.user_id)
    if actor is None or actor.company_id != auth.company_id:
        raise ForbiddenError("Approver is not a member of this company")
    if not actor.can_approve:
        raise ForbiddenError("Approver no longer holds an approving role")


async def _apply_resolution(
    session: AsyncSession,
    expense: Expense,
    resolution: Resolution,
) -> None:
    """Move the expense pointer per the resolution. Does not commit."""
    if resolution.outcome == Outcome.CONTINUE:
        if resolution.next_approver_id is None:
            raise InternalError(f"Resolution for expense {expense.id} continues without a next approver")
        next_step = expense.current_approval_step + 1
        await ledger.append_step(session, expense.id, resolution.next_approver_id, next_step)
        expense.current_approval_step = next_step
        expense.current_approver_id = resolution.next_approver_id
        expense.approval_chain_json = [str(a) for a in resolution.chain]
        logger.info(
            "Expense %s advanced to step %d (%s): approver=%s",
            expense.id,
            next_step,
            resolution.reason,
            resolution.next_approver_id,
        )
        return

    expense.status = resolution.outcome.value
    expense.current_approver_id = None
    expense.decided_at = utc_now()
    logger.info(
        "Expense %s %s at step %d (%s)",
        expense.id,
        expense.status,
        expense.current_approval_step,
        resolution.reason,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def create_expense(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateExpenseRequest,
) -> ExpenseResponse:
    """Create an expense and place it on the first step of its approval chain.

    Flow:
    1. Verify company and employee in the directory.
    2. Only the employee or an admin may submit.
    3. Read the active rule and applicable workflow.
    4. Resolve and validate the chain.
    5. Insert the expense (pending, step 0).
    6. With a chain: append the step-1 ledger row and point the expense at it.
       Without one: apply the configured no-chain policy.
    7. Commit once.
    """
    await require_company(auth.company_id)
    employee = await require_user(payload.employee_id, auth.company_id, label="Employee")
    if auth.user_id != employee.id and not auth.is_admin:
        raise ForbiddenError("Not authorized to submit expenses for this employee")

    rule = await get_active_rule(session, auth.company_id)
    workflow_id, workflow_approvers = await get_workflow_approvers(session, auth.company_id, payload.workflow_id)
    if payload.workflow_id is not None and rule is None:
        raise ValidationFailed("A workflow can only be named while an approval rule is active")
    chain = await resolve_chain(employee, rule, workflow_approvers)

    expense = Expense(
        company_id=auth.company_id,
        employee_id=employee.id,
        amount=payload.amount,
        currency=payload.currency,
        converted_amount=payload.converted_amount,
        category=payload.category,
        description=payload.description,
        expense_date=payload.expense_date,
        receipt_url=payload.receipt_url,
        status=ExpenseStatus.PENDING.value,
        current_approval_step=0,
        approval_workflow_id=workflow_id if rule is not None else None,
        approval_chain_json=[str(a) for a in chain],
    )
    session.add(expense)
    await session.flush()

    if chain:
        await ledger.append_step(session, expense.id, chain[0], 1)
        expense.current_approval_step = 1
        expense.current_approver_id = chain[0]
        logger.info("Expense %s created with %d-step chain; step 1 approver=%s", expense.id, len(chain), chain[0])
    elif get_settings().no_chain_policy == "auto_approve":
        expense.status = ExpenseStatus.APPROVED.value
        expense.decided_at = utc_now()
        logger.info("Expense %s has no approval chain; auto-approved by policy", expense.id)
    else:
        logger.info("Expense %s has no approval chain; left pending at step 0", expense.id)

    await session.commit()
    await session.refresh(expense)
    return _build_expense_response(expense)


async def decide(
    session: AsyncSession,
    auth: AuthContext,
    expense_id: uuid.UUID,
    payload: DecisionRequest,
) -> DecisionResponse:
    """Enter the caller's decision on the expense's current step.

    The expense row is locked for the whole read-validate-write so decisions
    on one expense are serialized. The ledger write and the resulting
    transition commit together.
    """
    expense = await _get_expense_or_404(session, auth.company_id, expense_id, for_update=True)

    if expense.status != ExpenseStatus.PENDING.value:
        logger.warning("Decision on finalized expense %s (%s) by %s", expense.id, expense.status, auth.user_id)
        raise AlreadyDecidedError(f"Expense has already been {expense.status}")
    current_step = expense.current_approval_step
    if current_step == 0:
        raise NotFoundError("Expense has no pending approval step")
    if payload.step_order is not None:
        if payload.step_order < current_step:
            logger.warning(
                "Stale decision on expense %s: step %d, current %d", expense.id, payload.step_order, current_step
            )
            raise StaleStepError(f"Step {payload.step_order} is stale; expense is at step {current_step}")
        if payload.step_order > current_step:
            raise NotFoundError(f"No approval step {payload.step_order} for this expense")

    await _require_acting_approver(auth)

    entry = await ledger.record_decision(
        session,
        expense.id,
        auth.user_id,
        current_step,
        payload.decision,
        payload.comments,
    )

    rule = await get_active_rule(session, expense.company_id)
    entries = await ledger.list_entries(session, expense.id)
    resolution = evaluate(
        rule,
        [uuid.UUID(a) for a in expense.approval_chain_json or []],
        [StepOutcome(e.approver_id, ApprovalStatus(e.status)) for e in entries],
    )
    await _apply_resolution(session, expense, resolution)

    await session.commit()
    await session.refresh(expense)
    await session.refresh(entry)
    return DecisionResponse(
        expense=_build_expense_response(expense),
        approval=ledger.build_approval_response(entry),
    )


async def get_expense(session: AsyncSession, company_id: uuid.UUID, expense_id: uuid.UUID) -> ExpenseResponse:
    """Get a single expense by ID."""
    return _build_expense_response(await _get_expense_or_404(session, company_id, expense_id))


async def list_expense_approvals(
    session: AsyncSession,
    company_id: uuid.UUID,
    expense_id: uuid.UUID,
) -> ApprovalListResponse:
    """Ledger history of an expense in step order."""
    expense = await _get_expense_or_404(session, company_id, expense_id)
    entries = await ledger.list_entries(session, expense.id)
    return ApprovalListResponse(
        items=[ledger.build_approval_response(e) for e in entries],
        total=len(entries),
    )


async def list_expenses(
    session: AsyncSession,
    company_id: uuid.UUID,
    status_filter: ExpenseStatus | None = None,
    employee_id: uuid.UUID | None = None,
    category: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    search: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> ExpenseListResponse:
    """List expenses with optional filters, ordered by created_at DESC."""
    filters = [col(Expense.company_id) == company_id]
    if status_filter is not None:
        filters.append(col(Expense.status) == status_filter.value)
    if employee_id is not None:
        filters.append(col(Expense.employee_id) == employee_id)
    if category is not None:
        filters.append(col(Expense.category) == category)
    if date_from is not None:
        filters.append(col(Expense.expense_date) >= date_from)
    if date_to is not None:
        filters.append(col(Expense.expense_date) <= date_to)
    if search:
        pattern = f"%{search}%"
        filters.append(or_(col(Expense.description).ilike(pattern), col(Expense.category).ilike(pattern)))

    count_result = await session.execute(select(func.count()).select_from(Expense).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(Expense).where(*filters).order_by(col(Expense.created_at).desc()).offset(offset).limit(limit)
    )
    return ExpenseListResponse(
        items=[_build_expense_response(e) for e in result.scalars().all()],
        total=total,
    )


async def list_pending_for_approver(
    session: AsyncSession,
    auth: AuthContext,
    approver_id: uuid.UUID,
    category: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> PendingApprovalListResponse:
    """Pending steps assigned to an approver, newest expense first."""
    approver = await require_user(approver_id, auth.company_id, label="Approver")
    if not approver.can_approve:
        raise InvalidRoleError("User does not have approval permissions")
    if auth.user_id != approver.id and not auth.is_admin:
        raise ForbiddenError("Not authorized to view this approver's queue")

    filters = [
        col(ExpenseApproval.approver_id) == approver.id,
        col(ExpenseApproval.status) == ApprovalStatus.PENDING.value,
        col(Expense.company_id) == auth.company_id,
        col(Expense.status) == ExpenseStatus.PENDING.value,
    ]
    if category:
        filters.append(col(Expense.category).ilike(f"%{category}%"))

    joined = select(ExpenseApproval, Expense).join(Expense, col(ExpenseApproval.expense_id) == col(Expense.id))

    count_result = await session.execute(
        select(func.count())
        .select_from(ExpenseApproval)
        .join(Expense, col(ExpenseApproval.expense_id) == col(Expense.id))
        .where(*filters)
    )
    total = count_result.scalar_one()

    result = await session.execute(
        joined.where(*filters).order_by(col(Expense.created_at).desc()).offset(offset).limit(limit)
    )
    items = [
        PendingApprovalItem(
            approval=ledger.build_approval_response(entry),
            expense=_build_expense_response(expense),
        )
        for entry, expense in result.all()
    ]
    return PendingApprovalListResponse(items=items, total=total)


async def delete_expense(session: AsyncSession, auth: AuthContext, expense_id: uuid.UUID) -> None:
    """Delete an expense together with its ledger rows."""
    expense = await _get_expense_or_404(session, auth.company_id, expense_id, for_update=True)
    await ledger.delete_entries(session, expense.id)
    await session.flush()
    await session.delete(expense)
    await session.commit()
    logger.info("Deleted expense %s", expense_id)
