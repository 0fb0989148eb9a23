# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from approval_engine.exceptions import AlreadyDecidedError, ConflictError, ForbiddenError, NotFoundError
from approval_engine.models.base import utc_now
from approval_engine.models.enums import ApprovalStatus, Decision
from approval_engine.models.ledger import ExpenseApproval
from approval_engine.schemas.expense import ApprovalResponse

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def build_approval_response(entry: ExpenseApproval) -> ApprovalResponse:
    """Map a ledger entry to its response schema."""
    return ApprovalResponse(
        id=entry.id,
        expense_id=entry.expense_id,
        approver_id=entry.approver_id,
        step_order=entry.step_order,
        status=ApprovalStatus(entry.status),
        comments=entry.comments,
        approved_at=entry.approved_at,
        created_at=entry.created_at,
    )


async def record_decision(
    session: AsyncSession,
    expense_id: uuid.UUID,
    approver_id: uuid.UUID,
    step_order: int,
    decision: Decision,
    comments: str | None = None,
) -> ExpenseApproval:
    """Record the assigned approver's decision on a pending step.

    The row is read FOR UPDATE. Does not commit; the caller commits the
    decision together with the resulting expense transition.
    """
    result = await session.execute(
        select(ExpenseApproval)
        .where(
            col(ExpenseApproval.expense_id) == expense_id,
            col(ExpenseApproval.step_order) == step_order,
        )
        .with_for_update()
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        raise NotFoundError(f"No approval step {step_order} for this expense")
    if entry.approver_id != approver_id:
        logger.warning(
            "Decision on expense=%s step=%d by %s refused: assigned to %s",
            expense_id,
            step_order,
            approver_id,
            entry.approver_id,
        )
        raise ForbiddenError("Only the assigned approver can decide this step")
    if entry.status != ApprovalStatus.PENDING.value:
        raise AlreadyDecidedError(f"Approval step {step_order} has already been decided")

    entry.status = decision.value
    entry.comments = comments
    entry.approved_at = utc_now()
    await session.flush()
    return entry


async def append_step(
    session: AsyncSession,
    expense_id: uuid.UUID,
    approver_id: uuid.UUID,
    step_order: int,
) -> ExpenseApproval:
    """Create the pending ledger row for the next step. Does not commit."""
    existing = await session.execute(
        select(ExpenseApproval.id).where(
            col(ExpenseApproval.expense_id) == expense_id,
            col(ExpenseApproval.step_order) == step_order,
        )
    )
    if existing.first() is not None:
        raise ConflictError(f"Approval step {step_order} already exists for this expense")

    entry = ExpenseApproval(expense_id=expense_id, approver_id=approver_id, step_order=step_order)
    session.add(entry)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise ConflictError(f"Approval step {step_order} already exists for this expense") from None
    return entry


async def list_entries(session: AsyncSession, expense_id: uuid.UUID) -> list[ExpenseApproval]:
    """All ledger rows of an expense in step order."""
    result = await session.execute(
        select(ExpenseApproval)
        .where(col(ExpenseApproval.expense_id) == expense_id)
        .order_by(col(ExpenseApproval.step_order))
    )
    return list(result.scalars().all())


async def delete_entries(session: AsyncSession, expense_id: uuid.UUID) -> None:
    """Remove an expense's ledger rows ahead of deleting the expense. Does not commit."""
    for entry in await list_entries(session, expense_id):
        await session.delete(entry)
