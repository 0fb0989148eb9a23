# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from approval_engine.exceptions import ConflictError, InvalidRoleError, NotFoundError
from approval_engine.models.workflow import ApprovalStep, ApprovalWorkflow
from approval_engine.schemas.workflow import StepResponse, WorkflowListResponse, WorkflowResponse
from approval_engine.services.directory import require_user

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from approval_engine.schemas.auth import AuthContext
    from approval_engine.schemas.workflow import (
        AddStepRequest,
        CreateWorkflowRequest,
        UpdateStepRequest,
        UpdateWorkflowRequest,
    )

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_step_response(step: ApprovalStep) -> StepResponse:
    return StepResponse(
        id=step.id,
        workflow_id=step.workflow_id,
        approver_id=step.approver_id,
        step_order=step.step_order,
        created_at=step.created_at,
    )


def _build_workflow_response(workflow: ApprovalWorkflow, steps: list[ApprovalStep]) -> WorkflowResponse:
    return WorkflowResponse(
        id=workflow.id,
        company_id=workflow.company_id,
        name=workflow.name,
        is_active=workflow.is_active,
        created_at=workflow.created_at,
        steps=[_build_step_response(s) for s in steps],
    )


async def _get_workflow_or_404(
    session: AsyncSession,
    company_id: uuid.UUID,
    workflow_id: uuid.UUID,
) -> ApprovalWorkflow:
    result = await session.execute(
        select(ApprovalWorkflow).where(
            col(ApprovalWorkflow.id) == workflow_id,
            col(ApprovalWorkflow.company_id) == company_id,
        )
    )
    workflow = result.scalar_one_or_none()
    if workflow is None:
        raise NotFoundError("Workflow not found")
    return workflow


async def _get_step_or_404(session: AsyncSession, workflow_id: uuid.UUID, step_id: uuid.UUID) -> ApprovalStep:
    result = await session.execute(
        select(ApprovalStep).where(
            col(ApprovalStep.id) == step_id,
            col(ApprovalStep.workflow_id) == workflow_id,
        )
    )
    step = result.scalar_one_or_none()
    if step is None:
        raise NotFoundError("Approval step not found")
    return step


async def _list_steps(session: AsyncSession, workflow_id: uuid.UUID) -> list[ApprovalStep]:
    result = await session.execute(
        select(ApprovalStep)
        .where(col(ApprovalStep.workflow_id) == workflow_id)
        .order_by(col(ApprovalStep.step_order))
    )
    return list(result.scalars().all())


async def _validate_approver(company_id: uuid.UUID, approver_id: uuid.UUID) -> None:
    approver = await require_user(approver_id, company_id, label="Approver")
    if not approver.can_approve:
        raise InvalidRoleError("Approver must have admin or manager role")


async def _check_step_order_free(
    session: AsyncSession,
    workflow_id: uuid.UUID,
    step_order: int,
    exclude_step_id: uuid.UUID | None = None,
) -> None:
    """Raise CONFLICT if another step of the workflow already holds this order."""
    query = select(ApprovalStep.id).where(
        col(ApprovalStep.workflow_id) == workflow_id,
        col(ApprovalStep.step_order) == step_order,
    )
    if exclude_step_id is not None:
        query = query.where(col(ApprovalStep.id) != exclude_step_id)
    result = await session.execute(query)
    if result.first() is not None:
        raise ConflictError("Step order already exists for this workflow")


async def _flush_step(session: AsyncSession) -> None:
    """Flush a step write, mapping a lost unique-order race to CONFLICT."""
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("Step order already exists for this workflow") from None


# ---------------------------------------------------------------------------
# Rule Store read path used by the chain resolver
# ---------------------------------------------------------------------------


async def get_workflow_approvers(
    session: AsyncSession,
    company_id: uuid.UUID,
    workflow_id: uuid.UUID | None = None,
) -> tuple[uuid.UUID | None, list[uuid.UUID]]:
    """Return ``(workflow_id, ordered approver ids)`` of the workflow that applies.

    A named workflow must belong to the company and be active. Without a
    name, the company's most recently created active workflow applies.
    """
    if workflow_id is not None:
        workflow = await _get_workflow_or_404(session, company_id, workflow_id)
        if not workflow.is_active:
            raise NotFoundError("Workflow not found")
    else:
        result = await session.execute(
            select(ApprovalWorkflow)
            .where(
                col(ApprovalWorkflow.company_id) == company_id,
                col(ApprovalWorkflow.is_active).is_(True),
            )
            .order_by(col(ApprovalWorkflow.created_at).desc(), col(ApprovalWorkflow.id).desc())
            .limit(1)
        )
        workflow = result.scalar_one_or_none()
        if workflow is None:
            return None, []

    steps = await _list_steps(session, workflow.id)
    return workflow.id, [s.approver_id for s in steps]


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------


async def create_workflow(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateWorkflowRequest,
) -> WorkflowResponse:
    """Create an empty workflow."""
    workflow = ApprovalWorkflow(company_id=auth.company_id, name=payload.name, is_active=payload.is_active)
    session.add(workflow)
    await session.commit()
    await session.refresh(workflow)
    logger.info("Created workflow %s (%s) for company %s", workflow.id, workflow.name, workflow.company_id)
    return _build_workflow_response(workflow, [])


async def update_workflow(
    session: AsyncSession,
    auth: AuthContext,
    workflow_id: uuid.UUID,
    payload: UpdateWorkflowRequest,
) -> WorkflowResponse:
    """Rename or (de)activate a workflow."""
    workflow = await _get_workflow_or_404(session, auth.company_id, workflow_id)
    if payload.name is not None:
        workflow.name = payload.name
    if payload.is_active is not None:
        workflow.is_active = payload.is_active
    await session.commit()
    await session.refresh(workflow)
    logger.info("Updated workflow %s: name=%s is_active=%s", workflow.id, workflow.name, workflow.is_active)
    return _build_workflow_response(workflow, await _list_steps(session, workflow.id))


async def delete_workflow(session: AsyncSession, auth: AuthContext, workflow_id: uuid.UUID) -> None:
    """Delete a workflow and its steps.

    Expenses already in flight keep the chain they snapshotted at creation.
    """
    workflow = await _get_workflow_or_404(session, auth.company_id, workflow_id)
    for step in await _list_steps(session, workflow.id):
        await session.delete(step)
    await session.flush()
    await session.delete(workflow)
    await session.commit()
    logger.info("Deleted workflow %s for company %s", workflow_id, auth.company_id)


async def get_workflow(session: AsyncSession, company_id: uuid.UUID, workflow_id: uuid.UUID) -> WorkflowResponse:
    """Get a workflow with its ordered steps."""
    workflow = await _get_workflow_or_404(session, company_id, workflow_id)
    return _build_workflow_response(workflow, await _list_steps(session, workflow.id))


async def list_workflows(
    session: AsyncSession,
    company_id: uuid.UUID,
    is_active: bool | None = None,
    offset: int = 0,
    limit: int = 50,
) -> WorkflowListResponse:
    """List workflows, newest first."""
    filters = [col(ApprovalWorkflow.company_id) == company_id]
    if is_active is not None:
        filters.append(col(ApprovalWorkflow.is_active).is_(is_active))

    count_result = await session.execute(select(func.count()).select_from(ApprovalWorkflow).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(ApprovalWorkflow)
        .where(*filters)
        .order_by(col(ApprovalWorkflow.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    items = [_build_workflow_response(w, await _list_steps(session, w.id)) for w in result.scalars().all()]
    return WorkflowListResponse(items=items, total=total)


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


async def add_step(
    session: AsyncSession,
    auth: AuthContext,
    workflow_id: uuid.UUID,
    payload: AddStepRequest,
) -> StepResponse:
    """Add a step. Without an explicit order it lands after the current last step."""
    workflow = await _get_workflow_or_404(session, auth.company_id, workflow_id)
    await _validate_approver(auth.company_id, payload.approver_id)

    if payload.step_order is None:
        max_result = await session.execute(
            select(func.max(ApprovalStep.step_order)).where(col(ApprovalStep.workflow_id) == workflow.id)
        )
        step_order = (max_result.scalar_one() or 0) + 1
    else:
        step_order = payload.step_order
        await _check_step_order_free(session, workflow.id, step_order)

    step = ApprovalStep(workflow_id=workflow.id, approver_id=payload.approver_id, step_order=step_order)
    session.add(step)
    await _flush_step(session)
    await session.commit()
    await session.refresh(step)
    logger.info("Added step %d (approver %s) to workflow %s", step.step_order, step.approver_id, workflow.id)
    return _build_step_response(step)


async def list_steps(session: AsyncSession, company_id: uuid.UUID, workflow_id: uuid.UUID) -> list[StepResponse]:
    """List a workflow's steps in ascending order."""
    workflow = await _get_workflow_or_404(session, company_id, workflow_id)
    return [_build_step_response(s) for s in await _list_steps(session, workflow.id)]


async def update_step(
    session: AsyncSession,
    auth: AuthContext,
    workflow_id: uuid.UUID,
    step_id: uuid.UUID,
    payload: UpdateStepRequest,
) -> StepResponse:
    """Change a step's approver and/or position."""
    workflow = await _get_workflow_or_404(session, auth.company_id, workflow_id)
    step = await _get_step_or_404(session, workflow.id, step_id)

    if payload.approver_id is not None:
        await _validate_approver(auth.company_id, payload.approver_id)
        step.approver_id = payload.approver_id
    if payload.step_order is not None and payload.step_order != step.step_order:
        await _check_step_order_free(session, workflow.id, payload.step_order, exclude_step_id=step.id)
        step.step_order = payload.step_order

    await _flush_step(session)
    await session.commit()
    await session.refresh(step)
    logger.info(
        "Updated step %s of workflow %s: order=%d approver=%s", step.id, workflow.id, step.step_order, step.approver_id
    )
    return _build_step_response(step)


async def delete_step(
    session: AsyncSession,
    auth: AuthContext,
    workflow_id: uuid.UUID,
    step_id: uuid.UUID,
) -> None:
    """Remove a step. Remaining orders are left as-is; gaps are allowed."""
    workflow = await _get_workflow_or_404(session, auth.company_id, workflow_id)
    step = await _get_step_or_404(session, workflow.id, step_id)
    await session.delete(step)
    await session.commit()
    logger.info("Deleted step %s from workflow %s", step_id, workflow.id)
