# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status

from approval_engine.api.deps import AdminDep, AuthDep, validate_company_scope
from approval_engine.db import SessionDep
from approval_engine.schemas.workflow import (
    AddStepRequest,
    CreateWorkflowRequest,
    StepResponse,
    UpdateStepRequest,
    UpdateWorkflowRequest,
    WorkflowListResponse,
    WorkflowResponse,
)
from approval_engine.services import workflow as workflow_service

router = APIRouter(
    prefix="/companies/{company_id}/approval-workflows",
    tags=["approval-workflows"],
    dependencies=[Depends(validate_company_scope)],
)


@router.post("", response_model=WorkflowResponse, status_code=status.HTTP_201_CREATED)
async def create_workflow(
    payload: CreateWorkflowRequest,
    session: SessionDep,
    auth: AdminDep,
) -> WorkflowResponse:
    """Create an approval workflow with no steps."""
    return await workflow_service.create_workflow(session, auth, payload)


@router.get("", response_model=WorkflowListResponse)
async def list_workflows(
    session: SessionDep,
    auth: AuthDep,
    is_active: bool | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> WorkflowListResponse:
    """List the company's workflows with their steps."""
    return await workflow_service.list_workflows(session, auth.company_id, is_active, offset, limit)


@router.get("/{workflow_id}", response_model=WorkflowResponse)
async def get_workflow(
    workflow_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> WorkflowResponse:
    """Get a workflow with its ordered steps."""
    return await workflow_service.get_workflow(session, auth.company_id, workflow_id)


@router.patch("/{workflow_id}", response_model=WorkflowResponse)
async def update_workflow(
    workflow_id: uuid.UUID,
    payload: UpdateWorkflowRequest,
    session: SessionDep,
    auth: AdminDep,
) -> WorkflowResponse:
    """Rename or (de)activate a workflow."""
    return await workflow_service.update_workflow(session, auth, workflow_id, payload)


@router.delete("/{workflow_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workflow(
    workflow_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> None:
    """Delete a workflow and all of its steps."""
    await workflow_service.delete_workflow(session, auth, workflow_id)


@router.post("/{workflow_id}/steps", response_model=StepResponse, status_code=status.HTTP_201_CREATED)
async def add_step(
    workflow_id: uuid.UUID,
    payload: AddStepRequest,
    session: SessionDep,
    auth: AdminDep,
) -> StepResponse:
    """Add an approver step to a workflow."""
    return await workflow_service.add_step(session, auth, workflow_id, payload)


@router.get("/{workflow_id}/steps", response_model=list[StepResponse])
async def list_steps(
    workflow_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> list[StepResponse]:
    """List a workflow's steps in order."""
    return await workflow_service.list_steps(session, auth.company_id, workflow_id)


@router.patch("/{workflow_id}/steps/{step_id}", response_model=StepResponse)
async def update_step(
    workflow_id: uuid.UUID,
    step_id: uuid.UUID,
    payload: UpdateStepRequest,
    session: SessionDep,
    auth: AdminDep,
) -> StepResponse:
    """Change a step's approver or position."""
    return await workflow_service.update_step(session, auth, workflow_id, step_id, payload)


@router.delete("/{workflow_id}/steps/{step_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_step(
    workflow_id: uuid.UUID,
    step_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> None:
    """Remove a step from a workflow."""
    await workflow_service.delete_step(session, auth, workflow_id, step_id)
