# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field


def _clean_name(value: str) -> str:
    value = value.strip()
    if len(value) < 3:
        msg = "Name must be at least 3 characters long"
        raise ValueError(msg)
    return value


WorkflowName = Annotated[str, Field(max_length=255), AfterValidator(_clean_name)]


class CreateWorkflowRequest(BaseModel):
    """Request body for creating an approval workflow."""

    name: WorkflowName
    is_active: bool = True


class UpdateWorkflowRequest(BaseModel):
    """Request body for renaming or (de)activating a workflow."""

    name: WorkflowName | None = None
    is_active: bool | None = None


class AddStepRequest(BaseModel):
    """Request body for appending or inserting a workflow step."""

    approver_id: uuid.UUID
    step_order: int | None = Field(default=None, gt=0, description="Defaults to the next free position")


class UpdateStepRequest(BaseModel):
    """Request body for changing a step's approver or position."""

    approver_id: uuid.UUID | None = None
    step_order: int | None = Field(default=None, gt=0)


class StepResponse(BaseModel):
    """Response schema for a workflow step."""

    id: uuid.UUID
    workflow_id: uuid.UUID
    approver_id: uuid.UUID
    step_order: int
    created_at: datetime


class WorkflowResponse(BaseModel):
    """Response schema for a workflow with its ordered steps."""

    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    is_active: bool
    created_at: datetime
    steps: list[StepResponse]


class WorkflowListResponse(BaseModel):
    """Paginated list of workflows."""

    items: list[WorkflowResponse]
    total: int
