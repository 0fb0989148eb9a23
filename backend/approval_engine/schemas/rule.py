# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, RootModel, model_validator

from approval_engine.models.enums import RuleType

# ---------------------------------------------------------------------------
# Rule shapes (discriminated union on rule_type)
# ---------------------------------------------------------------------------


class _RuleShapeBase(BaseModel):
    """Common base: unknown or mismatched fields are rejected, explicit nulls ignored."""

    model_config = ConfigDict(extra="forbid")

    is_active: bool = True

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class PercentageRule(_RuleShapeBase):
    """Approved once the approved share of the chain reaches the threshold."""

    rule_type: Literal["percentage"] = "percentage"
    percentage_threshold: int = Field(ge=1, le=100)


class SpecificApproverRule(_RuleShapeBase):
    """Resolved by one designated approver; other steps are advisory."""

    rule_type: Literal["specific_approver"] = "specific_approver"
    specific_approver_id: uuid.UUID


class HybridRule(_RuleShapeBase):
    """Approved by either the percentage path or the designated approver."""

    rule_type: Literal["hybrid"] = "hybrid"
    percentage_threshold: int = Field(ge=1, le=100)
    specific_approver_id: uuid.UUID


RuleShape = Annotated[
    PercentageRule | SpecificApproverRule | HybridRule,
    Field(discriminator="rule_type"),
]

# ---------------------------------------------------------------------------
# API request / response schemas
# ---------------------------------------------------------------------------


class CreateRuleRequest(RootModel[RuleShape]):
    """Request body for creating a rule; the body is one of the rule shapes."""


class UpdateRuleRequest(BaseModel):
    """Partial update. The merged rule is re-validated as a RuleShape."""

    rule_type: RuleType | None = None
    percentage_threshold: int | None = Field(default=None, ge=1, le=100)
    specific_approver_id: uuid.UUID | None = None
    is_active: bool | None = None


class RuleResponse(BaseModel):
    """Response schema for an approval rule."""

    id: uuid.UUID
    company_id: uuid.UUID
    rule_type: RuleType
    percentage_threshold: int | None
    specific_approver_id: uuid.UUID | None
    is_active: bool
    created_at: datetime


class RuleListResponse(BaseModel):
    """Paginated list of approval rules."""

    items: list[RuleResponse]
    total: int
