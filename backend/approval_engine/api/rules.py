# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status

from approval_engine.api.deps import AdminDep, AuthDep, validate_company_scope
from approval_engine.db import SessionDep
from approval_engine.models.enums import RuleType
from approval_engine.schemas.rule import CreateRuleRequest, RuleListResponse, RuleResponse, UpdateRuleRequest
from approval_engine.services import rule as rule_service

router = APIRouter(
    prefix="/companies/{company_id}/approval-rules",
    tags=["approval-rules"],
    dependencies=[Depends(validate_company_scope)],
)


@router.post("", response_model=RuleResponse, status_code=status.HTTP_201_CREATED)
async def create_rule(
    payload: CreateRuleRequest,
    session: SessionDep,
    auth: AdminDep,
) -> RuleResponse:
    """Create a percentage, specific-approver or hybrid rule."""
    return await rule_service.create_rule(session, auth, payload)


@router.get("", response_model=RuleListResponse)
async def list_rules(
    session: SessionDep,
    auth: AuthDep,
    rule_type: RuleType | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> RuleListResponse:
    """List the company's approval rules."""
    return await rule_service.list_rules(session, auth.company_id, rule_type, is_active, offset, limit)


@router.get("/{rule_id}", response_model=RuleResponse)
async def get_rule(
    rule_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> RuleResponse:
    """Get a single approval rule."""
    return await rule_service.get_rule(session, auth.company_id, rule_id)


@router.patch("/{rule_id}", response_model=RuleResponse)
async def update_rule(
    rule_id: uuid.UUID,
    payload: UpdateRuleRequest,
    session: SessionDep,
    auth: AdminDep,
) -> RuleResponse:
    """Partially update a rule. The result must still be a valid rule."""
    return await rule_service.update_rule(session, auth, rule_id, payload)


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(
    rule_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> None:
    """Delete an approval rule."""
    await rule_service.delete_rule(session, auth, rule_id)
