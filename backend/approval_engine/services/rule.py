# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import func, select
from sqlmodel import col

from approval_engine.exceptions import InvalidRoleError, NotFoundError, ValidationFailed
from approval_engine.models.enums import RuleType
from approval_engine.models.rule import ApprovalRule
from approval_engine.schemas.rule import (
    HybridRule,
    PercentageRule,
    RuleListResponse,
    RuleResponse,
    RuleShape,
    SpecificApproverRule,
)
from approval_engine.services.directory import require_user

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from approval_engine.schemas.auth import AuthContext
    from approval_engine.schemas.rule import CreateRuleRequest, UpdateRuleRequest

logger = logging.getLogger(__name__)

_shape_adapter: TypeAdapter[RuleShape] = TypeAdapter(RuleShape)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_rule_response(rule: ApprovalRule) -> RuleResponse:
    """Map a rule model to its response schema."""
    return RuleResponse(
        id=rule.id,
        company_id=rule.company_id,
        rule_type=RuleType(rule.rule_type),
        percentage_threshold=rule.percentage_threshold,
        specific_approver_id=rule.specific_approver_id,
        is_active=rule.is_active,
        created_at=rule.created_at,
    )


def rule_to_shape(rule: ApprovalRule) -> RuleShape:
    """Rehydrate a stored rule into its tagged variant."""
    return _shape_adapter.validate_python(
        {
            "rule_type": rule.rule_type,
            "percentage_threshold": rule.percentage_threshold,
            "specific_approver_id": rule.specific_approver_id,
            "is_active": rule.is_active,
        }
    )


def _apply_shape(rule: ApprovalRule, shape: RuleShape) -> None:
    """Write a validated shape onto the flat row, clearing fields the shape forbids."""
    rule.rule_type = shape.rule_type
    rule.is_active = shape.is_active
    rule.percentage_threshold = None
    rule.specific_approver_id = None
    if isinstance(shape, PercentageRule | HybridRule):
        rule.percentage_threshold = shape.percentage_threshold
    if isinstance(shape, SpecificApproverRule | HybridRule):
        rule.specific_approver_id = shape.specific_approver_id


async def _validate_specific_approver(company_id: uuid.UUID, shape: RuleShape) -> None:
    """The designated approver must exist in the company and hold an approving role."""
    if isinstance(shape, PercentageRule):
        return
    approver = await require_user(shape.specific_approver_id, company_id, label="Specific approver")
    if not approver.can_approve:
        raise InvalidRoleError("Specific approver must have admin or manager role")


async def _get_rule_or_404(session: AsyncSession, company_id: uuid.UUID, rule_id: uuid.UUID) -> ApprovalRule:
    result = await session.execute(
        select(ApprovalRule).where(
            col(ApprovalRule.id) == rule_id,
            col(ApprovalRule.company_id) == company_id,
        )
    )
    rule = result.scalar_one_or_none()
    if rule is None:
        raise NotFoundError("Approval rule not found")
    return rule


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def get_active_rule(session: AsyncSession, company_id: uuid.UUID) -> RuleShape | None:
    """Return the company's governing rule, or None.

    When several rules are active the most recently created one wins. The
    rule is read on every call so concurrent edits are seen immediately.
    """
    result = await session.execute(
        select(ApprovalRule)
        .where(
            col(ApprovalRule.company_id) == company_id,
            col(ApprovalRule.is_active).is_(True),
        )
        .order_by(col(ApprovalRule.created_at).desc(), col(ApprovalRule.id).desc())
        .limit(1)
    )
    rule = result.scalar_one_or_none()
    return rule_to_shape(rule) if rule is not None else None


async def create_rule(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateRuleRequest,
) -> RuleResponse:
    """Create an approval rule after checking its designated approver."""
    shape = payload.root
    await _validate_specific_approver(auth.company_id, shape)

    rule = ApprovalRule(company_id=auth.company_id, rule_type=shape.rule_type)
    _apply_shape(rule, shape)
    session.add(rule)
    await session.commit()
    await session.refresh(rule)
    logger.info("Created %s rule %s for company %s", rule.rule_type, rule.id, rule.company_id)
    return _build_rule_response(rule)


async def update_rule(
    session: AsyncSession,
    auth: AuthContext,
    rule_id: uuid.UUID,
    payload: UpdateRuleRequest,
) -> RuleResponse:
    """Apply a partial update; the merged result must still be a valid rule shape."""
    rule = await _get_rule_or_404(session, auth.company_id, rule_id)

    merged: dict[str, Any] = {
        "rule_type": rule.rule_type,
        "percentage_threshold": rule.percentage_threshold,
        "specific_approver_id": rule.specific_approver_id,
        "is_active": rule.is_active,
    }
    merged.update(payload.model_dump(mode="json", exclude_unset=True))
    if merged["is_active"] is None:
        merged["is_active"] = rule.is_active

    try:
        shape = _shape_adapter.validate_python(merged)
    except ValidationError as exc:
        raise ValidationFailed(f"Invalid rule after update: {exc.errors(include_url=False)}") from None

    await _validate_specific_approver(auth.company_id, shape)
    _apply_shape(rule, shape)
    await session.commit()
    await session.refresh(rule)
    return _build_rule_response(rule)


async def delete_rule(session: AsyncSession, auth: AuthContext, rule_id: uuid.UUID) -> None:
    """Delete a rule. Pending expenses are evaluated against whatever rule is active next."""
    rule = await _get_rule_or_404(session, auth.company_id, rule_id)
    await session.delete(rule)
    await session.commit()


async def get_rule(session: AsyncSession, company_id: uuid.UUID, rule_id: uuid.UUID) -> RuleResponse:
    """Get a single rule by ID."""
    return _build_rule_response(await _get_rule_or_404(session, company_id, rule_id))


async def list_rules(
    session: AsyncSession,
    company_id: uuid.UUID,
    rule_type: RuleType | None = None,
    is_active: bool | None = None,
    offset: int = 0,
    limit: int = 50,
) -> RuleListResponse:
    """List rules with optional filters, newest first."""
    filters = [col(ApprovalRule.company_id) == company_id]
    if rule_type is not None:
        filters.append(col(ApprovalRule.rule_type) == rule_type.value)
    if is_active is not None:
        filters.append(col(ApprovalRule.is_active).is_(is_active))

    count_result = await session.execute(select(func.count()).select_from(ApprovalRule).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(ApprovalRule)
        .where(*filters)
        .order_by(col(ApprovalRule.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    return RuleListResponse(
        items=[_build_rule_response(r) for r in result.scalars().all()],
        total=total,
    )
