"""Chain resolution and rule evaluation for expense approvals.

The resolver answers two questions for the expense state machine:

* ``resolve_chain`` -- who must act, in order, computed once when the
  expense is created and snapshotted on it.
* ``evaluate`` -- after each decision, whether the governing rule approves
  or rejects the expense now, or which approver is asked next.

``evaluate`` is pure so the rule math can be tested without a database.
"""

# ruff: noqa: TC003
from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from approval_engine.exceptions import InvalidRoleError, NotFoundError
from approval_engine.models.enums import ApprovalStatus
from approval_engine.schemas.rule import HybridRule, PercentageRule, SpecificApproverRule
from approval_engine.services.directory import get_directory, require_user

if TYPE_CHECKING:
    from collections.abc import Sequence

    from approval_engine.schemas.rule import RuleShape
    from approval_engine.services.directory import UserInfo


class Outcome(enum.StrEnum):
    """What the state machine should do after a decision."""

    APPROVED = "approved"
    REJECTED = "rejected"
    CONTINUE = "continue"


@dataclass(frozen=True)
class StepOutcome:
    """A decided ledger step as seen by the rule evaluator."""

    approver_id: uuid.UUID
    status: ApprovalStatus


@dataclass(frozen=True)
class Resolution:
    """Result of evaluating the governing rule against the ledger."""

    outcome: Outcome
    chain: list[uuid.UUID] = field(default_factory=list)
    next_approver_id: uuid.UUID | None = None
    reason: str = ""


# ---------------------------------------------------------------------------
# Chain resolution
# ---------------------------------------------------------------------------


def _specific_approver_id(rule: RuleShape | None) -> uuid.UUID | None:
    if isinstance(rule, SpecificApproverRule | HybridRule):
        return rule.specific_approver_id
    return None


async def resolve_chain(
    employee: UserInfo,
    rule: RuleShape | None,
    workflow_approver_ids: Sequence[uuid.UUID],
) -> list[uuid.UUID]:
    """Compute the ordered approvers for a new expense.

    1. The employee's manager, when flagged as an approver, is step 1.
    2. With an active rule, the workflow's approvers follow, then the rule's
       designated approver if not already in the chain.
    3. Without a rule the chain is the manager step alone.

    Each approver appears once and the employee never approves their own
    expense. An empty list means the expense has no chain.
    """
    candidates: list[uuid.UUID] = []

    if employee.manager_id is not None:
        manager = await get_directory().get_user(employee.manager_id)
        if manager is None:
            raise NotFoundError("Manager not found")
        if manager.is_manager_approver:
            candidates.append(manager.id)

    if rule is not None:
        candidates.extend(workflow_approver_ids)
        specific_id = _specific_approver_id(rule)
        if specific_id is not None:
            candidates.append(specific_id)

    chain: list[uuid.UUID] = []
    for approver_id in candidates:
        if approver_id in chain or approver_id == employee.id:
            continue
        approver = await require_user(approver_id, employee.company_id, label="Approver")
        if not approver.can_approve:
            raise InvalidRoleError(f"Approver {approver_id} must have admin or manager role")
        chain.append(approver_id)
    return chain


# ---------------------------------------------------------------------------
# Rule evaluation
# ---------------------------------------------------------------------------


def _percentage_met(approved: int, total: int, threshold: int) -> bool:
    return approved * 100 >= threshold * total


def _percentage_reachable(approved: int, undecided: int, total: int, threshold: int) -> bool:
    """Whether approving every undecided step could still reach the threshold."""
    return (approved + undecided) * 100 >= threshold * total


def _decision_of(approver_id: uuid.UUID, decisions: Sequence[StepOutcome]) -> ApprovalStatus | None:
    for d in decisions:
        if d.approver_id == approver_id and d.status != ApprovalStatus.PENDING:
            return d.status
    return None


def _advance(chain: list[uuid.UUID], decided: int, required_id: uuid.UUID | None) -> Resolution | None:
    """Next step of the chain; the required approver is appended once the chain runs out."""
    if decided < len(chain):
        return Resolution(Outcome.CONTINUE, chain, chain[decided], "next step in chain")
    if required_id is not None:
        grown = [*chain, required_id]
        return Resolution(Outcome.CONTINUE, grown, required_id, "designated approver appended")
    return None


def evaluate(
    rule: RuleShape | None,
    chain: Sequence[uuid.UUID],
    decisions: Sequence[StepOutcome],
) -> Resolution:
    """Decide whether the expense is approved, rejected, or moves to the next step.

    ``decisions`` holds every ledger step so far in step order, all decided.
    Percentages are taken over the whole chain, not the steps created so far.
    """
    chain = list(chain)
    approved = sum(1 for d in decisions if d.status == ApprovalStatus.APPROVED)
    rejected = sum(1 for d in decisions if d.status == ApprovalStatus.REJECTED)
    decided = approved + rejected

    if rule is None:
        if rejected:
            return Resolution(Outcome.REJECTED, chain, reason="rejected by approver")
        return _advance(chain, decided, None) or Resolution(Outcome.APPROVED, chain, reason="all steps approved")

    if isinstance(rule, PercentageRule):
        total = len(chain)
        threshold = rule.percentage_threshold
        if _percentage_met(approved, total, threshold):
            return Resolution(Outcome.APPROVED, chain, reason=f"{approved}/{total} approved meets {threshold}%")
        if not _percentage_reachable(approved, total - decided, total, threshold):
            return Resolution(Outcome.REJECTED, chain, reason=f"{threshold}% no longer reachable")
        return _advance(chain, decided, None) or Resolution(Outcome.REJECTED, chain, reason="chain exhausted")

    if isinstance(rule, SpecificApproverRule):
        verdict = _decision_of(rule.specific_approver_id, decisions)
        if verdict == ApprovalStatus.APPROVED:
            return Resolution(Outcome.APPROVED, chain, reason="approved by designated approver")
        if verdict == ApprovalStatus.REJECTED:
            return Resolution(Outcome.REJECTED, chain, reason="rejected by designated approver")
        required = rule.specific_approver_id if rule.specific_approver_id not in chain[decided:] else None
        resolution = _advance(chain, decided, required)
        if resolution is None:
            return Resolution(Outcome.REJECTED, chain, reason="chain exhausted")
        return resolution

    # Hybrid: whichever approving path is true first wins.
    total = len(chain)
    threshold = rule.percentage_threshold
    verdict = _decision_of(rule.specific_approver_id, decisions)
    if _percentage_met(approved, total, threshold):
        return Resolution(Outcome.APPROVED, chain, reason=f"{approved}/{total} approved meets {threshold}%")
    if verdict == ApprovalStatus.APPROVED:
        return Resolution(Outcome.APPROVED, chain, reason="approved by designated approver")
    reachable = _percentage_reachable(approved, total - decided, total, threshold)
    if verdict == ApprovalStatus.REJECTED and not reachable:
        return Resolution(Outcome.REJECTED, chain, reason="designated approver rejected and percentage unreachable")
    required = None
    if verdict is None and rule.specific_approver_id not in chain[decided:]:
        required = rule.specific_approver_id
    resolution = _advance(chain, decided, required)
    if resolution is None:
        return Resolution(Outcome.REJECTED, chain, reason="chain exhausted")
    return resolution
