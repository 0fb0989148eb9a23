from sqlmodel import SQLModel

from approval_engine.models.base import TimestampMixin, UUIDBase
from approval_engine.models.enums import ApprovalStatus, Decision, ExpenseStatus, RuleType, UserRole
from approval_engine.models.expense import Expense
from approval_engine.models.ledger import ExpenseApproval
from approval_engine.models.rule import ApprovalRule
from approval_engine.models.workflow import ApprovalStep, ApprovalWorkflow

__all__ = [
    "ApprovalRule",
    "ApprovalStatus",
    "ApprovalStep",
    "ApprovalWorkflow",
    "Decision",
    "Expense",
    "ExpenseApproval",
    "ExpenseStatus",
    "RuleType",
    "SQLModel",
    "TimestampMixin",
    "UUIDBase",
    "UserRole",
]
