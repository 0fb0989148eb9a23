# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field

from approval_engine.exceptions import NotFoundError, ValidationFailed
from approval_engine.models.enums import APPROVER_ROLES, UserRole


class CompanyInfo(BaseModel):
    """Company metadata from the Identity Directory."""

    id: uuid.UUID
    name: str
    currency: str = Field(min_length=3, max_length=3)  # ISO 4217, e.g. "USD"


class UserInfo(BaseModel):
    """User metadata from the Identity Directory."""

    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    email: str
    role: UserRole = UserRole.EMPLOYEE
    manager_id: uuid.UUID | None = None
    is_manager_approver: bool = False

    @property
    def can_approve(self) -> bool:
        return self.role in APPROVER_ROLES


@runtime_checkable
class IdentityDirectory(Protocol):
    """Read-only view over users and companies. Never mutated by the engine."""

    async def get_user(self, user_id: uuid.UUID) -> UserInfo | None:
        """Fetch a user. Returns None if not found."""
        ...

    async def list_users(self, company_id: uuid.UUID) -> list[UserInfo]:
        """List all users for a company."""
        ...

    async def get_company(self, company_id: uuid.UUID) -> CompanyInfo | None:
        """Fetch company metadata. Returns None if not found."""
        ...


class InMemoryIdentityDirectory:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._users: dict[uuid.UUID, UserInfo] = {}
        self._companies: dict[uuid.UUID, CompanyInfo] = {}

    def seed(self, user: UserInfo) -> None:
        """Seed a user for testing."""
        self._users[user.id] = user

    def seed_company(self, company: CompanyInfo) -> None:
        """Seed a company for testing."""
        self._companies[company.id] = company

    async def get_user(self, user_id: uuid.UUID) -> UserInfo | None:
        return self._users.get(user_id)

    async def list_users(self, company_id: uuid.UUID) -> list[UserInfo]:
        return [u for u in self._users.values() if u.company_id == company_id]

    async def get_company(self, company_id: uuid.UUID) -> CompanyInfo | None:
        return self._companies.get(company_id)


_directory: IdentityDirectory = InMemoryIdentityDirectory()


def get_directory() -> IdentityDirectory:
    """FastAPI dependency for the Identity Directory."""
    return _directory


def set_directory(directory: IdentityDirectory) -> None:
    """Override the directory (for testing or production wiring)."""
    global _directory
    _directory = directory


async def require_user(
    user_id: uuid.UUID,
    company_id: uuid.UUID | None = None,
    label: str = "User",
) -> UserInfo:
    """Fetch a user, raising NOT_FOUND if absent or outside the given company."""
    user = await get_directory().get_user(user_id)
    if user is None or (company_id is not None and user.company_id != company_id):
        raise NotFoundError(f"{label} not found")
    return user


async def require_company(company_id: uuid.UUID) -> CompanyInfo:
    """Fetch a company, raising NOT_FOUND if absent."""
    company = await get_directory().get_company(company_id)
    if company is None:
        raise NotFoundError("Company not found")
    return company


async def validate_manager_link(
    user_id: uuid.UUID,
    company_id: uuid.UUID,
    manager_id: uuid.UUID | None,
) -> None:
    """Check that giving ``user_id`` this manager keeps the hierarchy a forest.

    The manager must be a user of the same company, and following manager
    links upward from the manager must never reach ``user_id``.
    """
    if manager_id is None:
        return
    if manager_id == user_id:
        raise ValidationFailed("A user cannot be their own manager")

    directory = get_directory()
    manager = await require_user(manager_id, company_id, label="Manager")
    seen: set[uuid.UUID] = {manager.id}
    while manager.manager_id is not None:
        if manager.manager_id == user_id:
            raise ValidationFailed("Manager assignment would create a cycle")
        if manager.manager_id in seen:
            break
        seen.add(manager.manager_id)
        parent = await directory.get_user(manager.manager_id)
        if parent is None:
            break
        manager = parent
