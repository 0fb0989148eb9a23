# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel, Field

from approval_engine.models.enums import UserRole


class UpsertUserRequest(BaseModel):
    """Request body for upserting a user in the stub directory."""

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=1, max_length=255)
    role: UserRole = UserRole.EMPLOYEE
    manager_id: uuid.UUID | None = None
    is_manager_approver: bool = False


class UserResponse(BaseModel):
    """Response schema for a directory user."""

    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    email: str
    role: UserRole
    manager_id: uuid.UUID | None
    is_manager_approver: bool


class UserListResponse(BaseModel):
    """List of directory users."""

    items: list[UserResponse]
    total: int


class UpsertCompanyRequest(BaseModel):
    """Request body for upserting the company in the stub directory."""

    name: str = Field(min_length=1, max_length=255)
    currency: str = Field(pattern=r"^[A-Za-z]{3}$")


class CompanyResponse(BaseModel):
    """Response schema for a directory company."""

    id: uuid.UUID
    name: str
    currency: str
