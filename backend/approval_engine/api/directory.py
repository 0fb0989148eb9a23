# ruff: noqa: TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from approval_engine.api.deps import AdminDep, AuthDep, validate_company_scope
from approval_engine.schemas.user import (
    CompanyResponse,
    UpsertCompanyRequest,
    UpsertUserRequest,
    UserListResponse,
    UserResponse,
)
from approval_engine.services.directory import (
    CompanyInfo,
    UserInfo,
    get_directory,
    require_company,
    require_user,
    validate_manager_link,
)

directory_router = APIRouter(
    prefix="/companies/{company_id}",
    tags=["directory"],
    dependencies=[Depends(validate_company_scope)],
)


def _build_user_response(user: UserInfo) -> UserResponse:
    return UserResponse(
        id=user.id,
        company_id=user.company_id,
        name=user.name,
        email=user.email,
        role=user.role,
        manager_id=user.manager_id,
        is_manager_approver=user.is_manager_approver,
    )


@directory_router.put("", response_model=CompanyResponse)
async def upsert_company(
    company_id: uuid.UUID,
    payload: UpsertCompanyRequest,
    auth: AdminDep,
) -> CompanyResponse:
    """Create or update the company in the stub directory (admin only)."""
    company = CompanyInfo(id=company_id, name=payload.name, currency=payload.currency.upper())
    get_directory().seed_company(company)  # ty: ignore[unresolved-attribute]
    return CompanyResponse(id=company.id, name=company.name, currency=company.currency)


@directory_router.get("", response_model=CompanyResponse)
async def get_company(
    company_id: uuid.UUID,
    auth: AuthDep,
) -> CompanyResponse:
    """Get company info from the stub directory."""
    company = await require_company(company_id)
    return CompanyResponse(id=company.id, name=company.name, currency=company.currency)


@directory_router.put("/users/{user_id}", response_model=UserResponse)
async def upsert_user(
    company_id: uuid.UUID,
    user_id: uuid.UUID,
    payload: UpsertUserRequest,
    auth: AdminDep,
) -> UserResponse:
    """Create or update a user in the stub directory (admin only)."""
    await validate_manager_link(user_id, company_id, payload.manager_id)
    user = UserInfo(
        id=user_id,
        company_id=company_id,
        name=payload.name,
        email=payload.email,
        role=payload.role,
        manager_id=payload.manager_id,
        is_manager_approver=payload.is_manager_approver,
    )
    get_directory().seed(user)  # ty: ignore[unresolved-attribute]
    return _build_user_response(user)


@directory_router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(
    company_id: uuid.UUID,
    user_id: uuid.UUID,
    auth: AuthDep,
) -> UserResponse:
    """Get a user from the stub directory."""
    return _build_user_response(await require_user(user_id, company_id))


@directory_router.get("/users", response_model=UserListResponse)
async def list_users(
    company_id: uuid.UUID,
    auth: AuthDep,
) -> UserListResponse:
    """List all users of a company from the stub directory."""
    users = await get_directory().list_users(company_id)
    items = [_build_user_response(u) for u in users]
    return UserListResponse(items=items, total=len(items))
