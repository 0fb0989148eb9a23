"""Tests for the identity directory stub and its maintenance routes."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import pytest

from approval_engine.exceptions import NotFoundError, ValidationFailed
from approval_engine.models.enums import UserRole
from approval_engine.services.directory import (
    CompanyInfo,
    IdentityDirectory,
    InMemoryIdentityDirectory,
    UserInfo,
    get_directory,
    require_company,
    require_user,
    validate_manager_link,
)

if TYPE_CHECKING:
    from httpx import AsyncClient

COMPANY_ID = uuid.uuid4()
OTHER_COMPANY_ID = uuid.uuid4()
ADMIN_ID = uuid.uuid4()

ADMIN_HEADERS = {
    "X-Company-Id": str(COMPANY_ID),
    "X-User-Id": str(ADMIN_ID),
    "X-Role": "admin",
}
EMPLOYEE_HEADERS = {
    "X-Company-Id": str(COMPANY_ID),
    "X-User-Id": str(uuid.uuid4()),
    "X-Role": "employee",
}
COMPANY_URL = f"/companies/{COMPANY_ID}"
USERS_URL = f"{COMPANY_URL}/users"


def _user(
    company_id: uuid.UUID = COMPANY_ID,
    role: UserRole = UserRole.EMPLOYEE,
    manager_id: uuid.UUID | None = None,
) -> UserInfo:
    user_id = uuid.uuid4()
    return UserInfo(
        id=user_id,
        company_id=company_id,
        name="Jane Doe",
        email=f"{str(user_id)[:8]}@example.com",
        role=role,
        manager_id=manager_id,
    )


# ---------------------------------------------------------------------------
# InMemoryIdentityDirectory
# ---------------------------------------------------------------------------


def test_in_memory_directory_satisfies_protocol() -> None:
    assert isinstance(InMemoryIdentityDirectory(), IdentityDirectory)


async def test_get_user_not_found() -> None:
    assert await InMemoryIdentityDirectory().get_user(uuid.uuid4()) is None


async def test_list_users_filters_by_company() -> None:
    directory = InMemoryIdentityDirectory()
    mine, theirs = _user(), _user(company_id=OTHER_COMPANY_ID)
    directory.seed(mine)
    directory.seed(theirs)
    users = await directory.list_users(COMPANY_ID)
    assert [u.id for u in users] == [mine.id]


async def test_seed_overwrites_existing_user() -> None:
    directory = InMemoryIdentityDirectory()
    user = _user()
    directory.seed(user)
    directory.seed(user.model_copy(update={"role": UserRole.MANAGER}))
    fetched = await directory.get_user(user.id)
    assert fetched is not None
    assert fetched.can_approve is True


def test_fixture_installs_fresh_directory(directory: InMemoryIdentityDirectory) -> None:
    assert get_directory() is directory


async def test_require_user_respects_company(directory: InMemoryIdentityDirectory) -> None:
    user = _user(company_id=OTHER_COMPANY_ID)
    directory.seed(user)
    assert (await require_user(user.id)).id == user.id
    with pytest.raises(NotFoundError, match="Approver not found"):
        await require_user(user.id, COMPANY_ID, label="Approver")


async def test_require_company(directory: InMemoryIdentityDirectory) -> None:
    with pytest.raises(NotFoundError):
        await require_company(COMPANY_ID)
    directory.seed_company(CompanyInfo(id=COMPANY_ID, name="Acme", currency="USD"))
    assert (await require_company(COMPANY_ID)).currency == "USD"


# ---------------------------------------------------------------------------
# Manager links
# ---------------------------------------------------------------------------


async def test_manager_link_rejects_self(directory: InMemoryIdentityDirectory) -> None:
    user = _user()
    directory.seed(user)
    with pytest.raises(ValidationFailed):
        await validate_manager_link(user.id, COMPANY_ID, user.id)


async def test_manager_link_rejects_cycle(directory: InMemoryIdentityDirectory) -> None:
    top = _user(role=UserRole.MANAGER)
    middle = _user(role=UserRole.MANAGER, manager_id=top.id)
    bottom = _user(manager_id=middle.id)
    for u in (top, middle, bottom):
        directory.seed(u)
    with pytest.raises(ValidationFailed, match="cycle"):
        await validate_manager_link(top.id, COMPANY_ID, bottom.id)


async def test_manager_link_rejects_other_company(directory: InMemoryIdentityDirectory) -> None:
    boss = _user(company_id=OTHER_COMPANY_ID, role=UserRole.MANAGER)
    directory.seed(boss)
    with pytest.raises(NotFoundError):
        await validate_manager_link(uuid.uuid4(), COMPANY_ID, boss.id)


async def test_manager_link_accepts_chain(directory: InMemoryIdentityDirectory) -> None:
    top = _user(role=UserRole.MANAGER)
    middle = _user(role=UserRole.MANAGER, manager_id=top.id)
    directory.seed(top)
    directory.seed(middle)
    await validate_manager_link(uuid.uuid4(), COMPANY_ID, middle.id)


# ---------------------------------------------------------------------------
# Maintenance routes
# ---------------------------------------------------------------------------


async def test_upsert_and_get_company(async_client: AsyncClient) -> None:
    resp = await async_client.put(COMPANY_URL, json={"name": "Acme", "currency": "usd"}, headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["currency"] == "USD"

    resp = await async_client.get(COMPANY_URL, headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["name"] == "Acme"


async def test_get_unknown_company(async_client: AsyncClient) -> None:
    resp = await async_client.get(COMPANY_URL, headers=ADMIN_HEADERS)
    assert resp.status_code == 404
    assert resp.json()["kind"] == "NOT_FOUND"


async def test_upsert_user_requires_admin(async_client: AsyncClient) -> None:
    resp = await async_client.put(
        f"{USERS_URL}/{uuid.uuid4()}",
        json={"name": "Eve", "email": "eve@example.com"},
        headers=EMPLOYEE_HEADERS,
    )
    assert resp.status_code == 403
    assert resp.json()["kind"] == "FORBIDDEN"


async def test_upsert_list_and_get_users(async_client: AsyncClient) -> None:
    manager_id, report_id = uuid.uuid4(), uuid.uuid4()
    resp = await async_client.put(
        f"{USERS_URL}/{manager_id}",
        json={"name": "Mona", "email": "mona@example.com", "role": "manager", "is_manager_approver": True},
        headers=ADMIN_HEADERS,
    )
    assert resp.status_code == 200
    resp = await async_client.put(
        f"{USERS_URL}/{report_id}",
        json={"name": "Rob", "email": "rob@example.com", "manager_id": str(manager_id)},
        headers=ADMIN_HEADERS,
    )
    assert resp.status_code == 200
    assert resp.json()["role"] == "employee"

    resp = await async_client.get(USERS_URL, headers=ADMIN_HEADERS)
    assert resp.json()["total"] == 2

    resp = await async_client.get(f"{USERS_URL}/{report_id}", headers=ADMIN_HEADERS)
    assert resp.json()["manager_id"] == str(manager_id)


async def test_upsert_user_with_unknown_manager(async_client: AsyncClient) -> None:
    resp = await async_client.put(
        f"{USERS_URL}/{uuid.uuid4()}",
        json={"name": "Rob", "email": "rob@example.com", "manager_id": str(uuid.uuid4())},
        headers=ADMIN_HEADERS,
    )
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Manager not found"


async def test_upsert_user_cycle_is_rejected(async_client: AsyncClient, directory: InMemoryIdentityDirectory) -> None:
    top = _user(role=UserRole.MANAGER)
    below = _user(role=UserRole.MANAGER, manager_id=top.id)
    directory.seed(top)
    directory.seed(below)

    resp = await async_client.put(
        f"{USERS_URL}/{top.id}",
        json={"name": "Top", "email": "top@example.com", "role": "manager", "manager_id": str(below.id)},
        headers=ADMIN_HEADERS,
    )
    assert resp.status_code == 400
    assert resp.json()["kind"] == "VALIDATION"


async def test_get_user_from_other_company_is_not_found(
    async_client: AsyncClient, directory: InMemoryIdentityDirectory
) -> None:
    stranger = _user(company_id=OTHER_COMPANY_ID)
    directory.seed(stranger)
    resp = await async_client.get(f"{USERS_URL}/{stranger.id}", headers=ADMIN_HEADERS)
    assert resp.status_code == 404
