"""Tests for expense submission, chain snapshotting, listing and deletion."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

import pytest

from approval_engine.config import get_settings
from approval_engine.models.enums import UserRole
from approval_engine.services.directory import CompanyInfo, UserInfo

if TYPE_CHECKING:
    from httpx import AsyncClient

    from approval_engine.services.directory import InMemoryIdentityDirectory

COMPANY_ID = uuid.uuid4()
ADMIN_ID = uuid.uuid4()
DIRECTOR_ID = uuid.uuid4()
MANAGER_ID = uuid.uuid4()
FINANCE_ID = uuid.uuid4()
EMPLOYEE_ID = uuid.uuid4()
LONER_ID = uuid.uuid4()
PEER_ID = uuid.uuid4()

BASE_URL = f"/companies/{COMPANY_ID}"
EXPENSES_URL = f"{BASE_URL}/expenses"
RULES_URL = f"{BASE_URL}/approval-rules"
WORKFLOWS_URL = f"{BASE_URL}/approval-workflows"


def _headers(user_id: uuid.UUID, role: str = "employee", company_id: uuid.UUID = COMPANY_ID) -> dict[str, str]:
    return {"X-Company-Id": str(company_id), "X-User-Id": str(user_id), "X-Role": role}


ADMIN_HEADERS = _headers(ADMIN_ID, "admin")


def _user(
    user_id: uuid.UUID,
    role: UserRole,
    manager_id: uuid.UUID | None = None,
    is_manager_approver: bool = False,
) -> UserInfo:
    return UserInfo(
        id=user_id,
        company_id=COMPANY_ID,
        name=str(user_id)[:8],
        email=f"{str(user_id)[:8]}@example.com",
        role=role,
        manager_id=manager_id,
        is_manager_approver=is_manager_approver,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _seed_directory(directory: InMemoryIdentityDirectory) -> None:
    """Seed the company and a small org chart for every test."""
    directory.seed_company(CompanyInfo(id=COMPANY_ID, name="Acme", currency="USD"))
    directory.seed(_user(ADMIN_ID, UserRole.ADMIN))
    directory.seed(_user(DIRECTOR_ID, UserRole.MANAGER))
    directory.seed(_user(MANAGER_ID, UserRole.MANAGER, manager_id=DIRECTOR_ID, is_manager_approver=True))
    directory.seed(_user(FINANCE_ID, UserRole.MANAGER))
    directory.seed(_user(EMPLOYEE_ID, UserRole.EMPLOYEE, manager_id=MANAGER_ID))
    directory.seed(_user(LONER_ID, UserRole.EMPLOYEE))
    directory.seed(_user(PEER_ID, UserRole.EMPLOYEE))


# ---------------------------------------------------------------------------
# Test helpers
# ---------------------------------------------------------------------------


def _expense_body(employee_id: uuid.UUID = EMPLOYEE_ID, **overrides: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "employee_id": str(employee_id),
        "amount": 120.0,
        "currency": "EUR",
        "converted_amount": 130.0,
        "category": "Travel",
        "description": "Train to the client",
        "expense_date": "2026-02-10",
    }
    body.update(overrides)
    return body


async def _submit(
    client: AsyncClient,
    employee_id: uuid.UUID = EMPLOYEE_ID,
    expected_status: int = 201,
    **overrides: Any,
) -> dict[str, Any]:
    resp = await client.post(EXPENSES_URL, json=_expense_body(employee_id, **overrides), headers=_headers(employee_id))
    assert resp.status_code == expected_status, resp.text
    result: dict[str, Any] = resp.json()
    return result


async def _create_workflow(client: AsyncClient, approvers: list[uuid.UUID], name: str = "Finance review") -> str:
    resp = await client.post(WORKFLOWS_URL, json={"name": name}, headers=ADMIN_HEADERS)
    assert resp.status_code == 201
    workflow_id: str = resp.json()["id"]
    for approver_id in approvers:
        resp = await client.post(
            f"{WORKFLOWS_URL}/{workflow_id}/steps", json={"approver_id": str(approver_id)}, headers=ADMIN_HEADERS
        )
        assert resp.status_code == 201
    return workflow_id


async def _create_rule(client: AsyncClient, body: dict[str, Any]) -> None:
    resp = await client.post(RULES_URL, json=body, headers=ADMIN_HEADERS)
    assert resp.status_code == 201, resp.text


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


async def test_create_without_rule_routes_to_manager(async_client: AsyncClient) -> None:
    await _create_workflow(async_client, [FINANCE_ID])
    data = await _submit(async_client)

    assert data["status"] == "pending"
    assert data["current_approval_step"] == 1
    assert data["current_approver_id"] == str(MANAGER_ID)
    assert data["approval_chain"] == [str(MANAGER_ID)]
    assert data["approval_workflow_id"] is None
    assert data["currency"] == "EUR"
    assert data["converted_amount"] == 130.0

    resp = await async_client.get(f"{EXPENSES_URL}/{data['id']}/approvals", headers=ADMIN_HEADERS)
    entries = resp.json()["items"]
    assert len(entries) == 1
    assert entries[0]["step_order"] == 1
    assert entries[0]["approver_id"] == str(MANAGER_ID)
    assert entries[0]["status"] == "pending"


async def test_create_with_rule_snapshots_full_chain(async_client: AsyncClient) -> None:
    workflow_id = await _create_workflow(async_client, [FINANCE_ID, DIRECTOR_ID])
    await _create_rule(async_client, {"rule_type": "percentage", "percentage_threshold": 50})

    data = await _submit(async_client)
    assert data["approval_chain"] == [str(MANAGER_ID), str(FINANCE_ID), str(DIRECTOR_ID)]
    assert data["approval_workflow_id"] == workflow_id
    assert data["current_approver_id"] == str(MANAGER_ID)

    resp = await async_client.get(f"{EXPENSES_URL}/{data['id']}/approvals", headers=ADMIN_HEADERS)
    assert resp.json()["total"] == 1


async def test_specific_approver_appended_to_chain(async_client: AsyncClient) -> None:
    await _create_workflow(async_client, [FINANCE_ID])
    await _create_rule(async_client, {"rule_type": "specific_approver", "specific_approver_id": str(ADMIN_ID)})

    data = await _submit(async_client)
    assert data["approval_chain"] == [str(MANAGER_ID), str(FINANCE_ID), str(ADMIN_ID)]


async def test_named_workflow_is_used(async_client: AsyncClient) -> None:
    named = await _create_workflow(async_client, [DIRECTOR_ID], name="Director only")
    await _create_workflow(async_client, [FINANCE_ID], name="Newest workflow")
    await _create_rule(async_client, {"rule_type": "percentage", "percentage_threshold": 100})

    data = await _submit(async_client, workflow_id=named)
    assert data["approval_workflow_id"] == named
    assert data["approval_chain"] == [str(MANAGER_ID), str(DIRECTOR_ID)]


async def test_named_inactive_workflow_not_found(async_client: AsyncClient) -> None:
    workflow_id = await _create_workflow(async_client, [FINANCE_ID])
    await async_client.patch(f"{WORKFLOWS_URL}/{workflow_id}", json={"is_active": False}, headers=ADMIN_HEADERS)

    data = await _submit(async_client, expected_status=404, workflow_id=workflow_id)
    assert data["kind"] == "NOT_FOUND"


async def test_named_workflow_without_active_rule_is_rejected(async_client: AsyncClient) -> None:
    workflow_id = await _create_workflow(async_client, [FINANCE_ID])

    data = await _submit(async_client, expected_status=400, workflow_id=workflow_id)
    assert data["kind"] == "VALIDATION"
    assert "rule" in data["detail"]

    resp = await async_client.get(EXPENSES_URL, headers=ADMIN_HEADERS)
    assert resp.json()["total"] == 0


async def test_create_fails_when_workflow_approver_lost_role(
    async_client: AsyncClient, directory: InMemoryIdentityDirectory
) -> None:
    await _create_workflow(async_client, [FINANCE_ID])
    await _create_rule(async_client, {"rule_type": "percentage", "percentage_threshold": 50})
    directory.seed(_user(FINANCE_ID, UserRole.EMPLOYEE))

    data = await _submit(async_client, expected_status=403)
    assert data["kind"] == "INVALID_ROLE"

    resp = await async_client.get(EXPENSES_URL, headers=ADMIN_HEADERS)
    assert resp.json()["total"] == 0


async def test_create_for_another_employee_forbidden(async_client: AsyncClient) -> None:
    resp = await async_client.post(EXPENSES_URL, json=_expense_body(EMPLOYEE_ID), headers=_headers(PEER_ID))
    assert resp.status_code == 403
    assert resp.json()["kind"] == "FORBIDDEN"


async def test_admin_may_submit_on_behalf(async_client: AsyncClient) -> None:
    resp = await async_client.post(EXPENSES_URL, json=_expense_body(EMPLOYEE_ID), headers=ADMIN_HEADERS)
    assert resp.status_code == 201
    assert resp.json()["employee_id"] == str(EMPLOYEE_ID)


async def test_create_unknown_employee(async_client: AsyncClient) -> None:
    resp = await async_client.post(EXPENSES_URL, json=_expense_body(uuid.uuid4()), headers=ADMIN_HEADERS)
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Employee not found"


async def test_create_unknown_company(async_client: AsyncClient) -> None:
    other_company = uuid.uuid4()
    resp = await async_client.post(
        f"/companies/{other_company}/expenses",
        json=_expense_body(ADMIN_ID),
        headers=_headers(ADMIN_ID, "admin", company_id=other_company),
    )
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Company not found"


@pytest.mark.parametrize(
    "overrides",
    [{"amount": 0}, {"currency": "DOLLARS"}, {"category": ""}, {"converted_amount": -3}],
)
async def test_create_rejects_invalid_payload(async_client: AsyncClient, overrides: dict[str, Any]) -> None:
    data = await _submit(async_client, expected_status=422, **overrides)
    assert data["kind"] == "VALIDATION"


async def test_no_chain_stays_pending_at_step_zero(async_client: AsyncClient) -> None:
    data = await _submit(async_client, employee_id=LONER_ID)
    assert data["status"] == "pending"
    assert data["current_approval_step"] == 0
    assert data["current_approver_id"] is None
    assert data["approval_chain"] == []

    resp = await async_client.get(f"{EXPENSES_URL}/{data['id']}/approvals", headers=ADMIN_HEADERS)
    assert resp.json()["total"] == 0


async def test_no_chain_auto_approve_policy(async_client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(get_settings(), "no_chain_policy", "auto_approve")
    data = await _submit(async_client, employee_id=LONER_ID)
    assert data["status"] == "approved"
    assert data["current_approval_step"] == 0
    assert data["decided_at"] is not None


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


async def test_get_expense(async_client: AsyncClient) -> None:
    created = await _submit(async_client)
    resp = await async_client.get(f"{EXPENSES_URL}/{created['id']}", headers=_headers(PEER_ID))
    assert resp.status_code == 200
    assert resp.json()["id"] == created["id"]


async def test_list_expenses_with_filters(async_client: AsyncClient) -> None:
    berlin = await _submit(
        async_client, category="Travel", expense_date="2026-01-10", description="Flight to Berlin"
    )
    await _submit(async_client, category="Meals", expense_date="2026-02-01", description="Team lunch")
    await _submit(async_client, employee_id=LONER_ID, category="Travel", expense_date="2026-03-05")

    resp = await async_client.post(
        f"{EXPENSES_URL}/{berlin['id']}/decision",
        json={"decision": "approved"},
        headers=_headers(MANAGER_ID, "manager"),
    )
    assert resp.status_code == 200

    async def _total(**params: Any) -> int:
        r = await async_client.get(EXPENSES_URL, params=params, headers=ADMIN_HEADERS)
        assert r.status_code == 200
        total: int = r.json()["total"]
        return total

    assert await _total() == 3
    assert await _total(status="approved") == 1
    assert await _total(status="pending") == 2
    assert await _total(employee_id=str(LONER_ID)) == 1
    assert await _total(category="Travel") == 2
    assert await _total(date_from="2026-01-15") == 2
    assert await _total(date_to="2026-01-31") == 1
    assert await _total(search="berlin") == 1


async def test_list_expenses_newest_first_and_paginated(async_client: AsyncClient) -> None:
    first = await _submit(async_client, description="first")
    second = await _submit(async_client, description="second")

    resp = await async_client.get(EXPENSES_URL, params={"limit": 1}, headers=ADMIN_HEADERS)
    data = resp.json()
    assert data["total"] == 2
    assert [e["id"] for e in data["items"]] == [second["id"]]

    resp = await async_client.get(EXPENSES_URL, params={"limit": 1, "offset": 1}, headers=ADMIN_HEADERS)
    assert [e["id"] for e in resp.json()["items"]] == [first["id"]]


async def test_list_rejects_unknown_status(async_client: AsyncClient) -> None:
    resp = await async_client.get(EXPENSES_URL, params={"status": "draft"}, headers=ADMIN_HEADERS)
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


async def test_delete_expense_requires_admin(async_client: AsyncClient) -> None:
    created = await _submit(async_client)
    resp = await async_client.delete(f"{EXPENSES_URL}/{created['id']}", headers=_headers(EMPLOYEE_ID))
    assert resp.status_code == 403


async def test_delete_expense_removes_ledger(async_client: AsyncClient) -> None:
    created = await _submit(async_client)
    resp = await async_client.delete(f"{EXPENSES_URL}/{created['id']}", headers=ADMIN_HEADERS)
    assert resp.status_code == 204

    resp = await async_client.get(f"{EXPENSES_URL}/{created['id']}", headers=ADMIN_HEADERS)
    assert resp.status_code == 404
    resp = await async_client.get(
        f"/companies/{COMPANY_ID}/approvers/{MANAGER_ID}/pending", headers=_headers(MANAGER_ID, "manager")
    )
    assert resp.json()["total"] == 0
