"""Seed script for development data.

Run with:  python -m approval_engine.seed
Expects the API on BASE_URL. The identity directory is an in-memory stub,
so re-run after every API restart.
"""

from __future__ import annotations

import asyncio
import sys
from datetime import date, timedelta

import httpx

BASE_URL = "http://localhost:8000"
COMPANY_ID = "00000000-0000-0000-0000-000000000001"
ADMIN_USER_ID = "00000000-0000-0000-0000-000000000001"

HEADERS = {
    "Content-Type": "application/json",
    "X-Company-Id": COMPANY_ID,
    "X-User-Id": ADMIN_USER_ID,
    "X-Role": "admin",
}

# Well-known user UUIDs
FINANCE_ID = "00000000-0000-0000-0000-000000000002"
DIRECTOR_ID = "00000000-0000-0000-0000-000000000003"
MANAGER_ID = "00000000-0000-0000-0000-000000000004"
ALICE_ID = "00000000-0000-0000-0000-000000000005"
DAVE_ID = "00000000-0000-0000-0000-000000000006"

COMPANY = {"name": "Acme Corp", "currency": "USD"}

# Managers come before their reports so manager links resolve on upsert.
USERS = [
    {"id": ADMIN_USER_ID, "name": "Ada Admin", "email": "ada@example.com", "role": "admin"},
    {"id": FINANCE_ID, "name": "Fiona Finance", "email": "fiona@example.com", "role": "manager"},
    {"id": DIRECTOR_ID, "name": "Dan Director", "email": "dan@example.com", "role": "manager"},
    {
        "id": MANAGER_ID,
        "name": "Mona Manager",
        "email": "mona@example.com",
        "role": "manager",
        "manager_id": DIRECTOR_ID,
        "is_manager_approver": True,
    },
    {
        "id": ALICE_ID,
        "name": "Alice Johnson",
        "email": "alice@example.com",
        "role": "employee",
        "manager_id": MANAGER_ID,
    },
    {"id": DAVE_ID, "name": "Dave Brown", "email": "dave@example.com", "role": "employee"},
]

WORKFLOW_STEPS = [FINANCE_ID, DIRECTOR_ID]

RULE = {"rule_type": "hybrid", "percentage_threshold": 60, "specific_approver_id": DIRECTOR_ID}


async def _safe_post(client: httpx.AsyncClient, url: str, json: dict, label: str) -> dict | None:
    resp = await client.post(url, json=json, headers=HEADERS)
    if resp.status_code in (200, 201):
        print(f"  [OK] {label}")
        return resp.json()
    if resp.status_code == 409:
        print(f"  [SKIP] {label} ({resp.json().get('kind')})")
        return None
    print(f"  [ERROR] {label}: {resp.status_code} {resp.text[:200]}")
    return None


async def _safe_put(client: httpx.AsyncClient, url: str, json: dict, label: str) -> dict | None:
    resp = await client.put(url, json=json, headers=HEADERS)
    if resp.status_code in (200, 201):
        print(f"  [OK] {label}")
        return resp.json()
    print(f"  [ERROR] {label}: {resp.status_code} {resp.text[:200]}")
    return None


def _headers_for(user_id: str, role: str) -> dict[str, str]:
    return {**HEADERS, "X-User-Id": user_id, "X-Role": role}


async def seed_directory(client: httpx.AsyncClient) -> None:
    print("\n--- Seeding directory ---")
    await _safe_put(client, f"{BASE_URL}/companies/{COMPANY_ID}", COMPANY, f"Company: {COMPANY['name']}")
    for user in USERS:
        body = {k: v for k, v in user.items() if k != "id"}
        await _safe_put(
            client,
            f"{BASE_URL}/companies/{COMPANY_ID}/users/{user['id']}",
            body,
            f"User: {user['name']} ({user['role']})",
        )


async def seed_workflow(client: httpx.AsyncClient) -> str | None:
    print("\n--- Seeding workflow ---")
    resp = await client.get(
        f"{BASE_URL}/companies/{COMPANY_ID}/approval-workflows",
        headers=HEADERS,
        params={"is_active": True},
    )
    if resp.status_code == 200 and resp.json()["items"]:
        workflow = resp.json()["items"][0]
        print(f"  [SKIP] Workflow '{workflow['name']}' already exists")
        return workflow["id"]

    workflow = await _safe_post(
        client,
        f"{BASE_URL}/companies/{COMPANY_ID}/approval-workflows",
        {"name": "Standard review", "is_active": True},
        "Workflow: Standard review",
    )
    if workflow is None:
        return None
    for approver_id in WORKFLOW_STEPS:
        await _safe_post(
            client,
            f"{BASE_URL}/companies/{COMPANY_ID}/approval-workflows/{workflow['id']}/steps",
            {"approver_id": approver_id},
            f"Step -> {approver_id[-4:]}",
        )
    return workflow["id"]


async def seed_rule(client: httpx.AsyncClient) -> None:
    print("\n--- Seeding approval rule ---")
    resp = await client.get(
        f"{BASE_URL}/companies/{COMPANY_ID}/approval-rules",
        headers=HEADERS,
        params={"is_active": True},
    )
    if resp.status_code == 200 and resp.json()["items"]:
        print("  [SKIP] An active rule already exists")
        return
    await _safe_post(client, f"{BASE_URL}/companies/{COMPANY_ID}/approval-rules", RULE, "Rule: hybrid 60% or director")


async def seed_expenses(client: httpx.AsyncClient) -> None:
    print("\n--- Seeding expenses ---")
    today = date.today()

    # Alice: goes through manager, finance, director. Manager approves step 1.
    resp = await client.post(
        f"{BASE_URL}/companies/{COMPANY_ID}/expenses",
        json={
            "employee_id": ALICE_ID,
            "amount": 412.5,
            "currency": "EUR",
            "converted_amount": 447.3,
            "category": "Travel",
            "description": "Client visit, Berlin",
            "expense_date": (today - timedelta(days=3)).isoformat(),
        },
        headers=_headers_for(ALICE_ID, "employee"),
    )
    if resp.status_code != 201:
        print(f"  [ERROR] Alice's expense: {resp.status_code} {resp.text[:200]}")
        return
    expense = resp.json()
    print(f"  [OK] Alice's expense ({len(expense['approval_chain'])}-step chain)")

    resp = await client.post(
        f"{BASE_URL}/companies/{COMPANY_ID}/expenses/{expense['id']}/decision",
        json={"decision": "approved", "comments": "Looks fine", "step_order": 1},
        headers=_headers_for(MANAGER_ID, "manager"),
    )
    if resp.status_code == 200:
        print(f"  [OK] Manager approved step 1; now at step {resp.json()['expense']['current_approval_step']}")
    else:
        print(f"  [ERROR] Manager decision: {resp.status_code} {resp.text[:200]}")

    # Dave: no manager, so the chain is the workflow plus the director.
    resp = await client.post(
        f"{BASE_URL}/companies/{COMPANY_ID}/expenses",
        json={
            "employee_id": DAVE_ID,
            "amount": 39.9,
            "currency": "USD",
            "converted_amount": 39.9,
            "category": "Meals",
            "description": "Team lunch",
            "expense_date": today.isoformat(),
        },
        headers=_headers_for(DAVE_ID, "employee"),
    )
    if resp.status_code == 201:
        print("  [OK] Dave's expense (PENDING)")
    else:
        print(f"  [ERROR] Dave's expense: {resp.status_code} {resp.text[:200]}")


async def main() -> None:
    print("=" * 60)
    print("  Expense Approvals - Development Seed Script")
    print("=" * 60)

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Health check
        try:
            resp = await client.get(f"{BASE_URL}/health")
            if resp.status_code != 200:
                print(f"API health check failed: {resp.status_code}")
                sys.exit(1)
            print("\n[OK] API is healthy")
        except httpx.ConnectError:
            print("ERROR: Cannot connect to API at", BASE_URL)
            print("Make sure the API is running")
            sys.exit(1)

        await seed_directory(client)
        await seed_workflow(client)
        await seed_rule(client)
        await seed_expenses(client)

    print("\n" + "=" * 60)
    print("  Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
