"""Integration tests for role catalog and role assignment endpoints."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_list_roles_needs_authentication(client: AsyncClient, register):
    _, headers = await register("kid")

    anonymous = await client.get("/api/v1/roles")
    authenticated = await client.get("/api/v1/roles", headers=headers)

    assert anonymous.status_code == 401
    assert authenticated.status_code == 200
    assert [r["name"] for r in authenticated.json()] == ["admin", "mentor", "parent", "student"]


@pytest.mark.asyncio
async def test_role_permissions_need_roles_manage(client: AsyncClient, register, admin, audit_log):
    kid_id, kid_headers = await register("kid")
    _, admin_headers = admin
    roles = (await client.get("/api/v1/roles", headers=admin_headers)).json()
    parent_role = next(r for r in roles if r["name"] == "parent")

    denied = await client.get(f"/api/v1/roles/{parent_role['id']}/permissions", headers=kid_headers)
    allowed = await client.get(f"/api/v1/roles/{parent_role['id']}/permissions", headers=admin_headers)

    assert denied.status_code == 403
    assert denied.json()["code"] == "insufficient_permission"
    assert denied.json()["required_permissions"] == ["roles.manage"]
    assert {p["name"] for p in allowed.json()} == {
        "children.manage",
        "children.view_progress",
        "progress.read_own",
    }

    await audit_log.drain()
    records, _ = await audit_log.query(principal_id=uuid.UUID(kid_id), action="unauthorized_access_attempt")
    assert len(records) == 1
    assert records[0].entry.resource == "permission_check"
    assert records[0].entry.details["required_permissions"] == ["roles.manage"]
    assert "roles.manage" not in records[0].entry.details["user_permissions"]


@pytest.mark.asyncio
async def test_unknown_role_id(client: AsyncClient, admin):
    _, admin_headers = admin

    response = await client.get(
        "/api/v1/roles/00000000-0000-0000-0000-000000000000/permissions",
        headers=admin_headers,
    )

    assert response.status_code == 404
    assert response.json()["code"] == "role_not_found"


@pytest.mark.asyncio
async def test_assign_and_remove_role(client: AsyncClient, register, admin):
    kid_id, kid_headers = await register("kid")
    admin_id, admin_headers = admin

    assigned = await client.post(
        f"/api/v1/users/{kid_id}/roles",
        json={"role_name": "mentor"},
        headers=admin_headers,
    )
    assert assigned.status_code == 200
    assert assigned.json()["role_name"] == "mentor"
    assert assigned.json()["assigned_by"] == admin_id

    roles = await client.get(f"/api/v1/users/{kid_id}/roles", headers=kid_headers)
    assert [r["name"] for r in roles.json()["roles"]] == ["mentor", "student"]

    removed = await client.delete(f"/api/v1/users/{kid_id}/roles/mentor", headers=admin_headers)
    assert removed.status_code == 200

    roles = await client.get(f"/api/v1/users/{kid_id}/roles", headers=kid_headers)
    assert [r["name"] for r in roles.json()["roles"]] == ["student"]


@pytest.mark.asyncio
async def test_assign_with_expiry(client: AsyncClient, register, admin):
    kid_id, kid_headers = await register("kid")
    _, admin_headers = admin
    past = (datetime.now(timezone.utc) - timedelta(minutes=5)).isoformat()

    response = await client.post(
        f"/api/v1/users/{kid_id}/roles",
        json={"role_name": "parent", "expires_at": past},
        headers=admin_headers,
    )
    profile = await client.get("/api/v1/auth/profile", headers=kid_headers)

    assert response.status_code == 200
    assert "parent" not in profile.json()["roles"]


@pytest.mark.asyncio
async def test_assign_unknown_role(client: AsyncClient, register, admin):
    kid_id, _ = await register("kid")
    _, admin_headers = admin

    response = await client.post(
        f"/api/v1/users/{kid_id}/roles",
        json={"role_name": "wizard"},
        headers=admin_headers,
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_assign_to_unknown_principal(client: AsyncClient, admin):
    _, admin_headers = admin

    response = await client.post(
        "/api/v1/users/00000000-0000-0000-0000-000000000001/roles",
        json={"role_name": "mentor"},
        headers=admin_headers,
    )

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


@pytest.mark.asyncio
async def test_non_admin_cannot_assign(client: AsyncClient, register):
    kid_id, kid_headers = await register("kid")

    response = await client.post(
        f"/api/v1/users/{kid_id}/roles",
        json={"role_name": "admin"},
        headers=kid_headers,
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_roles_are_self_or_admin(client: AsyncClient, register, admin):
    kid_id, _ = await register("kid")
    _, other_headers = await register("other")
    _, admin_headers = admin

    other = await client.get(f"/api/v1/users/{kid_id}/roles", headers=other_headers)
    by_admin = await client.get(f"/api/v1/users/{kid_id}/permissions", headers=admin_headers)

    assert other.status_code == 403
    assert by_admin.status_code == 200
    assert "progress.read_own" in {p["name"] for p in by_admin.json()["permissions"]}


@pytest.mark.asyncio
async def test_malformed_user_id(client: AsyncClient, register):
    _, headers = await register("kid")

    response = await client.get("/api/v1/users/not-a-uuid/roles", headers=headers)

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


@pytest.mark.asyncio
async def test_error_responses_are_documented(client: AsyncClient):
    response = await client.get("/openapi.json")

    assert response.status_code == 200
    operation = response.json()["paths"]["/api/v1/users/{user_id}/roles"]["get"]
    denied = operation["responses"]["403"]["content"]["application/json"]["schema"]
    assert denied["$ref"].endswith("/ErrorResponse")
