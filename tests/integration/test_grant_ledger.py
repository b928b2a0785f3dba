"""Integration tests for role assignment, revocation and expiry."""

from datetime import timedelta

import pytest

from src.kernel.errors import RoleNotFoundError
from src.kernel.models.base import as_utc, utcnow
from src.kernel.permissions.catalog import RoleCatalog
from src.kernel.permissions.grant_ledger import GrantLedger


@pytest.mark.asyncio
async def test_registration_grants_exactly_one_role(make_principal, grants: GrantLedger):
    kid = await make_principal("kid")

    assert await grants.effective_role_names(kid.id) == ["student"]


@pytest.mark.asyncio
async def test_reassign_reactivates_single_row(make_principal, grants: GrantLedger):
    kid = await make_principal("kid")
    await grants.assign_role(kid.id, "mentor")
    assert await grants.revoke_role(kid.id, "mentor") is True
    assert "mentor" not in await grants.effective_role_names(kid.id)

    await grants.assign_role(kid.id, "mentor")

    history = [a for a in await grants.assignment_history(kid.id) if a.role.name == "mentor"]
    assert len(history) == 1
    assert history[0].is_active is True
    assert "mentor" in await grants.effective_role_names(kid.id)


@pytest.mark.asyncio
async def test_revoke_keeps_history(make_principal, grants: GrantLedger):
    kid = await make_principal("kid")

    assert await grants.revoke_role(kid.id, "student") is True
    assert await grants.revoke_role(kid.id, "student") is False

    history = await grants.assignment_history(kid.id)
    assert [(a.role.name, a.is_active) for a in history] == [("student", False)]
    assert await grants.effective_role_names(kid.id) == []


@pytest.mark.asyncio
async def test_expired_grant_is_not_effective(make_principal, grants: GrantLedger):
    kid = await make_principal("kid")
    await grants.assign_role(kid.id, "mentor", expires_at=utcnow() + timedelta(hours=1))

    assert "mentor" in await grants.effective_role_names(kid.id)
    later = utcnow() + timedelta(hours=2)
    assert "mentor" not in await grants.effective_role_names(kid.id, now=later)

    # The row itself is untouched by expiry
    mentor = [a for a in await grants.assignment_history(kid.id) if a.role.name == "mentor"][0]
    assert mentor.is_active is True


@pytest.mark.asyncio
async def test_grant_in_the_past_is_never_effective(make_principal, grants: GrantLedger):
    kid = await make_principal("kid")
    await grants.assign_role(kid.id, "parent", expires_at=utcnow() - timedelta(minutes=1))

    assert "parent" not in await grants.effective_role_names(kid.id)


@pytest.mark.asyncio
async def test_reassign_without_expiry_clears_it(make_principal, grants: GrantLedger):
    kid = await make_principal("kid")
    await grants.assign_role(kid.id, "mentor", expires_at=utcnow() - timedelta(minutes=1))

    assignment = await grants.assign_role(kid.id, "mentor")

    assert assignment.expires_at is None
    assert "mentor" in await grants.effective_role_names(kid.id)


@pytest.mark.asyncio
async def test_reassign_replaces_expiry_and_granter(make_principal, grants: GrantLedger):
    kid = await make_principal("kid")
    boss = await make_principal("boss", role="admin")
    until = utcnow() + timedelta(days=3)

    assignment = await grants.assign_role(kid.id, "student", assigned_by=boss.id, expires_at=until)

    assert assignment.assigned_by == boss.id
    assert as_utc(assignment.expires_at) == until


@pytest.mark.asyncio
async def test_unknown_role_raises(make_principal, grants: GrantLedger):
    kid = await make_principal("kid")

    with pytest.raises(RoleNotFoundError):
        await grants.assign_role(kid.id, "wizard")
    with pytest.raises(RoleNotFoundError):
        await grants.revoke_role(kid.id, "wizard")


@pytest.mark.asyncio
async def test_permissions_are_the_union_of_effective_roles(make_principal, grants: GrantLedger):
    kid = await make_principal("kid")
    student_only = {p.name for p in await grants.effective_permissions(kid.id)}
    assert "progress.read_own" in student_only
    assert "students.manage" not in student_only

    await grants.assign_role(kid.id, "mentor")
    names = [p.name for p in await grants.effective_permissions(kid.id)]

    # documents.read comes from both roles but is listed once
    assert names.count("documents.read") == 1
    assert {"students.manage", "students.view_progress", "tasks.write"} <= set(names)


@pytest.mark.asyncio
async def test_catalog_seeding_is_idempotent(db_session):
    catalog = RoleCatalog(db_session)
    await catalog.ensure_defaults()
    await catalog.ensure_defaults()

    roles = [r.name for r in await catalog.list_roles()]
    assert roles == ["admin", "mentor", "parent", "student"]

    admin = await catalog.require_role("admin")
    assert len(await catalog.permissions_for_role(admin.id)) == 16
