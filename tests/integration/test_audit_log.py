"""Integration tests for the fire-and-forget audit trail."""

import asyncio
import uuid

import pytest

from src.kernel.audit.audit_log import AuditLog
from src.kernel.models.audit_entry import AuditAction


@pytest.mark.asyncio
async def test_record_returns_before_the_write(audit_log: AuditLog):
    entry = audit_log.record(AuditAction.USER_LOGIN, user_id=uuid.uuid4())

    assert audit_log.pending == 1
    assert entry.id is not None
    assert entry.created_at is not None

    await audit_log.drain()
    assert audit_log.pending == 0


@pytest.mark.asyncio
async def test_query_filters_and_orders_newest_first(audit_log: AuditLog):
    actor = uuid.uuid4()
    audit_log.record(AuditAction.ASSIGN_ROLE, user_id=actor, details={"role": "mentor"})
    await asyncio.sleep(0.01)
    audit_log.record(AuditAction.REMOVE_ROLE, user_id=actor, details={"role": "mentor"})
    audit_log.record(AuditAction.USER_LOGIN, user_id=uuid.uuid4())
    await audit_log.drain()

    records, total = await audit_log.query(principal_id=actor)
    assert total == 2
    assert [r.entry.action for r in records] == ["remove_role", "assign_role"]

    records, total = await audit_log.query(action="user_login")
    assert total == 1
    assert records[0].username is None  # actor has no profile


@pytest.mark.asyncio
async def test_query_pages(audit_log: AuditLog):
    for _ in range(5):
        audit_log.record(AuditAction.USER_LOGIN)
    await audit_log.drain()

    records, total = await audit_log.query(limit=2, offset=4)

    assert total == 5
    assert len(records) == 1


@pytest.mark.asyncio
async def test_details_are_stored_as_json(audit_log: AuditLog):
    target = uuid.uuid4()
    audit_log.record(
        AuditAction.UNAUTHORIZED_ACCESS_ATTEMPT,
        resource="ownership_check",
        resource_id=target,
        details={"target_id": target, "user_roles": frozenset({"student"})},
    )
    await audit_log.drain()

    records, _ = await audit_log.query()
    entry = records[0].entry
    assert entry.resource_id == str(target)
    assert entry.details == {"target_id": str(target), "user_roles": ["student"]}


@pytest.mark.asyncio
async def test_failed_write_is_logged_not_raised(audit_log: AuditLog, monkeypatch, caplog):
    async def broken(entry):
        raise RuntimeError("store is down")

    monkeypatch.setattr(audit_log, "write", broken)

    audit_log.record(AuditAction.USER_LOGIN, user_id=uuid.uuid4())
    await audit_log.drain()

    assert "Failed to write audit entry" in caplog.text


@pytest.mark.asyncio
async def test_audit_survives_caller_rollback(make_principal, db_session, audit_log: AuditLog):
    """Entries are written on their own session, so a rolled-back caller keeps them."""
    bob = await make_principal("bob")
    bob_id = bob.id
    await db_session.rollback()
    await audit_log.drain()

    records, _ = await audit_log.query(principal_id=bob_id)

    assert [r.entry.action for r in records] == ["user_registered"]
