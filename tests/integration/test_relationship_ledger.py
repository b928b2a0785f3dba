"""Integration tests for guardian and mentor edges."""

import uuid
from datetime import timedelta

import pytest

from src.kernel.errors import IdentifierValidationError, RecordNotFoundError
from src.kernel.models.base import as_utc, utcnow
from src.kernel.models.relationship import MentorshipStatus
from src.kernel.permissions.relationship_ledger import RelationshipLedger


@pytest.fixture
def ledger(db_session) -> RelationshipLedger:
    return RelationshipLedger(db_session)


class TestGuardianLinks:

    @pytest.mark.asyncio
    async def test_flags_default_to_true(self, make_principal, ledger: RelationshipLedger):
        alice = await make_principal("alice", role="parent")
        bob = await make_principal("bob")

        link = await ledger.link_guardian(alice.id, bob.id)

        assert link.relationship_type == "parent"
        assert link.is_primary is True
        assert link.can_view_progress is True
        assert link.can_manage_settings is True

    @pytest.mark.asyncio
    async def test_relink_updates_the_same_edge(self, make_principal, ledger: RelationshipLedger):
        alice = await make_principal("alice", role="parent")
        bob = await make_principal("bob")

        first = await ledger.link_guardian(alice.id, bob.id, can_view_progress=False)
        second = await ledger.link_guardian(alice.id, bob.id, relationship_type="guardian")

        assert second.id == first.id
        assert second.relationship_type == "guardian"
        # Unsupplied flags fall back to their defaults on update too
        assert second.can_view_progress is True
        assert len(await ledger.children_of(alice.id)) == 1

    @pytest.mark.asyncio
    async def test_missing_child_id(self, make_principal, ledger: RelationshipLedger):
        alice = await make_principal("alice", role="parent")

        with pytest.raises(IdentifierValidationError):
            await ledger.link_guardian(alice.id, None)

    @pytest.mark.asyncio
    async def test_unknown_child(self, make_principal, ledger: RelationshipLedger):
        alice = await make_principal("alice", role="parent")

        with pytest.raises(RecordNotFoundError):
            await ledger.link_guardian(alice.id, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_children_primary_first(self, make_principal, ledger: RelationshipLedger):
        alice = await make_principal("alice", role="parent")
        anna = await make_principal("anna")
        zed = await make_principal("zed")
        await ledger.link_guardian(alice.id, anna.id, is_primary=False)
        await ledger.link_guardian(alice.id, zed.id)

        children = await ledger.children_of(alice.id)

        assert [child.username for _, child in children] == ["zed", "anna"]

    @pytest.mark.asyncio
    async def test_edges_are_directed(self, make_principal, ledger: RelationshipLedger):
        alice = await make_principal("alice", role="parent")
        bob = await make_principal("bob")
        await ledger.link_guardian(alice.id, bob.id)

        assert await ledger.get_guardian_link(bob.id, alice.id) is None
        assert await ledger.children_of(bob.id) == []


class TestMentorLinks:

    @pytest.mark.asyncio
    async def test_new_edge_starts_active_now(self, make_principal, ledger: RelationshipLedger):
        carol = await make_principal("carol", role="mentor")
        dave = await make_principal("dave")
        before = utcnow()

        link = await ledger.link_mentor(carol.id, dave.id, organization_name="Chess Club")

        assert link.status == MentorshipStatus.ACTIVE.value
        assert link.is_active is True
        assert as_utc(link.start_date) >= before
        assert link.organization_name == "Chess Club"

    @pytest.mark.asyncio
    async def test_relink_keeps_start_date(self, make_principal, ledger: RelationshipLedger):
        carol = await make_principal("carol", role="mentor")
        dave = await make_principal("dave")
        started = utcnow() - timedelta(days=30)
        first = await ledger.link_mentor(carol.id, dave.id, start_date=started)
        await ledger.update_mentor_relationship(carol.id, dave.id, status=MentorshipStatus.ENDED)

        second = await ledger.link_mentor(carol.id, dave.id, notes="back again")

        assert second.id == first.id
        assert second.is_active is True
        assert as_utc(second.start_date) == started
        assert second.notes == "back again"

    @pytest.mark.asyncio
    async def test_partial_update(self, make_principal, ledger: RelationshipLedger):
        carol = await make_principal("carol", role="mentor")
        dave = await make_principal("dave")
        await ledger.link_mentor(carol.id, dave.id, notes="keep me")
        ended_at = utcnow()

        link = await ledger.update_mentor_relationship(
            carol.id, dave.id, status=MentorshipStatus.ENDED, end_date=ended_at
        )

        assert link.status == "ended"
        assert link.notes == "keep me"
        assert as_utc(link.end_date) == ended_at

    @pytest.mark.asyncio
    async def test_update_missing_edge(self, make_principal, ledger: RelationshipLedger):
        carol = await make_principal("carol", role="mentor")
        dave = await make_principal("dave")

        with pytest.raises(RecordNotFoundError):
            await ledger.update_mentor_relationship(carol.id, dave.id, notes="x")

    @pytest.mark.asyncio
    async def test_students_lists_active_only(self, make_principal, ledger: RelationshipLedger):
        carol = await make_principal("carol", role="mentor")
        dave = await make_principal("dave")
        erin = await make_principal("erin")
        await ledger.link_mentor(carol.id, dave.id)
        await ledger.link_mentor(carol.id, erin.id)
        await ledger.update_mentor_relationship(carol.id, dave.id, status=MentorshipStatus.ENDED)

        students = await ledger.students_of(carol.id)

        assert [student.username for _, student in students] == ["erin"]

    @pytest.mark.asyncio
    async def test_missing_student_id(self, make_principal, ledger: RelationshipLedger):
        carol = await make_principal("carol", role="mentor")

        with pytest.raises(IdentifierValidationError):
            await ledger.link_mentor(carol.id, None)
