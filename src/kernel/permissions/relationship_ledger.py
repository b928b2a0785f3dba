"""
Relationship ledger: delegated-access edges between principals.

Guardian edges (parent -> child) carry capability flags. Mentor edges
(mentor -> student) carry a status; ending a mentorship is a status change,
never a delete. Linking the same pair twice updates the existing edge.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.kernel.errors import IdentifierValidationError, RecordNotFoundError
from src.kernel.models.base import as_utc, utcnow
from src.kernel.models.principal import Principal
from src.kernel.models.relationship import GuardianLink, MentorLink, MentorshipStatus


class RelationshipLedger:
    """Service for creating, listing and updating relationship edges."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _require_principal(
        self,
        principal_id: Optional[uuid.UUID],
        field: str,
        label: str,
    ) -> Principal:
        if principal_id is None:
            raise IdentifierValidationError(f"{label} ID is required", {"field": field})
        principal = await self.session.get(Principal, principal_id)
        if principal is None:
            raise RecordNotFoundError(f"{label} not found", {"field": field})
        return principal

    # Guardian edges

    async def get_guardian_link(
        self,
        parent_id: uuid.UUID,
        child_id: uuid.UUID,
    ) -> Optional[GuardianLink]:
        query = select(GuardianLink).where(
            and_(
                GuardianLink.parent_id == parent_id,
                GuardianLink.child_id == child_id,
            )
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def link_guardian(
        self,
        parent_id: uuid.UUID,
        child_id: Optional[uuid.UUID],
        relationship_type: Optional[str] = None,
        is_primary: Optional[bool] = None,
        can_view_progress: Optional[bool] = None,
        can_manage_settings: Optional[bool] = None,
    ) -> GuardianLink:
        """
        Create or replace a parent -> child edge.

        Flags not supplied fall back to their defaults (all true,
        relationship type ``parent``), on insert and on update alike.

        Raises:
            IdentifierValidationError: child_id missing
            RecordNotFoundError: No principal with that child_id
        """
        await self._require_principal(child_id, "child_id", "Child")

        values = {
            "relationship_type": relationship_type or "parent",
            "is_primary": True if is_primary is None else is_primary,
            "can_view_progress": True if can_view_progress is None else can_view_progress,
            "can_manage_settings": True if can_manage_settings is None else can_manage_settings,
        }

        link = await self.get_guardian_link(parent_id, child_id)
        if link is None:
            link = GuardianLink(parent_id=parent_id, child_id=child_id, **values)
            self.session.add(link)
        else:
            for key, value in values.items():
                setattr(link, key, value)

        await self.session.flush()
        return link

    async def children_of(self, parent_id: uuid.UUID) -> list[tuple[GuardianLink, Principal]]:
        """Guardian edges with the child's profile, primary first then by username."""
        query = (
            select(GuardianLink, Principal)
            .join(Principal, Principal.id == GuardianLink.child_id)
            .where(GuardianLink.parent_id == parent_id)
            .order_by(GuardianLink.is_primary.desc(), Principal.username)
        )
        result = await self.session.execute(query)
        return [(link, child) for link, child in result.all()]

    # Mentor edges

    async def get_mentor_link(
        self,
        mentor_id: uuid.UUID,
        student_id: uuid.UUID,
    ) -> Optional[MentorLink]:
        query = select(MentorLink).where(
            and_(
                MentorLink.mentor_id == mentor_id,
                MentorLink.student_id == student_id,
            )
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def link_mentor(
        self,
        mentor_id: uuid.UUID,
        student_id: Optional[uuid.UUID],
        organization_name: Optional[str] = None,
        start_date: Optional[datetime] = None,
        status: Optional[MentorshipStatus] = None,
        notes: Optional[str] = None,
    ) -> MentorLink:
        """
        Create or refresh a mentor -> student edge.

        A new edge starts ``active`` at ``start_date`` (now if omitted).
        Re-linking an existing pair resets organization, status and notes
        but keeps the original start date.

        Raises:
            IdentifierValidationError: student_id missing
            RecordNotFoundError: No principal with that student_id
        """
        await self._require_principal(student_id, "student_id", "Student")
        status_value = MentorshipStatus(status or MentorshipStatus.ACTIVE).value

        link = await self.get_mentor_link(mentor_id, student_id)
        if link is None:
            link = MentorLink(
                mentor_id=mentor_id,
                student_id=student_id,
                organization_name=organization_name,
                start_date=as_utc(start_date) or utcnow(),
                status=status_value,
                notes=notes,
            )
            self.session.add(link)
        else:
            link.organization_name = organization_name
            link.status = status_value
            link.notes = notes

        await self.session.flush()
        return link

    async def students_of(self, mentor_id: uuid.UUID) -> list[tuple[MentorLink, Principal]]:
        """Active mentor edges with the student's profile, newest start first."""
        query = (
            select(MentorLink, Principal)
            .join(Principal, Principal.id == MentorLink.student_id)
            .where(
                MentorLink.mentor_id == mentor_id,
                MentorLink.status == MentorshipStatus.ACTIVE.value,
            )
            .order_by(MentorLink.start_date.desc())
        )
        result = await self.session.execute(query)
        return [(link, student) for link, student in result.all()]

    async def update_mentor_relationship(
        self,
        mentor_id: uuid.UUID,
        student_id: uuid.UUID,
        status: Optional[MentorshipStatus] = None,
        notes: Optional[str] = None,
        end_date: Optional[datetime] = None,
    ) -> MentorLink:
        """
        Partially update a mentor edge; ``None`` leaves a field unchanged.

        Raises:
            RecordNotFoundError: No edge for the pair
        """
        link = await self.get_mentor_link(mentor_id, student_id)
        if link is None:
            raise RecordNotFoundError(
                "Relationship not found",
                {"mentor_id": str(mentor_id), "student_id": str(student_id)},
            )

        if status is not None:
            link.status = MentorshipStatus(status).value
        if notes is not None:
            link.notes = notes
        if end_date is not None:
            link.end_date = as_utc(end_date)

        await self.session.flush()
        return link
