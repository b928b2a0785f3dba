"""
Guardian (parent -> child) and mentor (mentor -> student) endpoints.

Managing edges needs the supervising role plus being that supervisor (or
an admin). Reading a supervised principal's progress needs the edge
itself, and for guardians the view-progress capability.
"""

import uuid
from typing import Annotated, Optional

from fastapi import APIRouter, Depends

from src.api.deps import (
    AuditLogDep,
    CurrentContext,
    Identity,
    Origin,
    Relationships,
    RequireOwnershipOrRoles,
    RequireRelationship,
    RequireRoles,
)
from src.api.v1.admin import activity_response
from src.config import get_settings
from src.kernel.audit.audit_log import AuditLog
from src.kernel.models.audit_entry import AuditAction
from src.kernel.models.relationship import GuardianCapability, RelationshipKind
from src.kernel.permissions.authorization import (
    PrincipalContext,
    RelationshipEdge,
    RequestOrigin,
)
from src.kernel.permissions.catalog import MENTOR, PARENT
from src.schemas.audit import StudentProgressResponse
from src.schemas.relationships import (
    ChildResponse,
    GuardianLinkCreate,
    GuardianLinkResponse,
    MentorLinkCreate,
    MentorLinkResponse,
    MentorLinkUpdate,
    ProgressResponse,
    StudentResponse,
)

router = APIRouter()

ADMIN = get_settings().admin_role
RECENT_ACTIVITY_LIMIT = 20

manage_children = [
    Depends(RequireRoles(PARENT, ADMIN)),
    Depends(RequireOwnershipOrRoles("parent_id", ADMIN)),
]
manage_students = [
    Depends(RequireRoles(MENTOR, ADMIN)),
    Depends(RequireOwnershipOrRoles("mentor_id", ADMIN)),
]

GuardianAccess = Annotated[
    Optional[RelationshipEdge],
    Depends(RequireRelationship(RelationshipKind.GUARDIAN, GuardianCapability.VIEW_PROGRESS)),
]
MentorAccess = Annotated[
    Optional[RelationshipEdge],
    Depends(RequireRelationship(RelationshipKind.MENTOR)),
]


def _record(
    audit_log: AuditLog,
    action: AuditAction,
    context: PrincipalContext,
    resource: str,
    resource_id: uuid.UUID,
    details: dict,
    origin: RequestOrigin,
) -> None:
    audit_log.record(
        action,
        user_id=context.principal_id,
        resource=resource,
        resource_id=resource_id,
        details=details,
        ip_address=origin.ip_address,
        user_agent=origin.user_agent,
    )


# Parents

@router.post(
    "/parents/{parent_id}/children",
    response_model=GuardianLinkResponse,
    dependencies=manage_children,
)
async def add_child(
    parent_id: uuid.UUID,
    data: GuardianLinkCreate,
    context: CurrentContext,
    relationships: Relationships,
    audit_log: AuditLogDep,
    origin: Origin,
):
    """Link a child to a parent, or replace the existing link's flags."""
    link = await relationships.link_guardian(
        parent_id,
        data.child_id,
        relationship_type=data.relationship_type,
        is_primary=data.is_primary,
        can_view_progress=data.can_view_progress,
        can_manage_settings=data.can_manage_settings,
    )
    _record(
        audit_log,
        AuditAction.ADD_CHILD,
        context,
        "parent_child_relationship",
        link.id,
        {"parent_id": parent_id, "child_id": data.child_id},
        origin,
    )
    return link


@router.get(
    "/parents/{parent_id}/children",
    response_model=list[ChildResponse],
    dependencies=manage_children,
)
async def list_children(parent_id: uuid.UUID, relationships: Relationships):
    """A parent's children, primary first."""
    return [
        ChildResponse(
            id=child.id,
            username=child.username,
            email=child.email,
            avatar_url=child.avatar_url,
            points=child.points,
            level=child.level,
            streak_days=child.streak_days,
            last_activity=child.last_activity,
            relationship_type=link.relationship_type,
            is_primary=link.is_primary,
            can_view_progress=link.can_view_progress,
            can_manage_settings=link.can_manage_settings,
        )
        for link, child in await relationships.children_of(parent_id)
    ]


@router.get(
    "/parents/{parent_id}/children/{child_id}/progress",
    response_model=ProgressResponse,
)
async def get_child_progress(
    parent_id: uuid.UUID,
    child_id: uuid.UUID,
    access: GuardianAccess,
    context: CurrentContext,
    identity: Identity,
    audit_log: AuditLogDep,
    origin: Origin,
):
    """A child's progress; needs a guardian link that allows viewing it."""
    progress = await identity.progress_summary(child_id)
    _record(
        audit_log,
        AuditAction.VIEW_CHILD_PROGRESS,
        context,
        "users",
        child_id,
        {"parent_id": parent_id},
        origin,
    )
    return ProgressResponse(**progress)


# Mentors

@router.post(
    "/mentors/{mentor_id}/students",
    response_model=MentorLinkResponse,
    dependencies=manage_students,
)
async def add_student(
    mentor_id: uuid.UUID,
    data: MentorLinkCreate,
    context: CurrentContext,
    relationships: Relationships,
    audit_log: AuditLogDep,
    origin: Origin,
):
    """Link a student to a mentor; re-linking reactivates the mentorship."""
    link = await relationships.link_mentor(
        mentor_id,
        data.student_id,
        organization_name=data.organization_name,
        start_date=data.start_date,
        notes=data.notes,
    )
    _record(
        audit_log,
        AuditAction.ADD_STUDENT,
        context,
        "mentor_student_relationship",
        link.id,
        {"mentor_id": mentor_id, "student_id": data.student_id},
        origin,
    )
    return link


@router.get(
    "/mentors/{mentor_id}/students",
    response_model=list[StudentResponse],
    dependencies=manage_students,
)
async def list_students(mentor_id: uuid.UUID, relationships: Relationships):
    """A mentor's active students, newest first."""
    return [
        StudentResponse(
            id=student.id,
            username=student.username,
            email=student.email,
            avatar_url=student.avatar_url,
            points=student.points,
            level=student.level,
            streak_days=student.streak_days,
            last_activity=student.last_activity,
            organization_name=link.organization_name,
            start_date=link.start_date,
            status=link.status,
            notes=link.notes,
        )
        for link, student in await relationships.students_of(mentor_id)
    ]


@router.put(
    "/mentors/{mentor_id}/students/{student_id}",
    response_model=MentorLinkResponse,
    dependencies=manage_students,
)
async def update_student_relationship(
    mentor_id: uuid.UUID,
    student_id: uuid.UUID,
    data: MentorLinkUpdate,
    context: CurrentContext,
    relationships: Relationships,
    audit_log: AuditLogDep,
    origin: Origin,
):
    """Update status, notes or end date of a mentorship."""
    link = await relationships.update_mentor_relationship(
        mentor_id,
        student_id,
        status=data.status,
        notes=data.notes,
        end_date=data.end_date,
    )
    _record(
        audit_log,
        AuditAction.UPDATE_STUDENT_RELATIONSHIP,
        context,
        "mentor_student_relationship",
        link.id,
        data.model_dump(mode="json", exclude_none=True),
        origin,
    )
    return link


@router.get(
    "/mentors/{mentor_id}/students/{student_id}/progress",
    response_model=StudentProgressResponse,
)
async def get_student_progress(
    mentor_id: uuid.UUID,
    student_id: uuid.UUID,
    access: MentorAccess,
    context: CurrentContext,
    identity: Identity,
    audit_log: AuditLogDep,
    origin: Origin,
):
    """A student's progress and recent activity; needs an active mentorship."""
    progress = await identity.progress_summary(student_id)
    records, _ = await audit_log.query(principal_id=student_id, limit=RECENT_ACTIVITY_LIMIT)
    _record(
        audit_log,
        AuditAction.VIEW_STUDENT_PROGRESS,
        context,
        "users",
        student_id,
        {"mentor_id": mentor_id},
        origin,
    )

    return StudentProgressResponse(
        progress=ProgressResponse(**progress),
        recent_activities=[activity_response(record) for record in records],
    )
