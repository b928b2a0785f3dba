"""
Administration endpoints: principal directory and audit trail.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query

from src.api.deps import AuditLogDep, Identity, require_admin
from src.kernel.audit.audit_log import AuditRecord
from src.kernel.models.base import as_utc
from src.schemas.audit import (
    ActivityLogListResponse,
    ActivityLogResponse,
    AdminUserListResponse,
    AdminUserResponse,
    StatisticsResponse,
)

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


def activity_response(record: AuditRecord) -> ActivityLogResponse:
    entry = record.entry
    return ActivityLogResponse(
        id=entry.id,
        user_id=entry.user_id,
        username=record.username,
        email=record.email,
        action=entry.action,
        resource=entry.resource,
        resource_id=entry.resource_id,
        details=entry.details or {},
        ip_address=entry.ip_address,
        user_agent=entry.user_agent,
        created_at=as_utc(entry.created_at),
    )


@router.get("/users", response_model=AdminUserListResponse)
async def list_users(
    identity: Identity,
    role: Optional[str] = None,
    search: Optional[str] = Query(None, max_length=255),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Page through principals, optionally by current role or name/email match."""
    principals, total = await identity.list_principals(
        role=role,
        search=search,
        limit=limit,
        offset=offset,
    )
    return AdminUserListResponse(
        users=[
            AdminUserResponse.model_validate(principal).model_copy(update={"roles": roles})
            for principal, roles in principals
        ],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/activity-logs", response_model=ActivityLogListResponse)
async def list_activity_logs(
    audit_log: AuditLogDep,
    user_id: Optional[uuid.UUID] = None,
    action: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    """Page through the audit trail, newest first."""
    records, total = await audit_log.query(
        principal_id=user_id,
        action=action,
        limit=limit,
        offset=offset,
    )
    return ActivityLogListResponse(
        logs=[activity_response(record) for record in records],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/statistics", response_model=StatisticsResponse)
async def get_statistics(identity: Identity):
    """Principal head counts: totals, recent sign-ups, activity and role holders."""
    return StatisticsResponse(**await identity.statistics())
