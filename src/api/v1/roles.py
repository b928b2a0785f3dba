"""
Role catalog and role assignment endpoints.
"""

import uuid

from fastapi import APIRouter, Depends

from src.api.deps import (
    AdminContext,
    AuditLogDep,
    Catalog,
    Grants,
    Identity,
    Origin,
    RequireOwnershipOrRoles,
    RequirePermissions,
    get_principal_context,
)
from src.config import get_settings
from src.kernel.errors import RoleNotFoundError
from src.kernel.models.audit_entry import AuditAction
from src.kernel.models.base import as_utc
from src.kernel.models.role import RoleAssignment
from src.schemas.common import MessageResponse
from src.schemas.roles import (
    PermissionResponse,
    RoleAssignmentResponse,
    RoleAssignRequest,
    RoleResponse,
    UserPermissionsResponse,
    UserRoleResponse,
    UserRolesResponse,
)

router = APIRouter()

self_or_admin = RequireOwnershipOrRoles("user_id", get_settings().admin_role)


def assignment_response(assignment: RoleAssignment) -> RoleAssignmentResponse:
    return RoleAssignmentResponse(
        id=assignment.id,
        user_id=assignment.user_id,
        role_id=assignment.role_id,
        role_name=assignment.role.name,
        assigned_by=assignment.assigned_by,
        assigned_at=assignment.assigned_at,
        expires_at=assignment.expires_at,
        is_active=assignment.is_active,
    )


@router.get(
    "/roles",
    response_model=list[RoleResponse],
    dependencies=[Depends(get_principal_context)],
)
async def list_roles(catalog: Catalog):
    """List every role in the catalog."""
    return await catalog.list_roles()


@router.get(
    "/roles/{role_id}/permissions",
    response_model=list[PermissionResponse],
    dependencies=[Depends(RequirePermissions("roles.manage"))],
)
async def list_role_permissions(role_id: uuid.UUID, catalog: Catalog):
    """Permissions granted by a role (needs ``roles.manage``)."""
    role = await catalog.get_role_by_id(role_id)
    if role is None:
        raise RoleNotFoundError(details={"role_id": str(role_id)})
    return await catalog.permissions_for_role(role.id)


@router.post("/users/{user_id}/roles", response_model=RoleAssignmentResponse)
async def assign_role(
    user_id: uuid.UUID,
    data: RoleAssignRequest,
    admin: AdminContext,
    grants: Grants,
    identity: Identity,
    audit_log: AuditLogDep,
    origin: Origin,
):
    """
    Grant a role to a principal (admin only).

    Re-granting a held or revoked role reactivates it and replaces its expiry.
    """
    await identity.require_principal(user_id)
    assignment = await grants.assign_role(
        user_id,
        data.role_name,
        assigned_by=admin.principal_id,
        expires_at=data.expires_at,
    )

    audit_log.record(
        AuditAction.ASSIGN_ROLE,
        user_id=admin.principal_id,
        resource="users",
        resource_id=user_id,
        details={"role": data.role_name, "expires_at": assignment.expires_at},
        ip_address=origin.ip_address,
        user_agent=origin.user_agent,
    )
    return assignment_response(assignment)


@router.delete("/users/{user_id}/roles/{role_name}", response_model=MessageResponse)
async def remove_role(
    user_id: uuid.UUID,
    role_name: str,
    admin: AdminContext,
    grants: Grants,
    audit_log: AuditLogDep,
    origin: Origin,
):
    """Deactivate a principal's role (admin only). The grant is kept as history."""
    revoked = await grants.revoke_role(user_id, role_name)

    audit_log.record(
        AuditAction.REMOVE_ROLE,
        user_id=admin.principal_id,
        resource="users",
        resource_id=user_id,
        details={"role": role_name, "was_active": revoked},
        ip_address=origin.ip_address,
        user_agent=origin.user_agent,
    )
    return MessageResponse(message="Role removed successfully")


@router.get(
    "/users/{user_id}/roles",
    response_model=UserRolesResponse,
    dependencies=[Depends(self_or_admin)],
)
async def get_user_roles(user_id: uuid.UUID, grants: Grants):
    """A principal's effective roles (self or admin)."""
    assignments = await grants.effective_roles(user_id)
    return UserRolesResponse(
        user_id=user_id,
        roles=[
            UserRoleResponse(
                name=a.role.name,
                display_name=a.role.display_name,
                description=a.role.description,
                assigned_at=as_utc(a.assigned_at),
                expires_at=as_utc(a.expires_at),
            )
            for a in assignments
        ],
    )


@router.get(
    "/users/{user_id}/permissions",
    response_model=UserPermissionsResponse,
    dependencies=[Depends(self_or_admin)],
)
async def get_user_permissions(user_id: uuid.UUID, grants: Grants):
    """A principal's effective permissions (self or admin)."""
    permissions = await grants.effective_permissions(user_id)
    return UserPermissionsResponse(
        user_id=user_id,
        permissions=[PermissionResponse.model_validate(p) for p in permissions],
    )
