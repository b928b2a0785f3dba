"""
Role catalog and grant ledger schemas.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class RoleResponse(BaseModel):
    """Catalog role."""

    id: uuid.UUID
    name: str
    display_name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class PermissionResponse(BaseModel):
    """Catalog permission."""

    id: uuid.UUID
    name: str
    display_name: str
    description: Optional[str] = None
    resource: str
    action: str

    class Config:
        from_attributes = True


class RoleAssignRequest(BaseModel):
    """Grant a role, optionally until ``expires_at``."""

    role_name: str = Field(..., min_length=1, max_length=50)
    expires_at: Optional[datetime] = None


class RoleAssignmentResponse(BaseModel):
    """Grant ledger entry."""

    id: uuid.UUID
    user_id: uuid.UUID
    role_id: uuid.UUID
    role_name: str
    assigned_by: Optional[uuid.UUID] = None
    assigned_at: datetime
    expires_at: Optional[datetime] = None
    is_active: bool


class UserRoleResponse(BaseModel):
    """An effective role held by a principal."""

    name: str
    display_name: str
    description: Optional[str] = None
    assigned_at: datetime
    expires_at: Optional[datetime] = None


class UserRolesResponse(BaseModel):
    user_id: uuid.UUID
    roles: list[UserRoleResponse]


class UserPermissionsResponse(BaseModel):
    user_id: uuid.UUID
    permissions: list[PermissionResponse]
