"""
Pydantic schemas for API request/response validation.
"""

from src.schemas.auth import (
    ChangePasswordRequest,
    DeleteAccountRequest,
    LoginRequest,
    ProfileResponse,
    ProfileUpdate,
    RegisterRequest,
    TokenResponse,
)
from src.schemas.roles import (
    PermissionResponse,
    RoleAssignmentResponse,
    RoleAssignRequest,
    RoleResponse,
    UserPermissionsResponse,
    UserRoleResponse,
    UserRolesResponse,
)
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
from src.schemas.audit import (
    ActivityLogListResponse,
    ActivityLogResponse,
    AdminUserListResponse,
    AdminUserResponse,
    StatisticsResponse,
    StudentProgressResponse,
)
from src.schemas.common import ErrorResponse, HealthResponse, MessageResponse

__all__ = [
    # Auth
    "RegisterRequest",
    "LoginRequest",
    "ProfileResponse",
    "ProfileUpdate",
    "TokenResponse",
    "ChangePasswordRequest",
    "DeleteAccountRequest",
    # Roles
    "RoleResponse",
    "PermissionResponse",
    "RoleAssignRequest",
    "RoleAssignmentResponse",
    "UserRoleResponse",
    "UserRolesResponse",
    "UserPermissionsResponse",
    # Relationships
    "GuardianLinkCreate",
    "GuardianLinkResponse",
    "ChildResponse",
    "MentorLinkCreate",
    "MentorLinkUpdate",
    "MentorLinkResponse",
    "StudentResponse",
    "ProgressResponse",
    # Audit & admin
    "ActivityLogResponse",
    "ActivityLogListResponse",
    "StudentProgressResponse",
    "AdminUserResponse",
    "AdminUserListResponse",
    "StatisticsResponse",
    # Common
    "ErrorResponse",
    "MessageResponse",
    "HealthResponse",
]
