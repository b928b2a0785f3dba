"""
Kernel Data Models

SQLAlchemy models for identity, the role/permission catalog, the grant and
relationship ledgers, and the audit trail.
"""

from src.kernel.models.base import Base, TimestampMixin, as_utc, generate_uuid, utcnow
from src.kernel.models.principal import Principal, level_for_points
from src.kernel.models.role import Permission, Role, RoleAssignment, RolePermission
from src.kernel.models.relationship import (
    GuardianCapability,
    GuardianLink,
    MentorLink,
    MentorshipStatus,
    RelationshipKind,
)
from src.kernel.models.audit_entry import AuditAction, AuditEntry

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "as_utc",
    "generate_uuid",
    "utcnow",
    # Identity
    "Principal",
    "level_for_points",
    # Catalog & grants
    "Role",
    "Permission",
    "RolePermission",
    "RoleAssignment",
    # Relationships
    "RelationshipKind",
    "GuardianCapability",
    "GuardianLink",
    "MentorshipStatus",
    "MentorLink",
    # Audit
    "AuditAction",
    "AuditEntry",
]
