"""
Access Kernel

The foundational access-control layer:
- Identity Core (principals, credentials, bearer tokens)
- Permission Core (role catalog, grant ledger, relationship ledger, authorization engine)
- Audit Core (append-only trail of sensitive actions and denials)

Invariants:
- Effective roles are re-derived from the grant ledger on every request
- Every denial is audited before the error reaches the caller
- Audit writes never fail or block the request they describe
"""

from src.kernel.models import (
    AuditAction,
    AuditEntry,
    GuardianCapability,
    GuardianLink,
    MentorLink,
    MentorshipStatus,
    Permission,
    Principal,
    RelationshipKind,
    Role,
    RoleAssignment,
    RolePermission,
)

__all__ = [
    # Identity
    "Principal",
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
