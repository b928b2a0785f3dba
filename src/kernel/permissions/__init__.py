"""
Permission Core - role catalog, grant and relationship ledgers, and the
authorization engine.
"""

from src.kernel.permissions.catalog import (
    ADMIN,
    DEFAULT_GRANTS,
    DEFAULT_PERMISSIONS,
    DEFAULT_ROLES,
    MENTOR,
    PARENT,
    STUDENT,
    RoleCatalog,
)
from src.kernel.permissions.grant_ledger import GrantLedger
from src.kernel.permissions.relationship_ledger import RelationshipLedger
from src.kernel.permissions.authorization import (
    AuthorizationEngine,
    OwnershipOrRoleRequirement,
    PermissionRequirement,
    PrincipalContext,
    RelationshipRequirement,
    RequestOrigin,
    Requirement,
    RoleRequirement,
    has_ownership_or_role,
    has_permission,
    has_role,
)

__all__ = [
    # Catalog
    "RoleCatalog",
    "STUDENT",
    "PARENT",
    "MENTOR",
    "ADMIN",
    "DEFAULT_ROLES",
    "DEFAULT_PERMISSIONS",
    "DEFAULT_GRANTS",
    # Ledgers
    "GrantLedger",
    "RelationshipLedger",
    # Engine
    "AuthorizationEngine",
    "PrincipalContext",
    "RequestOrigin",
    "Requirement",
    "RoleRequirement",
    "PermissionRequirement",
    "OwnershipOrRoleRequirement",
    "RelationshipRequirement",
    "has_role",
    "has_permission",
    "has_ownership_or_role",
]
