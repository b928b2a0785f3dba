"""
Authorization engine.

A request is authorized in two steps. First ``load_context`` resolves the
principal's live profile together with its effective roles and
permissions; this is recomputed for every request because grants expire
with the clock. Then ``authorize`` evaluates one requirement against that
context:

- ``RoleRequirement``: holds any of the roles
- ``PermissionRequirement``: holds any of the permissions
- ``OwnershipOrRoleRequirement``: is the target principal, or holds any of the roles
- ``RelationshipRequirement``: has a usable edge to the supervised principal
  (admins always pass), optionally with a specific capability flag

Every denial records exactly one ``unauthorized_access_attempt`` audit
entry before the error is raised. The audit write is fire-and-forget and
never changes the decision.
"""

import uuid
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import get_settings
from src.kernel.audit.audit_log import AuditLog
from src.kernel.errors import (
    AccessError,
    AuthorizationUnavailableError,
    CapabilityDeniedError,
    IdentifierValidationError,
    InsufficientPermissionError,
    InsufficientRoleError,
    PrincipalNotFoundError,
    RelationshipNotFoundError,
)
from src.kernel.models.audit_entry import AuditAction
from src.kernel.models.base import utcnow
from src.kernel.models.principal import Principal
from src.kernel.models.relationship import (
    GuardianCapability,
    GuardianLink,
    MentorLink,
    RelationshipKind,
)
from src.kernel.models.role import Permission, RoleAssignment
from src.kernel.permissions.grant_ledger import GrantLedger
from src.kernel.permissions.relationship_ledger import RelationshipLedger
from src.logging_config import get_logger

logger = get_logger(__name__)

RelationshipEdge = Union[GuardianLink, MentorLink]

# Denials that are audited; other AccessErrors pass through untouched
DENIALS = (
    InsufficientRoleError,
    InsufficientPermissionError,
    RelationshipNotFoundError,
    CapabilityDeniedError,
)


@dataclass(frozen=True)
class PrincipalContext:
    """A principal with its effective roles and permissions at load time."""

    principal: Principal
    roles: frozenset[str]
    permissions: frozenset[str]
    role_assignments: tuple[RoleAssignment, ...] = ()
    permission_details: tuple[Permission, ...] = ()

    @property
    def principal_id(self) -> uuid.UUID:
        return self.principal.id


@dataclass(frozen=True)
class RequestOrigin:
    """Where a request came from, for the audit trail."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


# Requirements

@dataclass(frozen=True)
class RoleRequirement:
    roles: tuple[str, ...]


@dataclass(frozen=True)
class PermissionRequirement:
    permissions: tuple[str, ...]


@dataclass(frozen=True)
class OwnershipOrRoleRequirement:
    target_id: uuid.UUID
    roles: tuple[str, ...]


@dataclass(frozen=True)
class RelationshipRequirement:
    kind: RelationshipKind
    supervisor_id: uuid.UUID
    supervised_id: Optional[uuid.UUID]
    capability: Optional[GuardianCapability] = None


Requirement = Union[
    RoleRequirement,
    PermissionRequirement,
    OwnershipOrRoleRequirement,
    RelationshipRequirement,
]


def _as_names(names: Union[str, Iterable[str]]) -> frozenset[str]:
    if isinstance(names, str):
        return frozenset((names,))
    return frozenset(names)


# Pure predicates (OR semantics over the requested names)

def has_role(context: PrincipalContext, roles: Union[str, Iterable[str]]) -> bool:
    return not context.roles.isdisjoint(_as_names(roles))


def has_permission(
    context: PrincipalContext,
    permissions: Union[str, Iterable[str]],
) -> bool:
    return not context.permissions.isdisjoint(_as_names(permissions))


def has_ownership_or_role(
    context: PrincipalContext,
    target_id: uuid.UUID,
    allowed_roles: Union[str, Iterable[str]],
) -> bool:
    """Self access is always allowed; otherwise fall back to a role check."""
    return context.principal_id == target_id or has_role(context, allowed_roles)


@dataclass
class _Denial:
    error: AccessError
    resource: str
    details: dict = field(default_factory=dict)


class AuthorizationEngine:
    """
    Resolves principal contexts and evaluates requirements against them.

    Usage:
        engine = AuthorizationEngine(session, audit_log)
        context = await engine.load_context(claims.principal_id)
        await engine.authorize(context, RoleRequirement(("admin",)), origin)
    """

    def __init__(
        self,
        session: AsyncSession,
        audit_log: AuditLog,
        admin_role: Optional[str] = None,
    ):
        self.session = session
        self.audit_log = audit_log
        self.admin_role = admin_role or get_settings().admin_role
        self.grants = GrantLedger(session)
        self.relationships = RelationshipLedger(session)

    async def load_context(self, principal_id: uuid.UUID) -> PrincipalContext:
        """
        Load the live profile and effective roles/permissions.

        Raises:
            PrincipalNotFoundError: The principal no longer exists or is disabled
            AuthorizationUnavailableError: The store failed while loading
        """
        now = utcnow()
        try:
            principal = await self.session.get(
                Principal, principal_id, populate_existing=True
            )
            if principal is None or not principal.is_active:
                raise PrincipalNotFoundError()

            assignments = await self.grants.effective_roles(principal_id, now)
            permissions = await self.grants.effective_permissions(principal_id, now)
        except SQLAlchemyError as exc:
            logger.exception(
                "Failed to load principal context",
                extra={"principal_id": str(principal_id)},
            )
            raise AuthorizationUnavailableError() from exc

        return PrincipalContext(
            principal=principal,
            roles=frozenset(a.role.name for a in assignments),
            permissions=frozenset(p.name for p in permissions),
            role_assignments=tuple(assignments),
            permission_details=tuple(permissions),
        )

    async def authorize(
        self,
        context: PrincipalContext,
        requirement: Requirement,
        origin: Optional[RequestOrigin] = None,
    ) -> Optional[RelationshipEdge]:
        """
        Evaluate one requirement; raise on denial.

        Returns:
            The relationship edge for a ``RelationshipRequirement`` (None when
            an admin passes without one), otherwise None
        """
        try:
            return await self._evaluate(context, requirement)
        except DENIALS as exc:
            denial = self._describe(context, requirement, exc)
            self._record_denial(context, denial, origin or RequestOrigin())
            raise

    async def resolve_relationship_access(
        self,
        context: PrincipalContext,
        kind: RelationshipKind,
        supervisor_id: uuid.UUID,
        supervised_id: Optional[uuid.UUID],
        origin: Optional[RequestOrigin] = None,
    ) -> Optional[RelationshipEdge]:
        """
        Look up the edge that lets ``context`` act for ``supervised_id``.

        Admins pass even without an edge (None is returned then). Callers
        that need a specific capability check it on the returned edge or
        put it in a ``RelationshipRequirement``.
        """
        return await self.authorize(
            context,
            RelationshipRequirement(kind, supervisor_id, supervised_id),
            origin,
        )

    async def _evaluate(
        self,
        context: PrincipalContext,
        requirement: Requirement,
    ) -> Optional[RelationshipEdge]:
        if isinstance(requirement, RoleRequirement):
            if not has_role(context, requirement.roles):
                raise InsufficientRoleError(
                    "This action requires one of the following roles: "
                    + ", ".join(requirement.roles),
                    {"required_roles": list(requirement.roles)},
                )
            return None

        if isinstance(requirement, PermissionRequirement):
            if not has_permission(context, requirement.permissions):
                raise InsufficientPermissionError(
                    "This action requires one of the following permissions: "
                    + ", ".join(requirement.permissions),
                    {"required_permissions": list(requirement.permissions)},
                )
            return None

        if isinstance(requirement, OwnershipOrRoleRequirement):
            if not has_ownership_or_role(context, requirement.target_id, requirement.roles):
                raise InsufficientRoleError(
                    "You can only access your own resources or need one of the "
                    "following roles: " + ", ".join(requirement.roles),
                    {"required_roles": list(requirement.roles)},
                )
            return None

        if isinstance(requirement, RelationshipRequirement):
            return await self._evaluate_relationship(context, requirement)

        raise TypeError(f"Unknown requirement: {requirement!r}")

    async def _find_edge(
        self,
        kind: RelationshipKind,
        supervisor_id: uuid.UUID,
        supervised_id: uuid.UUID,
    ) -> Optional[RelationshipEdge]:
        try:
            if kind == RelationshipKind.GUARDIAN:
                return await self.relationships.get_guardian_link(supervisor_id, supervised_id)
            return await self.relationships.get_mentor_link(supervisor_id, supervised_id)
        except SQLAlchemyError as exc:
            logger.exception(
                "Failed to load relationship edge",
                extra={"kind": kind.value, "supervisor_id": str(supervisor_id)},
            )
            raise AuthorizationUnavailableError() from exc

    async def _evaluate_relationship(
        self,
        context: PrincipalContext,
        requirement: RelationshipRequirement,
    ) -> Optional[RelationshipEdge]:
        kind = requirement.kind
        label = "child" if kind == RelationshipKind.GUARDIAN else "student"
        if requirement.supervised_id is None:
            raise IdentifierValidationError(
                f"{label.capitalize()} ID is required",
                {"field": f"{label}_id"},
            )

        edge = await self._find_edge(kind, requirement.supervisor_id, requirement.supervised_id)

        if has_role(context, self.admin_role):
            return edge

        required = {
            "relationship_kind": kind.value,
            "supervisor_id": str(requirement.supervisor_id),
            "supervised_id": str(requirement.supervised_id),
        }
        usable = (
            edge is not None
            and context.principal_id == requirement.supervisor_id
            and (kind == RelationshipKind.GUARDIAN or edge.is_active)
        )
        if not usable:
            raise RelationshipNotFoundError(
                f"You do not have permission to access this {label}'s data",
                required,
            )

        capability = requirement.capability
        if capability is not None and isinstance(edge, GuardianLink) and not edge.allows(capability):
            raise CapabilityDeniedError(
                f"You do not have permission to {capability.name.lower().replace('_', ' ')} "
                f"for this {label}",
                {**required, "required_capability": capability.value},
            )

        return edge

    def _describe(
        self,
        context: PrincipalContext,
        requirement: Requirement,
        error: AccessError,
    ) -> _Denial:
        details = {
            "required_roles": [],
            "user_roles": sorted(context.roles),
            "required_permissions": [],
            "user_permissions": sorted(context.permissions),
        }

        if isinstance(requirement, RoleRequirement):
            details["required_roles"] = list(requirement.roles)
            return _Denial(error, "role_check", details)

        if isinstance(requirement, PermissionRequirement):
            details["required_permissions"] = list(requirement.permissions)
            return _Denial(error, "permission_check", details)

        if isinstance(requirement, OwnershipOrRoleRequirement):
            details["required_roles"] = list(requirement.roles)
            details["target_id"] = requirement.target_id
            return _Denial(error, "ownership_check", details)

        details["required_roles"] = [self.admin_role]
        details.update(
            relationship_kind=requirement.kind.value,
            supervisor_id=requirement.supervisor_id,
            supervised_id=requirement.supervised_id,
            required_capability=requirement.capability.value if requirement.capability else None,
            reason=error.code,
        )
        return _Denial(error, "relationship_check", details)

    def _record_denial(
        self,
        context: PrincipalContext,
        denial: _Denial,
        origin: RequestOrigin,
    ) -> None:
        logger.warning(
            "Access denied",
            extra={
                "principal_id": str(context.principal_id),
                "check": denial.resource,
                "code": denial.error.code,
            },
        )
        try:
            self.audit_log.record(
                AuditAction.UNAUTHORIZED_ACCESS_ATTEMPT,
                user_id=context.principal_id,
                resource=denial.resource,
                details=denial.details,
                ip_address=origin.ip_address,
                user_agent=origin.user_agent,
            )
        except Exception:
            logger.exception("Failed to schedule denial audit entry")
