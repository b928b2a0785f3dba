"""
FastAPI dependencies for database sessions, authentication and authorization.

The store handle lives on ``app.state.database`` (created by the application
factory) and is only reached through ``get_session_factory``, which tests
override.
"""

import uuid
from typing import Annotated, AsyncGenerator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import get_settings
from src.database import Database
from src.kernel.audit.audit_log import AuditLog
from src.kernel.errors import AuthenticationRequiredError, IdentifierValidationError
from src.kernel.identity.identity_service import IdentityService
from src.kernel.identity.jwt import TokenClaims, TokenService, get_token_service
from src.kernel.models.relationship import GuardianCapability, RelationshipKind
from src.kernel.permissions.authorization import (
    AuthorizationEngine,
    OwnershipOrRoleRequirement,
    PermissionRequirement,
    PrincipalContext,
    RelationshipEdge,
    RelationshipRequirement,
    RequestOrigin,
    RoleRequirement,
)
from src.kernel.permissions.grant_ledger import GrantLedger
from src.kernel.permissions.relationship_ledger import RelationshipLedger
from src.kernel.permissions.catalog import RoleCatalog


# Security scheme
security = HTTPBearer(auto_error=False)


def get_database(request: Request) -> Database:
    """The application's store, created on first use if the lifespan did not run."""
    database = getattr(request.app.state, "database", None)
    if database is None:
        database = Database(get_settings())
        request.app.state.database = database
    return database


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    return get_database(request).session_factory


async def get_db(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> AsyncGenerator[AsyncSession, None]:
    """Dependency that yields a request-scoped session (one transaction)."""
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


DbSession = Annotated[AsyncSession, Depends(get_db)]


def get_audit_log(
    request: Request,
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> AuditLog:
    """The shared audit log; its writes use their own sessions."""
    audit_log = getattr(request.app.state, "audit_log", None)
    if audit_log is None:
        audit_log = AuditLog(session_factory)
        request.app.state.audit_log = audit_log
    return audit_log


AuditLogDep = Annotated[AuditLog, Depends(get_audit_log)]


def get_request_id(request: Request) -> Optional[str]:
    """Get request correlation ID (set by RequestIdMiddleware)."""
    return getattr(request.state, "request_id", None)


def get_client_ip(request: Request) -> Optional[str]:
    """Extract client IP from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_user_agent(request: Request) -> Optional[str]:
    """Extract user agent from request."""
    return request.headers.get("User-Agent")


def get_origin(request: Request) -> RequestOrigin:
    return RequestOrigin(ip_address=get_client_ip(request), user_agent=get_user_agent(request))


Origin = Annotated[RequestOrigin, Depends(get_origin)]


# Services

def get_authorization_engine(db: DbSession, audit_log: AuditLogDep) -> AuthorizationEngine:
    return AuthorizationEngine(db, audit_log)


def get_identity_service(db: DbSession, audit_log: AuditLogDep) -> IdentityService:
    return IdentityService(db, audit_log)


def get_grant_ledger(db: DbSession) -> GrantLedger:
    return GrantLedger(db)


def get_relationship_ledger(db: DbSession) -> RelationshipLedger:
    return RelationshipLedger(db)


def get_role_catalog(db: DbSession) -> RoleCatalog:
    return RoleCatalog(db)


Engine = Annotated[AuthorizationEngine, Depends(get_authorization_engine)]
Identity = Annotated[IdentityService, Depends(get_identity_service)]
Grants = Annotated[GrantLedger, Depends(get_grant_ledger)]
Relationships = Annotated[RelationshipLedger, Depends(get_relationship_ledger)]
Catalog = Annotated[RoleCatalog, Depends(get_role_catalog)]


# Authentication

async def get_token_claims(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> TokenClaims:
    """Verify the bearer token; no store access."""
    if not credentials:
        raise AuthenticationRequiredError()
    return tokens.verify(credentials.credentials)


async def get_principal_context(
    claims: Annotated[TokenClaims, Depends(get_token_claims)],
    engine: Engine,
    identity: Identity,
) -> PrincipalContext:
    """Reload the principal with its effective roles and permissions."""
    context = await engine.load_context(claims.principal_id)
    await identity.touch_activity(context.principal_id)
    return context


CurrentContext = Annotated[PrincipalContext, Depends(get_principal_context)]


def _path_uuid(request: Request, param: str) -> Optional[uuid.UUID]:
    raw = request.path_params.get(param)
    if raw is None:
        return None
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        raise IdentifierValidationError(f"Invalid identifier for '{param}'", {"field": param})


# Authorization requirements

class RequireRoles:
    """
    Dependency requiring any of the given roles.

    Usage:
        @router.get("/admin/users", dependencies=[Depends(RequireRoles("admin"))])
        async def list_users(...):
            ...
    """

    def __init__(self, *roles: str):
        self.roles = roles

    async def __call__(
        self,
        context: CurrentContext,
        engine: Engine,
        origin: Origin,
    ) -> PrincipalContext:
        await engine.authorize(context, RoleRequirement(self.roles), origin)
        return context


class RequirePermissions:
    """Dependency requiring any of the given permissions."""

    def __init__(self, *permissions: str):
        self.permissions = permissions

    async def __call__(
        self,
        context: CurrentContext,
        engine: Engine,
        origin: Origin,
    ) -> PrincipalContext:
        await engine.authorize(context, PermissionRequirement(self.permissions), origin)
        return context


class RequireOwnershipOrRoles:
    """
    Dependency allowing the principal named by a path parameter, or any of
    the given roles.

    Usage:
        @router.get(
            "/users/{user_id}/roles",
            dependencies=[Depends(RequireOwnershipOrRoles("user_id", "admin"))],
        )
    """

    def __init__(self, path_param: str, *roles: str):
        self.path_param = path_param
        self.roles = roles

    async def __call__(
        self,
        request: Request,
        context: CurrentContext,
        engine: Engine,
        origin: Origin,
    ) -> PrincipalContext:
        target_id = _path_uuid(request, self.path_param)
        if target_id is None:
            raise IdentifierValidationError(
                f"'{self.path_param}' is required", {"field": self.path_param}
            )
        await engine.authorize(
            context,
            OwnershipOrRoleRequirement(target_id, self.roles),
            origin,
        )
        return context


class RequireRelationship:
    """
    Dependency requiring a usable relationship edge between the supervisor
    and supervised principals named by path parameters.

    Resolves to the edge (None when an admin passes without one).
    """

    def __init__(
        self,
        kind: RelationshipKind,
        capability: Optional[GuardianCapability] = None,
        supervisor_param: Optional[str] = None,
        supervised_param: Optional[str] = None,
    ):
        guardian = kind == RelationshipKind.GUARDIAN
        self.kind = kind
        self.capability = capability
        self.supervisor_param = supervisor_param or ("parent_id" if guardian else "mentor_id")
        self.supervised_param = supervised_param or ("child_id" if guardian else "student_id")

    async def __call__(
        self,
        request: Request,
        context: CurrentContext,
        engine: Engine,
        origin: Origin,
    ) -> Optional[RelationshipEdge]:
        supervisor_id = _path_uuid(request, self.supervisor_param) or context.principal_id
        supervised_id = _path_uuid(request, self.supervised_param)
        return await engine.authorize(
            context,
            RelationshipRequirement(self.kind, supervisor_id, supervised_id, self.capability),
            origin,
        )


require_admin = RequireRoles(get_settings().admin_role)
AdminContext = Annotated[PrincipalContext, Depends(require_admin)]
