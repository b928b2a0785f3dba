"""
Identity service for principal management operations.
"""

import uuid
from collections import defaultdict
from datetime import date, timedelta
from typing import Any, Optional

from sqlalchemy import delete, exists, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import get_settings
from src.kernel.audit.audit_log import AuditLog
from src.kernel.errors import DuplicatePrincipalError, RecordNotFoundError
from src.kernel.identity.jwt import IssuedToken, TokenService
from src.kernel.identity.password import PasswordHasher
from src.kernel.models.audit_entry import AuditAction
from src.kernel.models.base import utcnow
from src.kernel.models.principal import Principal, level_for_points
from src.kernel.models.relationship import GuardianLink, MentorLink
from src.kernel.models.role import Role, RoleAssignment
from src.kernel.permissions.authorization import RequestOrigin
from src.kernel.permissions.catalog import MENTOR, PARENT, STUDENT
from src.kernel.permissions.grant_ledger import GrantLedger, effective_clause
from src.logging_config import get_logger

logger = get_logger(__name__)


class IdentityService:
    """
    Service for principal identity operations.

    Handles registration, authentication, profile edits and account
    deletion. Roles are granted through the grant ledger, never stored on
    the principal itself.
    """

    def __init__(
        self,
        session: AsyncSession,
        audit_log: AuditLog,
        hasher: Optional[PasswordHasher] = None,
        token_service: Optional[TokenService] = None,
    ):
        self.session = session
        self.audit_log = audit_log
        self.hasher = hasher or PasswordHasher()
        self.tokens = token_service or TokenService()
        self.grants = GrantLedger(session)
        self.settings = get_settings()

    def _audit(
        self,
        action: AuditAction,
        principal_id: uuid.UUID,
        details: Optional[dict[str, Any]] = None,
        origin: Optional[RequestOrigin] = None,
    ) -> None:
        origin = origin or RequestOrigin()
        self.audit_log.record(
            action,
            user_id=principal_id,
            resource="profiles",
            resource_id=principal_id,
            details=details,
            ip_address=origin.ip_address,
            user_agent=origin.user_agent,
        )

    def registrable_role(self, requested: Optional[str]) -> str:
        """The requested role if it may be self-assigned, else the default."""
        if requested and requested in self.settings.self_registrable_roles:
            return requested
        return self.settings.default_role

    async def register(
        self,
        email: str,
        password: str,
        username: str,
        role: Optional[str] = None,
        date_of_birth: Optional[date] = None,
        parent_email: Optional[str] = None,
        origin: Optional[RequestOrigin] = None,
    ) -> Principal:
        """
        Register a new principal and grant its initial role.

        Args:
            email: Email address (stored lower-cased)
            password: Plain text password
            username: Unique handle
            role: Requested role; honoured only if self-registrable
            date_of_birth: Optional date of birth
            parent_email: Optional guardian contact
            origin: Client address/agent for the audit trail

        Returns:
            The created Principal

        Raises:
            DuplicatePrincipalError: Email or username already taken
        """
        email = email.lower().strip()
        username = username.strip()

        if await self.get_by_email(email) is not None:
            raise DuplicatePrincipalError("Email already registered", {"field": "email"})
        if await self.get_by_username(username) is not None:
            raise DuplicatePrincipalError("Username already taken", {"field": "username"})

        principal = Principal(
            email=email,
            username=username,
            password_hash=self.hasher.hash(password),
            date_of_birth=date_of_birth,
            parent_email=parent_email,
            preferences={},
            points=0,
            level=1,
            streak_days=0,
            is_active=True,
        )
        self.session.add(principal)
        await self.session.flush()  # Get the ID

        role_name = self.registrable_role(role)
        await self.grants.assign_role(principal.id, role_name)

        self._audit(
            AuditAction.USER_REGISTERED,
            principal.id,
            {"email": email, "username": username, "role": role_name},
            origin,
        )
        logger.info("Principal registered", extra={"principal_id": str(principal.id)})
        return principal

    async def authenticate(
        self,
        email: str,
        password: str,
        origin: Optional[RequestOrigin] = None,
    ) -> Optional[tuple[Principal, IssuedToken]]:
        """
        Check credentials and issue a bearer token.

        Returns:
            Tuple of (Principal, IssuedToken) if successful, None otherwise
        """
        principal = await self.get_by_email(email)
        if principal is None or not principal.is_active:
            return None

        if not self.hasher.verify(password, principal.password_hash):
            return None

        principal.last_activity = utcnow()
        await self.session.flush()

        self._audit(AuditAction.USER_LOGIN, principal.id, {"method": "password"}, origin)
        return principal, self.issue_token(principal)

    def issue_token(self, principal: Principal) -> IssuedToken:
        return self.tokens.issue(principal.id, principal.email, principal.username)

    async def get_principal(self, principal_id: uuid.UUID) -> Optional[Principal]:
        """Get a principal by ID."""
        return await self.session.get(Principal, principal_id)

    async def require_principal(self, principal_id: uuid.UUID) -> Principal:
        principal = await self.get_principal(principal_id)
        if principal is None:
            raise RecordNotFoundError("User not found", {"user_id": str(principal_id)})
        return principal

    async def get_by_email(self, email: str) -> Optional[Principal]:
        """Get a principal by email."""
        query = select(Principal).where(Principal.email == email.lower().strip())
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> Optional[Principal]:
        """Get a principal by username."""
        query = select(Principal).where(Principal.username == username.strip())
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def update_profile(
        self,
        principal_id: uuid.UUID,
        username: Optional[str] = None,
        avatar_url: Optional[str] = None,
        date_of_birth: Optional[date] = None,
        parent_email: Optional[str] = None,
        preferences: Optional[dict[str, Any]] = None,
        origin: Optional[RequestOrigin] = None,
    ) -> Principal:
        """
        Partially update a profile; ``None`` leaves a field unchanged.

        Raises:
            RecordNotFoundError: No such principal
            DuplicatePrincipalError: The new username is taken
        """
        principal = await self.require_principal(principal_id)
        changes: dict[str, Any] = {}

        if username is not None and username.strip() != principal.username:
            username = username.strip()
            existing = await self.get_by_username(username)
            if existing is not None and existing.id != principal_id:
                raise DuplicatePrincipalError("Username already taken", {"field": "username"})
            principal.username = username
            changes["username"] = username

        if avatar_url is not None:
            principal.avatar_url = avatar_url
            changes["avatar_url"] = avatar_url
        if date_of_birth is not None:
            principal.date_of_birth = date_of_birth
            changes["date_of_birth"] = date_of_birth.isoformat()
        if parent_email is not None:
            principal.parent_email = parent_email
            changes["parent_email"] = parent_email
        if preferences is not None:
            principal.preferences = preferences
            changes["preferences"] = sorted(preferences)

        if changes:
            await self.session.flush()
            self._audit(AuditAction.PROFILE_UPDATED, principal_id, {"changed": changes}, origin)

        return principal

    async def change_password(
        self,
        principal_id: uuid.UUID,
        current_password: str,
        new_password: str,
        origin: Optional[RequestOrigin] = None,
    ) -> bool:
        """
        Change a password after verifying the current one.

        Returns:
            True if successful, False if the current password is wrong
        """
        principal = await self.get_principal(principal_id)
        if principal is None:
            return False

        if not self.hasher.verify(current_password, principal.password_hash):
            return False

        principal.password_hash = self.hasher.hash(new_password)
        await self.session.flush()

        self._audit(AuditAction.PASSWORD_CHANGED, principal_id, origin=origin)
        return True

    async def delete_account(
        self,
        principal_id: uuid.UUID,
        password: str,
        origin: Optional[RequestOrigin] = None,
    ) -> bool:
        """
        Delete a principal with its grants and relationship edges.

        Audit entries about the principal are kept.

        Returns:
            True if deleted, False if the password did not match
        """
        principal = await self.get_principal(principal_id)
        if principal is None or not self.hasher.verify(password, principal.password_hash):
            return False

        await self.session.execute(
            delete(RoleAssignment).where(RoleAssignment.user_id == principal_id)
        )
        await self.session.execute(
            update(RoleAssignment)
            .where(RoleAssignment.assigned_by == principal_id)
            .values(assigned_by=None)
        )
        await self.session.execute(
            delete(GuardianLink).where(
                or_(GuardianLink.parent_id == principal_id, GuardianLink.child_id == principal_id)
            )
        )
        await self.session.execute(
            delete(MentorLink).where(
                or_(MentorLink.mentor_id == principal_id, MentorLink.student_id == principal_id)
            )
        )
        await self.session.delete(principal)
        await self.session.flush()

        self._audit(
            AuditAction.ACCOUNT_DELETED,
            principal_id,
            {"email": principal.email, "username": principal.username},
            origin,
        )
        logger.info("Principal deleted", extra={"principal_id": str(principal_id)})
        return True

    async def award_points(self, principal_id: uuid.UUID, points: int) -> Principal:
        """Add points and recompute the level. Roles are not affected."""
        principal = await self.require_principal(principal_id)
        principal.points = principal.points + points
        principal.level = level_for_points(principal.points)
        await self.session.flush()
        return principal

    async def touch_activity(self, principal_id: uuid.UUID) -> None:
        await self.session.execute(
            update(Principal)
            .where(Principal.id == principal_id)
            .values(last_activity=utcnow())
            .execution_options(synchronize_session=False)
        )

    async def progress_summary(self, principal_id: uuid.UUID) -> dict[str, Any]:
        """Figures behind the progress-read endpoints."""
        principal = await self.require_principal(principal_id)
        return {
            "user_id": principal.id,
            "username": principal.username,
            "points": principal.points,
            "level": principal.level,
            "streak_days": principal.streak_days,
            "member_since": principal.created_at,
            "last_activity": principal.last_activity,
        }

    async def list_principals(
        self,
        role: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[tuple[Principal, list[str]]], int]:
        """
        Page through principals, newest first, with their effective role names.

        Args:
            role: Only principals currently holding this role
            search: Case-insensitive match on username or email
            limit: Page size
            offset: Principals to skip

        Returns:
            Tuple of (principals with role names, total matching)
        """
        now = utcnow()
        query = select(Principal)
        count_query = select(func.count(Principal.id))

        if role:
            holds_role = exists().where(
                RoleAssignment.user_id == Principal.id,
                RoleAssignment.role_id == Role.id,
                Role.name == role,
                effective_clause(now),
            )
            query = query.where(holds_role)
            count_query = count_query.where(holds_role)

        if search:
            pattern = f"%{search.lower()}%"
            matches = or_(
                func.lower(Principal.username).like(pattern),
                func.lower(Principal.email).like(pattern),
            )
            query = query.where(matches)
            count_query = count_query.where(matches)

        query = query.order_by(Principal.created_at.desc()).offset(offset).limit(limit)
        principals = list((await self.session.execute(query)).scalars().all())
        total = (await self.session.execute(count_query)).scalar() or 0

        roles_by_principal: dict[uuid.UUID, list[str]] = defaultdict(list)
        if principals:
            role_query = (
                select(RoleAssignment.user_id, Role.name)
                .join(Role, Role.id == RoleAssignment.role_id)
                .where(
                    RoleAssignment.user_id.in_([p.id for p in principals]),
                    effective_clause(now),
                )
                .order_by(Role.name)
            )
            for user_id, role_name in (await self.session.execute(role_query)).all():
                roles_by_principal[user_id].append(role_name)

        return [(p, roles_by_principal[p.id]) for p in principals], total

    async def statistics(self) -> dict[str, int]:
        """
        Head counts for the admin dashboard.

        Role counts only include principals whose grant is currently
        effective.
        """
        now = utcnow()

        async def count(*criteria) -> int:
            query = select(func.count(Principal.id)).where(*criteria)
            return (await self.session.execute(query)).scalar() or 0

        role_query = (
            select(Role.name, func.count(func.distinct(RoleAssignment.user_id)))
            .join(RoleAssignment, RoleAssignment.role_id == Role.id)
            .where(effective_clause(now))
            .group_by(Role.name)
        )
        by_role = dict((await self.session.execute(role_query)).all())

        return {
            "total_users": await count(),
            "new_users_week": await count(Principal.created_at >= now - timedelta(days=7)),
            "active_users_today": await count(Principal.last_activity >= now - timedelta(hours=24)),
            "total_students": by_role.get(STUDENT, 0),
            "total_parents": by_role.get(PARENT, 0),
            "total_mentors": by_role.get(MENTOR, 0),
        }
