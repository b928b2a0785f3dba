"""
Grant ledger: which principal holds which role, granted by whom, until when.

An assignment counts ("is effective") only while it is active and either
has no expiry or expires in the future. Expiry is never stored as a
state change; it is evaluated against the clock on every read.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager

from src.kernel.models.base import as_utc, utcnow
from src.kernel.models.role import Permission, Role, RoleAssignment, RolePermission
from src.kernel.permissions.catalog import RoleCatalog
from src.logging_config import get_logger

logger = get_logger(__name__)


def effective_clause(now: datetime):
    """SQL predicate selecting effective assignments at ``now``."""
    return and_(
        RoleAssignment.is_active.is_(True),
        or_(
            RoleAssignment.expires_at.is_(None),
            RoleAssignment.expires_at > now,
        ),
    )


class GrantLedger:
    """
    Service for assigning, revoking and resolving roles.

    Usage:
        ledger = GrantLedger(session)
        await ledger.assign_role(user.id, "mentor", assigned_by=admin.id)
        names = await ledger.effective_role_names(user.id)
    """

    def __init__(self, session: AsyncSession, catalog: Optional[RoleCatalog] = None):
        self.session = session
        self.catalog = catalog or RoleCatalog(session)

    async def _get_assignment(
        self,
        principal_id: uuid.UUID,
        role_id: uuid.UUID,
    ) -> Optional[RoleAssignment]:
        query = select(RoleAssignment).where(
            and_(
                RoleAssignment.user_id == principal_id,
                RoleAssignment.role_id == role_id,
            )
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def assign_role(
        self,
        principal_id: uuid.UUID,
        role_name: str,
        assigned_by: Optional[uuid.UUID] = None,
        expires_at: Optional[datetime] = None,
    ) -> RoleAssignment:
        """
        Grant a role, or reactivate and refresh an existing grant.

        There is at most one row per (principal, role). Re-assigning sets
        ``assigned_by``, ``assigned_at`` and ``expires_at`` anew, so passing
        no expiry clears a previous one.

        Raises:
            RoleNotFoundError: No role with that name in the catalog
        """
        role = await self.catalog.require_role(role_name)
        expires_at = as_utc(expires_at)
        now = utcnow()

        assignment = await self._get_assignment(principal_id, role.id)
        if assignment is None:
            assignment = RoleAssignment(
                user_id=principal_id,
                role_id=role.id,
                role=role,
                assigned_by=assigned_by,
                assigned_at=now,
                expires_at=expires_at,
                is_active=True,
            )
            self.session.add(assignment)
        else:
            assignment.is_active = True
            assignment.assigned_by = assigned_by
            assignment.assigned_at = now
            assignment.expires_at = expires_at

        await self.session.flush()

        logger.info(
            "Role assigned",
            extra={
                "principal_id": str(principal_id),
                "role": role.name,
                "expires_at": expires_at.isoformat() if expires_at else None,
            },
        )
        return assignment

    async def revoke_role(self, principal_id: uuid.UUID, role_name: str) -> bool:
        """
        Deactivate a grant. The row is kept as history.

        Returns:
            True if an active grant was deactivated

        Raises:
            RoleNotFoundError: No role with that name in the catalog
        """
        role = await self.catalog.require_role(role_name)
        assignment = await self._get_assignment(principal_id, role.id)
        if assignment is None or not assignment.is_active:
            return False

        assignment.is_active = False
        await self.session.flush()

        logger.info(
            "Role revoked",
            extra={"principal_id": str(principal_id), "role": role.name},
        )
        return True

    async def effective_roles(
        self,
        principal_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> list[RoleAssignment]:
        """Effective assignments with their roles loaded, ordered by role name."""
        query = (
            select(RoleAssignment)
            .join(RoleAssignment.role)
            .options(contains_eager(RoleAssignment.role))
            .where(
                RoleAssignment.user_id == principal_id,
                effective_clause(now or utcnow()),
            )
            .order_by(Role.name)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def effective_role_names(
        self,
        principal_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> list[str]:
        return [a.role.name for a in await self.effective_roles(principal_id, now)]

    async def effective_permissions(
        self,
        principal_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> list[Permission]:
        """
        Distinct permissions reachable through every effective role.

        Ordered by resource, then action.
        """
        query = (
            select(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(RoleAssignment, RoleAssignment.role_id == RolePermission.role_id)
            .where(
                RoleAssignment.user_id == principal_id,
                effective_clause(now or utcnow()),
            )
            .distinct()
            .order_by(Permission.resource, Permission.action)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def assignment_history(self, principal_id: uuid.UUID) -> list[RoleAssignment]:
        """Every assignment row for a principal, active or not."""
        query = (
            select(RoleAssignment)
            .join(RoleAssignment.role)
            .options(contains_eager(RoleAssignment.role))
            .where(RoleAssignment.user_id == principal_id)
            .order_by(RoleAssignment.assigned_at.desc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
