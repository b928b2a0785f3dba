"""
Role/permission catalog.

Read-mostly reference data: roles, permissions and which permissions each
role grants. ``ensure_defaults`` seeds the built-in catalog and is safe to
run on every start-up.
"""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.kernel.errors import RoleNotFoundError
from src.kernel.models.role import Permission, Role, RolePermission
from src.logging_config import get_logger

logger = get_logger(__name__)


STUDENT = "student"
PARENT = "parent"
MENTOR = "mentor"
ADMIN = "admin"

DEFAULT_ROLES: dict[str, tuple[str, str]] = {
    STUDENT: ("Student", "Learner using the platform's personal tools"),
    PARENT: ("Parent", "Guardian who follows one or more children"),
    MENTOR: ("Mentor", "Coach or teacher supporting a group of students"),
    ADMIN: ("Administrator", "Full platform administration"),
}

# name -> (display name, description)
DEFAULT_PERMISSIONS: dict[str, tuple[str, str]] = {
    "tasks.read": ("Read tasks", "View own tasks"),
    "tasks.write": ("Write tasks", "Create and edit own tasks"),
    "mood.read": ("Read mood", "View own mood entries"),
    "mood.write": ("Write mood", "Log mood entries"),
    "games.play": ("Play games", "Play focus and memory games"),
    "documents.read": ("Read documents", "View uploaded documents"),
    "documents.write": ("Write documents", "Upload and edit documents"),
    "chat.use": ("Use chat", "Use the assistant chat"),
    "progress.read_own": ("Read own progress", "View own progress and statistics"),
    "children.manage": ("Manage children", "Link children and manage their settings"),
    "children.view_progress": ("View children's progress", "View linked children's progress"),
    "students.manage": ("Manage students", "Link students and manage mentorships"),
    "students.view_progress": ("View students' progress", "View linked students' progress"),
    "users.manage": ("Manage users", "View and administer all users"),
    "roles.manage": ("Manage roles", "Assign and revoke roles"),
    "audit.read": ("Read audit log", "Query the activity log"),
}

DEFAULT_GRANTS: dict[str, tuple[str, ...]] = {
    STUDENT: (
        "tasks.read",
        "tasks.write",
        "mood.read",
        "mood.write",
        "games.play",
        "documents.read",
        "documents.write",
        "chat.use",
        "progress.read_own",
    ),
    PARENT: (
        "children.manage",
        "children.view_progress",
        "progress.read_own",
    ),
    MENTOR: (
        "students.manage",
        "students.view_progress",
        "documents.read",
    ),
    ADMIN: tuple(DEFAULT_PERMISSIONS),
}


def split_permission_name(name: str) -> tuple[str, str]:
    """``"children.view_progress"`` -> ``("children", "view_progress")``."""
    resource, _, action = name.partition(".")
    return resource, action or resource


class RoleCatalog:
    """Lookups over roles and permissions."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_roles(self) -> list[Role]:
        result = await self.session.execute(select(Role).order_by(Role.name))
        return list(result.scalars().all())

    async def get_role(self, name: str) -> Optional[Role]:
        result = await self.session.execute(select(Role).where(Role.name == name))
        return result.scalar_one_or_none()

    async def get_role_by_id(self, role_id: uuid.UUID) -> Optional[Role]:
        return await self.session.get(Role, role_id)

    async def require_role(self, name: str) -> Role:
        """Like ``get_role`` but raises ``RoleNotFoundError`` on a miss."""
        role = await self.get_role(name)
        if role is None:
            raise RoleNotFoundError(f"Role '{name}' not found", {"role": name})
        return role

    async def permissions_for_role(self, role_id: uuid.UUID) -> list[Permission]:
        """Permissions granted to a role, ordered by resource then action."""
        query = (
            select(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id == role_id)
            .order_by(Permission.resource, Permission.action)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def ensure_defaults(self) -> None:
        """
        Seed the built-in roles, permissions and grants.

        Existing rows are left untouched; only missing ones are added.
        The caller commits.
        """
        roles = {r.name: r for r in (await self.session.execute(select(Role))).scalars()}
        for name, (display_name, description) in DEFAULT_ROLES.items():
            if name not in roles:
                role = Role(name=name, display_name=display_name, description=description)
                self.session.add(role)
                roles[name] = role

        permissions = {
            p.name: p for p in (await self.session.execute(select(Permission))).scalars()
        }
        for name, (display_name, description) in DEFAULT_PERMISSIONS.items():
            if name not in permissions:
                resource, action = split_permission_name(name)
                permission = Permission(
                    name=name,
                    display_name=display_name,
                    description=description,
                    resource=resource,
                    action=action,
                )
                self.session.add(permission)
                permissions[name] = permission

        await self.session.flush()

        result = await self.session.execute(
            select(RolePermission.role_id, RolePermission.permission_id)
        )
        existing = {(row.role_id, row.permission_id) for row in result.all()}
        added = 0
        for role_name, granted in DEFAULT_GRANTS.items():
            role = roles[role_name]
            for permission_name in granted:
                pair = (role.id, permissions[permission_name].id)
                if pair not in existing:
                    self.session.add(RolePermission(role_id=pair[0], permission_id=pair[1]))
                    existing.add(pair)
                    added += 1

        await self.session.flush()
        if added:
            logger.info("Seeded role catalog", extra={"grants_added": added})
