"""Unit tests for the pure authorization predicates and helpers."""

import uuid

from src.kernel.audit.audit_log import serialize_details
from src.kernel.models.principal import Principal, level_for_points
from src.kernel.models.relationship import GuardianCapability, GuardianLink
from src.kernel.permissions.authorization import (
    PrincipalContext,
    has_ownership_or_role,
    has_permission,
    has_role,
)
from src.kernel.permissions.catalog import (
    DEFAULT_GRANTS,
    DEFAULT_PERMISSIONS,
    split_permission_name,
)


def make_context(roles=(), permissions=()) -> PrincipalContext:
    principal = Principal(id=uuid.uuid4(), email="p@example.com", username="p")
    return PrincipalContext(
        principal=principal,
        roles=frozenset(roles),
        permissions=frozenset(permissions),
    )


class TestRolePredicates:

    def test_any_of_semantics(self):
        context = make_context(roles=["parent"])
        assert has_role(context, ["mentor", "parent"]) is True
        assert has_role(context, ["mentor", "admin"]) is False

    def test_single_name(self):
        assert has_role(make_context(roles=["admin"]), "admin") is True

    def test_empty_requirement_denies(self):
        assert has_role(make_context(roles=["admin"]), []) is False

    def test_no_roles_denies(self):
        assert has_role(make_context(), ["student"]) is False


class TestPermissionPredicates:

    def test_any_of_semantics(self):
        context = make_context(permissions=["children.view_progress"])
        assert has_permission(context, ["users.manage", "children.view_progress"]) is True
        assert has_permission(context, "users.manage") is False


class TestOwnershipPredicate:

    def test_self_access_without_roles(self):
        context = make_context()
        assert has_ownership_or_role(context, context.principal_id, ["admin"]) is True

    def test_other_principal_needs_role(self):
        context = make_context(roles=["student"])
        assert has_ownership_or_role(context, uuid.uuid4(), ["admin"]) is False

    def test_other_principal_with_role(self):
        context = make_context(roles=["admin"])
        assert has_ownership_or_role(context, uuid.uuid4(), ["admin"]) is True


class TestCatalogDefaults:

    def test_admin_holds_every_permission(self):
        assert set(DEFAULT_GRANTS["admin"]) == set(DEFAULT_PERMISSIONS)

    def test_grants_reference_known_permissions(self):
        for granted in DEFAULT_GRANTS.values():
            assert set(granted) <= set(DEFAULT_PERMISSIONS)

    def test_split_permission_name(self):
        assert split_permission_name("children.view_progress") == ("children", "view_progress")
        assert split_permission_name("audit") == ("audit", "audit")


class TestGuardianCapability:

    def test_allows_reads_the_matching_flag(self):
        link = GuardianLink(can_view_progress=False, can_manage_settings=True)
        assert link.allows(GuardianCapability.VIEW_PROGRESS) is False
        assert link.allows(GuardianCapability.MANAGE_SETTINGS) is True


class TestLevels:

    def test_level_is_a_function_of_points(self):
        assert level_for_points(0) == 1
        assert level_for_points(99) == 1
        assert level_for_points(100) == 2
        assert level_for_points(250) == 3

    def test_negative_points_stay_at_level_one(self):
        assert level_for_points(-40) == 1


class TestSerializeDetails:

    def test_converts_nested_values(self):
        pid = uuid.uuid4()
        details = serialize_details({
            "target_id": pid,
            "roles": frozenset({"parent", "admin"}),
            "nested": {"ids": (pid,)},
        })
        assert details == {
            "target_id": str(pid),
            "roles": ["admin", "parent"],
            "nested": {"ids": [str(pid)]},
        }
