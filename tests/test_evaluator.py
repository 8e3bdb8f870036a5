"""
Authorization evaluator properties.

Checked exhaustively over the closed catalog rather than by example.
"""

import pytest

from auth.errors import PolicyConfigurationError
from auth.permissions import Action, Permission, Resource, Role, all_permissions

ORDERED_ROLES = [Role.STAFF, Role.LAWYER, Role.ADMIN, Role.SUPER_ADMIN]
CORE_RESOURCES = [
    Resource.DASHBOARD, Resource.CLIENTS, Resource.CASES,
    Resource.HEARINGS, Resource.INVOICES, Resource.REPORTS,
]


class TestDefinitions:

    def test_has_permission_matches_list_permissions(self, evaluator):
        for role in Role:
            granted = evaluator.list_permissions(role)
            for permission in all_permissions():
                assert evaluator.has_permission(role, permission) == (permission in granted)

    def test_can_access_matches_wire_form(self, evaluator):
        for role in Role:
            for resource in Resource:
                for action in Action:
                    expected = evaluator.has_permission(role, f"{resource.value}:{action.value}")
                    assert evaluator.can_access(role, resource, action) == expected
                    assert evaluator.can_access(role.value, resource.value, action.value) == expected

    def test_evaluator_delegates_to_policy(self, evaluator, policy):
        for role in Role:
            assert evaluator.list_permissions(role) == policy.list_permissions(role)


class TestMonotonicity:

    @pytest.mark.parametrize("resource", CORE_RESOURCES, ids=lambda r: r.value)
    def test_rights_grow_with_role_per_resource(self, evaluator, resource):
        def on_resource(role):
            return {p for p in evaluator.list_permissions(role) if p.resource is resource}

        for lower, higher in zip(ORDERED_ROLES, ORDERED_ROLES[1:]):
            assert on_resource(lower) <= on_resource(higher), (
                f"{lower.value} has {resource.value} rights that {higher.value} lacks"
            )

    @pytest.mark.parametrize("resource", CORE_RESOURCES, ids=lambda r: r.value)
    def test_staff_view_export_within_lawyer(self, evaluator, resource):
        for action in (Action.VIEW, Action.EXPORT):
            if evaluator.can_access(Role.STAFF, resource, action):
                assert evaluator.can_access(Role.LAWYER, resource, action)


class TestRoleChecks:

    def test_has_role_single(self, evaluator):
        assert evaluator.has_role(Role.ADMIN, Role.ADMIN)
        assert evaluator.has_role("admin", "admin")
        assert not evaluator.has_role(Role.ADMIN, Role.SUPER_ADMIN)

    def test_has_role_any_of(self, evaluator):
        assert evaluator.has_role(Role.ADMIN, [Role.ADMIN, Role.SUPER_ADMIN])
        assert not evaluator.has_role(Role.STAFF, ["admin", "super_admin"])

    def test_empty_role_list_denies(self, evaluator):
        assert not evaluator.has_role(Role.SUPER_ADMIN, [])


class TestListChecks:

    def test_any_permission(self, evaluator):
        assert evaluator.has_any_permission(Role.STAFF, ["users:delete", "cases:view"])
        assert not evaluator.has_any_permission(Role.STAFF, ["users:delete", "cases:delete"])
        assert not evaluator.has_any_permission(Role.STAFF, [])

    def test_all_permissions_checks_whole_list(self, evaluator):
        assert evaluator.has_all_permissions(Role.LAWYER, ["cases:view", "cases:edit"])
        # a failing entry after a passing one still denies
        assert not evaluator.has_all_permissions(Role.LAWYER, ["cases:view", "cases:delete"])
        assert evaluator.has_all_permissions(Role.LAWYER, [])


class TestUnknownNames:

    @pytest.mark.parametrize("call", [
        lambda e: e.has_permission("staff", "cases:read"),
        lambda e: e.has_permission("guest", "cases:view"),
        lambda e: e.can_access("staff", "case", "view"),
        lambda e: e.has_role("staff", "owner"),
        lambda e: e.has_any_permission("staff", ["cases:view", "nope:view"]),
        lambda e: e.list_permissions("guest"),
    ])
    def test_unknown_names_raise_instead_of_denying(self, evaluator, call):
        with pytest.raises(PolicyConfigurationError):
            call(evaluator)

    def test_permission_objects_accepted(self, evaluator):
        assert evaluator.has_permission(Role.ADMIN, Permission(Resource.USERS, Action.DELETE))
        assert not evaluator.has_permission(Role.ADMIN, Permission(Resource.USERS, Action.MANAGE))
