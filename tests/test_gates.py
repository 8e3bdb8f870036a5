"""UI gate tests: PermissionGate, the convenience gates and RouteGuard."""

import pytest

from auth.errors import PolicyConfigurationError
from auth.permissions import Role
from ui.gates import (
    PermissionGate,
    RouteGuard,
    Viewer,
    admin_gate,
    all_permissions_gate,
    any_permission_gate,
    can_delete_gate,
    can_export_gate,
    lawyer_gate,
    not_admin_gate,
    not_super_admin_gate,
    permission_gate,
    resource_action_gate,
    role_gate,
    staff_gate,
    super_admin_gate,
)


@pytest.fixture
def viewer(evaluator):
    def _viewer(role):
        return Viewer(user_id=1, role=Role(role), display_name="Test", evaluator=evaluator)
    return _viewer


class TestPermissionGate:

    def test_zero_conditions_always_render(self, viewer):
        gate = PermissionGate()
        assert gate.render(None, "<b>x</b>") == "<b>x</b>"
        assert gate.render(viewer("staff"), "<b>x</b>") == "<b>x</b>"

    def test_inverse_with_failing_condition_renders_children(self, viewer):
        gate = PermissionGate(required_permission="users:delete", inverse=True)
        assert gate.render(viewer("staff"), "shown", fallback="hidden") == "shown"
        assert gate.render(viewer("admin"), "shown", fallback="hidden") == "hidden"

    def test_require_all_with_one_failing_condition_renders_fallback(self, viewer):
        gate = PermissionGate(required_role=Role.LAWYER, required_permission="cases:delete")
        assert gate.render(viewer("lawyer"), "shown", fallback="hidden") == "hidden"

    def test_require_any_with_one_passing_condition_renders(self, viewer):
        gate = PermissionGate(required_role=Role.LAWYER, required_permission="cases:delete", require_all=False)
        assert gate.render(viewer("lawyer"), "shown", fallback="hidden") == "shown"

    def test_anonymous_fails_every_condition(self):
        assert not permission_gate("dashboard:view").allows(None)
        assert not role_gate(Role.STAFF).allows(None)
        # ...so the inverse passes
        assert not_super_admin_gate().allows(None)

    def test_half_specified_access_condition_is_rejected(self):
        with pytest.raises(PolicyConfigurationError):
            PermissionGate(required_resource="users")
        with pytest.raises(PolicyConfigurationError):
            PermissionGate(required_action="delete")
        with pytest.raises(PolicyConfigurationError):
            RouteGuard(required_resource="cases")

    def test_resource_action_gate(self, viewer):
        gate = resource_action_gate("invoices", "delete")
        assert gate.allows(viewer("admin"))
        assert not gate.allows(viewer("lawyer"))

    def test_misspelt_gate_fails_at_construction(self):
        with pytest.raises(PolicyConfigurationError):
            permission_gate("invoice:view")
        with pytest.raises(PolicyConfigurationError):
            role_gate("manager")

    def test_render_never_raises_for_denied_viewer(self, viewer):
        assert super_admin_gate().render(viewer("staff"), "secret") == ""


class TestConvenienceGates:

    @pytest.mark.parametrize("gate,allowed", [
        (super_admin_gate(), {"super_admin"}),
        (admin_gate(), {"admin", "super_admin"}),
        (lawyer_gate(), {"lawyer", "admin", "super_admin"}),
        (staff_gate(), {"staff", "lawyer", "admin", "super_admin"}),
        (not_admin_gate(), {"staff", "lawyer"}),
        (can_delete_gate("clients"), {"admin", "super_admin"}),
        (can_export_gate("invoices"), {"staff", "lawyer", "admin", "super_admin"}),
    ])
    def test_gate_matrix(self, viewer, gate, allowed):
        for role in Role:
            assert gate.allows(viewer(role)) == (role.value in allowed), f"{gate!r} for {role.value}"

    def test_any_permission_gate_checks_whole_list(self, viewer):
        gate = any_permission_gate(["users:delete", "cases:create"])
        # only the second entry holds for a lawyer
        assert gate.allows(viewer("lawyer"))
        assert not gate.allows(viewer("staff"))

    def test_all_permissions_gate_checks_whole_list(self, viewer):
        gate = all_permissions_gate(["cases:view", "cases:delete"])
        assert not gate.allows(viewer("lawyer"))
        assert gate.allows(viewer("admin"))


class TestRouteGuard:

    def test_anonymous_redirects_to_login_with_next(self):
        decision = RouteGuard(required_permission="cases:view").check(None, "/cases")
        assert not decision.allowed
        assert decision.redirect_to == "/login?next=/cases"

    def test_allowed_viewer(self, viewer):
        decision = RouteGuard(required_resource="cases", required_action="view").check(viewer("staff"), "/cases")
        assert decision.allowed

    def test_denied_viewer_gets_access_denied(self, viewer):
        decision = RouteGuard(required_permission="users:view").check(viewer("lawyer"), "/users")
        assert not decision.allowed
        assert decision.access_denied
        assert decision.redirect_to is None

    def test_denied_viewer_redirected_when_access_denied_hidden(self, viewer):
        guard = RouteGuard(required_role=Role.SUPER_ADMIN, show_access_denied=False)
        decision = guard.check(viewer("admin"), "/audit-logs")
        assert decision.redirect_to == "/dashboard"
        assert not decision.access_denied

    def test_all_conditions_must_hold(self, viewer):
        guard = RouteGuard(required_role=Role.LAWYER, required_permission="users:view")
        assert not guard.check(viewer("lawyer"), "/users").allowed
