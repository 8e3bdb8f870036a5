"""
UI-side permission gates.

These decide what the server-rendered pages show: buttons, menu entries and
whole pages. Hiding a button is cosmetic. The RouteGuard on each page and
form route is the server-side check for that route, and every API call is
checked again by auth.rbac_dependencies.

    gate = resource_action_gate("clients", "create")
    gate.allows(viewer)                     -> bool
    gate.render(viewer, "<button>..</button>", fallback="")

A gate with no conditions always allows. A resource without an action (or
the reverse) is rejected at construction. With require_all=True every
condition must pass, otherwise any one is enough. inverse flips the result.
An anonymous viewer (None) fails every condition.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union
from urllib.parse import quote

from auth.errors import PolicyConfigurationError
from auth.evaluator import AuthorizationEvaluator
from auth.permissions import (
    Action, Permission, PermissionLike, Resource, Role, RoleLike,
    parse_action, parse_resource, parse_role,
)

RoleSpec = Union[RoleLike, Iterable[RoleLike]]
PermissionSpec = Union[PermissionLike, Iterable[PermissionLike]]


@dataclass(frozen=True)
class Viewer:
    """The UI's cached view of the signed-in user"""
    user_id: int
    role: Role
    display_name: str
    evaluator: AuthorizationEvaluator

    def can(self, permission: PermissionLike) -> bool:
        return self.evaluator.has_permission(self.role, permission)

    def can_access(self, resource, action) -> bool:
        return self.evaluator.can_access(self.role, resource, action)

    def has_role(self, roles: RoleSpec) -> bool:
        return self.evaluator.has_role(self.role, roles)


def _roles(spec: Optional[RoleSpec]) -> Tuple[Role, ...]:
    if spec is None:
        return ()
    if isinstance(spec, (Role, str)):
        return (parse_role(spec),)
    return tuple(parse_role(r) for r in spec)


def _permissions(spec: Optional[PermissionSpec]) -> Tuple[Permission, ...]:
    if spec is None:
        return ()
    if isinstance(spec, (Permission, str)):
        return (Permission.parse(spec),)
    return tuple(Permission.parse(p) for p in spec)


class PermissionGate:
    """
    Show-or-hide decision for one piece of UI.

    Every role, permission, resource and action is parsed when the gate is
    built, so a misspelt gate fails at import time rather than hiding content.
    """

    def __init__(
        self,
        required_role: Optional[RoleSpec] = None,
        required_permission: Optional[PermissionSpec] = None,
        required_resource: Union[Resource, str, None] = None,
        required_action: Union[Action, str, None] = None,
        require_all: bool = True,
        inverse: bool = False,
    ):
        self.required_roles = _roles(required_role)
        self.required_permissions = _permissions(required_permission)
        self.required_access = None
        if (required_resource is None) != (required_action is None):
            raise PolicyConfigurationError(
                f"Gate needs both resource and action, got resource={required_resource!r} "
                f"action={required_action!r}"
            )
        if required_resource is not None:
            self.required_access = Permission(parse_resource(required_resource), parse_action(required_action))
        self.require_all = require_all
        self.inverse = inverse

    @property
    def permissions(self) -> Tuple[Permission, ...]:
        """Every permission this gate consults"""
        extra = (self.required_access,) if self.required_access else ()
        return self.required_permissions + extra

    def _conditions(self, viewer: Optional[Viewer]):
        if self.required_roles:
            yield viewer is not None and viewer.has_role(self.required_roles)
        for permission in self.required_permissions:
            yield viewer is not None and viewer.can(permission)
        if self.required_access:
            yield viewer is not None and viewer.can(self.required_access)

    def allows(self, viewer: Optional[Viewer]) -> bool:
        conditions = list(self._conditions(viewer))
        if not conditions:
            granted = True
        elif self.require_all:
            granted = all(conditions)
        else:
            granted = any(conditions)
        return not granted if self.inverse else granted

    def render(self, viewer: Optional[Viewer], children, fallback=""):
        return children if self.allows(viewer) else fallback

    def __repr__(self):
        return (
            f"PermissionGate(roles={[r.value for r in self.required_roles]}, "
            f"permissions={[p.code for p in self.permissions]}, "
            f"require_all={self.require_all}, inverse={self.inverse})"
        )


# ==================== CONVENIENCE GATES ====================

def role_gate(role: RoleSpec) -> PermissionGate:
    return PermissionGate(required_role=role)


def permission_gate(permission: PermissionLike) -> PermissionGate:
    return PermissionGate(required_permission=permission)


def resource_action_gate(resource, action) -> PermissionGate:
    return PermissionGate(required_resource=resource, required_action=action)


def super_admin_gate() -> PermissionGate:
    return role_gate(Role.SUPER_ADMIN)


def admin_gate() -> PermissionGate:
    return role_gate([Role.ADMIN, Role.SUPER_ADMIN])


def lawyer_gate() -> PermissionGate:
    return role_gate([Role.LAWYER, Role.ADMIN, Role.SUPER_ADMIN])


def staff_gate() -> PermissionGate:
    return role_gate([Role.STAFF, Role.LAWYER, Role.ADMIN, Role.SUPER_ADMIN])


def can_view_gate(resource) -> PermissionGate:
    return resource_action_gate(resource, Action.VIEW)


def can_create_gate(resource) -> PermissionGate:
    return resource_action_gate(resource, Action.CREATE)


def can_edit_gate(resource) -> PermissionGate:
    return resource_action_gate(resource, Action.EDIT)


def can_delete_gate(resource) -> PermissionGate:
    return resource_action_gate(resource, Action.DELETE)


def can_export_gate(resource) -> PermissionGate:
    return resource_action_gate(resource, Action.EXPORT)


def can_manage_gate(resource) -> PermissionGate:
    return resource_action_gate(resource, Action.MANAGE)


def not_super_admin_gate() -> PermissionGate:
    return PermissionGate(required_role=Role.SUPER_ADMIN, inverse=True)


def not_admin_gate() -> PermissionGate:
    return PermissionGate(required_role=[Role.ADMIN, Role.SUPER_ADMIN], inverse=True)


def any_permission_gate(permissions: Iterable[PermissionLike]) -> PermissionGate:
    return PermissionGate(required_permission=list(permissions), require_all=False)


def all_permissions_gate(permissions: Iterable[PermissionLike]) -> PermissionGate:
    return PermissionGate(required_permission=list(permissions), require_all=True)


# ==================== PAGE ROUTE GUARD ====================

@dataclass(frozen=True)
class GuardDecision:
    """Outcome of a RouteGuard check: allow, redirect, or show access denied"""
    allowed: bool
    redirect_to: Optional[str] = None
    access_denied: bool = False


class RouteGuard:
    """
    Protects a whole page.

    Anonymous viewers are sent to the login page with a next= back-link.
    Signed-in viewers that fail any condition get the access-denied page, or
    are sent to the dashboard when show_access_denied is False.
    """

    def __init__(
        self,
        required_role: Optional[RoleSpec] = None,
        required_permission: Optional[PermissionLike] = None,
        required_resource: Union[Resource, str, None] = None,
        required_action: Union[Action, str, None] = None,
        login_path: str = "/login",
        fallback_path: str = "/dashboard",
        show_access_denied: bool = True,
    ):
        # Conditions are checked in turn, so all of them must hold
        self.gate = PermissionGate(
            required_role=required_role,
            required_permission=required_permission,
            required_resource=required_resource,
            required_action=required_action,
            require_all=True,
        )
        self.login_path = login_path
        self.fallback_path = fallback_path
        self.show_access_denied = show_access_denied

    def check(self, viewer: Optional[Viewer], path: str) -> GuardDecision:
        if viewer is None:
            return GuardDecision(allowed=False, redirect_to=f"{self.login_path}?next={quote(path, safe='/')}")
        if self.gate.allows(viewer):
            return GuardDecision(allowed=True)
        if self.show_access_denied:
            return GuardDecision(allowed=False, access_denied=True)
        return GuardDecision(allowed=False, redirect_to=self.fallback_path)
