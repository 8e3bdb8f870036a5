"""
Authorization evaluator: pure predicates over a RolePolicy.
"""

from typing import Iterable, Union

from auth.permissions import (
    Action, Permission, PermissionLike, Resource, Role, RoleLike,
    parse_action, parse_resource, parse_role,
)
from auth.policy import RolePolicy


class AuthorizationEvaluator:
    """Answers role/permission questions. No I/O, no state beyond the policy."""

    def __init__(self, policy: RolePolicy):
        self.policy = policy

    def list_permissions(self, role: RoleLike) -> frozenset:
        return self.policy.list_permissions(role)

    def has_permission(self, role: RoleLike, permission: PermissionLike) -> bool:
        return Permission.parse(permission) in self.policy.list_permissions(role)

    def has_role(self, role: RoleLike, allowed: Union[RoleLike, Iterable[RoleLike]]) -> bool:
        role = parse_role(role)
        if isinstance(allowed, (Role, str)):
            return role == parse_role(allowed)
        return role in {parse_role(r) for r in allowed}

    def can_access(
        self,
        role: RoleLike,
        resource: Union[Resource, str],
        action: Union[Action, str],
    ) -> bool:
        permission = Permission(parse_resource(resource), parse_action(action))
        return self.has_permission(role, permission)

    def has_any_permission(self, role: RoleLike, permissions: Iterable[PermissionLike]) -> bool:
        granted = self.policy.list_permissions(role)
        wanted = [Permission.parse(p) for p in permissions]
        return any(p in granted for p in wanted)

    def has_all_permissions(self, role: RoleLike, permissions: Iterable[PermissionLike]) -> bool:
        granted = self.policy.list_permissions(role)
        wanted = [Permission.parse(p) for p in permissions]
        return all(p in granted for p in wanted)
