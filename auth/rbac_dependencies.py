"""
Role-Based Access Control (RBAC) dependencies for FastAPI.
Provides reusable dependency functions to protect routes with role/permission checks.

Usage:
    @router.get("/api/cases", dependencies=[Depends(require_permission("cases:view"))])
    @router.delete("/api/users/{user_id}")
    async def delete_user(identity: Identity = Depends(require_permission("users:delete"))):
        ...

Every factory validates its requirement against the permission catalog when the
route module is imported, and tags the returned dependency with
__required_permissions__ / __required_roles__ so route coverage can be audited.
"""

from typing import Iterable, Optional, Union

from fastapi import Depends, Header, Request
from loguru import logger

from auth.auth_manager import Identity
from auth.errors import Forbidden, Unauthenticated
from auth.evaluator import AuthorizationEvaluator
from auth.permissions import (
    Action, Permission, PermissionLike, Resource, Role, RoleLike, parse_role,
)

# ==================== DEPENDENCY FUNCTIONS ====================


def get_evaluator(request: Request) -> AuthorizationEvaluator:
    return request.app.state.evaluator


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_identity(request: Request, authorization: str = Header(None)) -> Identity:
    """
    Dependency: resolve the bearer token to an Identity.
    Missing, malformed, expired, revoked or orphaned credentials are all 401.
    """
    token = bearer_token(authorization)
    if token is None:
        raise Unauthenticated("Missing authorization token")

    identity = request.app.state.auth_manager.resolve_current(token)
    request.state.identity = identity
    return identity


async def get_optional_identity(request: Request, authorization: str = Header(None)) -> Optional[Identity]:
    """
    Optional dependency: Identity if a valid token was sent, otherwise None.
    """
    token = bearer_token(authorization)
    if token is None:
        return None
    try:
        return await get_current_identity(request, authorization)
    except Unauthenticated:
        return None


def _deny(identity: Identity, request: Request, requirement: str):
    # The caller only ever sees the generic message
    logger.warning(
        f"[GATE] User {identity.user_id} ({identity.role.value}) denied {requirement} "
        f"on {request.method} {request.url.path}"
    )
    raise Forbidden()


def _tag(dependency, permissions=(), roles=(), mode="all"):
    dependency.__required_permissions__ = tuple(permissions)
    dependency.__required_roles__ = tuple(roles)
    dependency.__requirement_mode__ = mode
    return dependency


# ==================== FACTORIES ====================


def require_auth():
    """
    Dependency factory: any authenticated user.
    """
    async def _require_auth(identity: Identity = Depends(get_current_identity)) -> Identity:
        return identity

    return _tag(_require_auth)


def require_role(required_role: RoleLike):
    """
    Dependency factory: Require specific role.
    """
    role = parse_role(required_role)

    async def _require_role(
        request: Request,
        identity: Identity = Depends(get_current_identity),
    ) -> Identity:
        if not get_evaluator(request).has_role(identity.role, role):
            _deny(identity, request, f"role {role.value}")
        return identity

    return _tag(_require_role, roles=[role])


def require_any_role(required_roles: Iterable[RoleLike]):
    """
    Dependency factory: Require one of several roles.
    """
    roles = [parse_role(r) for r in required_roles]
    if not roles:
        raise ValueError("require_any_role needs at least one role")

    async def _require_any_role(
        request: Request,
        identity: Identity = Depends(get_current_identity),
    ) -> Identity:
        if not get_evaluator(request).has_role(identity.role, roles):
            _deny(identity, request, f"one of roles {[r.value for r in roles]}")
        return identity

    return _tag(_require_any_role, roles=roles, mode="any")


def require_permission(required_permission: PermissionLike):
    """
    Dependency factory: Require specific permission.
    """
    permission = Permission.parse(required_permission)

    async def _require_permission(
        request: Request,
        identity: Identity = Depends(get_current_identity),
    ) -> Identity:
        if not get_evaluator(request).has_permission(identity.role, permission):
            _deny(identity, request, f"permission {permission}")
        return identity

    return _tag(_require_permission, permissions=[permission])


def require_any_permission(required_permissions: Iterable[PermissionLike]):
    """
    Dependency factory: Require at least one of several permissions.
    """
    permissions = [Permission.parse(p) for p in required_permissions]
    if not permissions:
        raise ValueError("require_any_permission needs at least one permission")

    async def _require_any_permission(
        request: Request,
        identity: Identity = Depends(get_current_identity),
    ) -> Identity:
        if not get_evaluator(request).has_any_permission(identity.role, permissions):
            _deny(identity, request, f"any of {[p.code for p in permissions]}")
        return identity

    return _tag(_require_any_permission, permissions=permissions, mode="any")


def require_access(resource: Union[Resource, str], action: Union[Action, str]):
    """
    Dependency factory: resource/action form of require_permission.
    """
    return require_permission(Permission(resource, action))


# ==================== COMMONLY USED DEPENDENCIES ====================

require_super_admin = require_role(Role.SUPER_ADMIN)
require_admin = require_any_role([Role.ADMIN, Role.SUPER_ADMIN])


# ==================== ROUTE AUDIT ====================


def _walk(dependant):
    for sub in dependant.dependencies:
        yield sub.call
        yield from _walk(sub)


def route_requirements(routes) -> list:
    """
    Requirements declared by each API route's gates.

    Returns one dict per (path, method) with the permission and role codes
    found on any gate in its dependency tree; both lists are empty for
    routes without a gate.
    """
    found = []
    for route in routes:
        dependant = getattr(route, "dependant", None)
        if dependant is None:
            continue
        permissions, roles, gated = set(), set(), False
        for call in _walk(dependant):
            if hasattr(call, "__required_permissions__"):
                gated = True
                permissions.update(p.code for p in call.__required_permissions__)
                roles.update(r.value for r in call.__required_roles__)
        for method in sorted(route.methods - {"HEAD", "OPTIONS"}):
            found.append({
                "path": route.path,
                "method": method,
                "gated": gated,
                "permissions": sorted(permissions),
                "roles": sorted(roles),
            })
    return found
