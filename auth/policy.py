"""
Role-permission policy.

The policy is static configuration (role_permissions.yaml) loaded once at
startup into an immutable RolePolicy and handed to the evaluator and gates.
Loading validates every name against the catalog, so a typo fails at startup
instead of silently denying at request time.
"""

import os
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

import yaml
from loguru import logger

from auth.errors import PolicyConfigurationError
from auth.permissions import (
    Action, Permission, Resource, Role, RoleLike,
    parse_action, parse_resource, parse_role,
)

DEFAULT_POLICY_PATH = Path(__file__).with_name("role_permissions.yaml")

LANGUAGES = ("ar", "en")
DEFAULT_LANGUAGE = os.getenv("DEFAULT_LANGUAGE", "ar")


def _labels(raw: Any, owner: str) -> Mapping[str, str]:
    if not isinstance(raw, dict) or any(lang not in raw for lang in LANGUAGES):
        raise PolicyConfigurationError(f"{owner} needs labels for {LANGUAGES}")
    return MappingProxyType({lang: str(raw[lang]) for lang in LANGUAGES})


class RolePolicy:
    """Immutable Role -> frozenset[Permission] mapping with bilingual labels"""

    def __init__(
        self,
        grants: Mapping[Role, frozenset],
        role_labels: Optional[Mapping[Role, Mapping[str, str]]] = None,
        resource_labels: Optional[Mapping[Resource, Mapping[str, str]]] = None,
        action_labels: Optional[Mapping[Action, Mapping[str, str]]] = None,
    ):
        missing = [role.value for role in Role if role not in grants]
        if missing:
            raise PolicyConfigurationError(f"Policy has no entry for roles: {missing}")

        self._grants = MappingProxyType({role: frozenset(grants[role]) for role in Role})
        self._role_labels = MappingProxyType(dict(role_labels or {}))
        self._resource_labels = MappingProxyType(dict(resource_labels or {}))
        self._action_labels = MappingProxyType(dict(action_labels or {}))

    # ==================== LOADING ====================

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "RolePolicy":
        """Build a policy from the parsed YAML document."""
        if not isinstance(data, dict) or not isinstance(data.get("roles"), dict):
            raise PolicyConfigurationError("Policy document must have a 'roles' mapping")

        grants = {}
        role_labels = {}
        for role_name, role_data in data["roles"].items():
            role = parse_role(role_name)
            role_data = role_data or {}
            permissions = set()

            for resource_name, actions in (role_data.get("permissions") or {}).items():
                resource = parse_resource(resource_name)
                if not isinstance(actions, list):
                    raise PolicyConfigurationError(
                        f"{role.value}.{resource.value} must list actions"
                    )
                for action_name in actions:
                    permission = Permission(resource, parse_action(action_name))
                    if permission in permissions:
                        raise PolicyConfigurationError(
                            f"Duplicate grant {permission} for role {role.value}"
                        )
                    permissions.add(permission)

            grants[role] = frozenset(permissions)
            if "label" in role_data:
                role_labels[role] = _labels(role_data["label"], f"role {role.value}")

        resource_labels = {
            parse_resource(name): _labels(labels, f"resource {name}")
            for name, labels in (data.get("resources") or {}).items()
        }
        action_labels = {
            parse_action(name): _labels(labels, f"action {name}")
            for name, labels in (data.get("actions") or {}).items()
        }

        return cls(grants, role_labels, resource_labels, action_labels)

    @classmethod
    def from_yaml(cls, path: Optional[Path] = None) -> "RolePolicy":
        """Load and validate the policy file."""
        path = Path(path or os.getenv("RBAC_POLICY_PATH") or DEFAULT_POLICY_PATH)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            logger.error(f"[POLICY] Policy file not found: {path}")
            raise

        policy = cls.from_mapping(data)
        logger.info(
            f"[POLICY] Loaded {path.name}: "
            + ", ".join(f"{role.value}={len(policy.list_permissions(role))}" for role in Role)
        )
        return policy

    # ==================== QUERIES ====================

    def list_permissions(self, role: RoleLike) -> frozenset:
        """Exact configured permission set for a role."""
        return self._grants[parse_role(role)]

    def catalog(self) -> frozenset:
        """Every permission granted to at least one role."""
        return frozenset().union(*self._grants.values())

    def roles(self):
        return tuple(self._grants.keys())

    def as_dict(self) -> Dict[str, list]:
        """Policy as plain strings, for API responses and audits."""
        return {
            role.value: sorted(p.code for p in permissions)
            for role, permissions in self._grants.items()
        }

    # ==================== DISPLAY NAMES ====================

    def role_display_name(self, role: RoleLike, language: str = DEFAULT_LANGUAGE) -> str:
        role = parse_role(role)
        labels = self._role_labels.get(role)
        if not labels:
            return role.value
        return labels.get(language, labels["en"])

    def permission_display_name(self, permission, language: str = DEFAULT_LANGUAGE) -> str:
        permission = Permission.parse(permission)
        action = self._action_labels.get(permission.action)
        resource = self._resource_labels.get(permission.resource)
        if not action or not resource:
            return permission.code
        return f"{action.get(language, action['en'])} {resource.get(language, resource['en'])}"
