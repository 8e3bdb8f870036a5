"""
Permission catalog for the litigation system.

Roles, resources and actions are closed sets. A permission is a
(resource, action) pair; its wire form is "resource:action".

Roles:
  - super_admin: Full system access, including user and settings management
  - admin: Full business access, limited user management
  - lawyer: Day-to-day case work
  - staff: Read and export only
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from auth.errors import PolicyConfigurationError


class Role(str, Enum):
    """User roles (closed set)."""
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    LAWYER = "lawyer"
    STAFF = "staff"


class Resource(str, Enum):
    """Protectable subsystems."""
    DASHBOARD = "dashboard"
    CLIENTS = "clients"
    CASES = "cases"
    HEARINGS = "hearings"
    INVOICES = "invoices"
    REPORTS = "reports"
    USERS = "users"
    SYSTEM_SETTINGS = "system_settings"
    POWERS_OF_ATTORNEY = "powers_of_attorney"
    DOCUMENTS = "documents"
    ATTENDANCE = "attendance"
    ADMIN_WORK = "admin_work"
    CONTACTS = "contacts"


class Action(str, Enum):
    """Operation kinds."""
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    EXPORT = "export"
    IMPORT = "import"
    MANAGE = "manage"


def parse_role(value: Union[Role, str]) -> Role:
    """Coerce a role name to a Role, failing loudly on unknown names."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        raise PolicyConfigurationError(f"Unknown role: {value!r}")


def parse_resource(value: Union[Resource, str]) -> Resource:
    if isinstance(value, Resource):
        return value
    try:
        return Resource(value)
    except ValueError:
        raise PolicyConfigurationError(f"Unknown resource: {value!r}")


def parse_action(value: Union[Action, str]) -> Action:
    if isinstance(value, Action):
        return value
    try:
        return Action(value)
    except ValueError:
        raise PolicyConfigurationError(f"Unknown action: {value!r}")


@dataclass(frozen=True, order=True)
class Permission:
    """
    A grantable capability.

    Attributes:
        resource: What the permission applies to
        action: What can be done to it
    """
    resource: Resource
    action: Action

    def __post_init__(self):
        # Normalise plain strings so Permission("cases", "view") is still typed
        object.__setattr__(self, "resource", parse_resource(self.resource))
        object.__setattr__(self, "action", parse_action(self.action))

    @classmethod
    def parse(cls, value: Union["Permission", str]) -> "Permission":
        """Build a Permission from "resource:action"."""
        if isinstance(value, Permission):
            return value
        if not isinstance(value, str) or value.count(":") != 1:
            raise PolicyConfigurationError(f"Malformed permission: {value!r}")
        resource, action = value.split(":")
        return cls(parse_resource(resource), parse_action(action))

    @property
    def code(self) -> str:
        return f"{self.resource.value}:{self.action.value}"

    def __str__(self) -> str:
        return self.code


PermissionLike = Union[Permission, str]
RoleLike = Union[Role, str]


def all_permissions() -> frozenset:
    """Full Resource x Action cross-product."""
    return frozenset(Permission(r, a) for r in Resource for a in Action)
