"""Roles and the fixed permission set each one grants.

Each user holds exactly one role; assigning a role replaces the previous one.
"""

from enum import Enum


class Role(str, Enum):
    EMPEROR = "emperor"  # site owner
    DUKE = "duke"
    KNIGHT = "knight"
    CIVILIAN = "civilian"


class Permission(str, Enum):
    VIEW_EMAIL = "view_email"
    MANAGE_EMAIL = "manage_email"
    MANAGE_WEBHOOK = "manage_webhook"
    PROMOTE_USER = "promote_user"
    MANAGE_CONFIG = "manage_config"
    MANAGE_API_KEY = "manage_api_key"
    MANAGE_USERS = "manage_users"


ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.EMPEROR: frozenset(Permission),
    Role.DUKE: frozenset({
        Permission.VIEW_EMAIL,
        Permission.MANAGE_WEBHOOK,
        Permission.MANAGE_API_KEY,
    }),
    Role.KNIGHT: frozenset({
        Permission.VIEW_EMAIL,
        Permission.MANAGE_WEBHOOK,
    }),
    Role.CIVILIAN: frozenset({
        Permission.VIEW_EMAIL,
    }),
}

ROLE_DESCRIPTIONS: dict[Role, str] = {
    Role.EMPEROR: "Emperor (site owner)",
    Role.DUKE: "Duke (super user)",
    Role.KNIGHT: "Knight (advanced user)",
    Role.CIVILIAN: "Civilian (regular user)",
}

# Roles an administrator may hand out; emperor is only ever seeded.
ASSIGNABLE_ROLES = frozenset({Role.DUKE, Role.KNIGHT, Role.CIVILIAN})


def has_permission(role: Role | None, permission: Permission) -> bool:
    """True if the role grants the permission. No role grants nothing."""
    if role is None:
        return False
    return permission in ROLE_PERMISSIONS[role]
