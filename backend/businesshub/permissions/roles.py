# Overview: Default role templates and their permission sets.

from .definitions import PERMISSION_DEFINITIONS

# (name, description, color)
DEFAULT_ROLES = [
    ("admin", "Full system access", "#EF4444"),
    ("manager", "Limited admin access", "#F59E0B"),
    ("user", "Basic user access", "#3B82F6"),
]

_USER_PERMISSIONS = [
    "VIEW_BUSINESSES",
    "VIEW_INVENTORY",
    "VIEW_QUOTES",
    "MANAGE_QUOTES",
    "VIEW_TASKS",
    "MANAGE_TASKS",
    "VIEW_DOCUMENTS",
    "MANAGE_DOCUMENTS",
    "VIEW_MESSAGES",
    "SEND_MESSAGES",
]

_MANAGER_PERMISSIONS = _USER_PERMISSIONS + [
    "MANAGE_BUSINESSES",
    "MANAGE_CONTACTS",
    "MANAGE_PRODUCTS",
    "MANAGE_SERIAL_NUMBERS",
    "ASSIGN_PRODUCTS",
    "CREATE_USER",
    "VIEW_ANALYTICS",
    "EXPORT_DATA",
]

DEFAULT_ROLE_PERMISSIONS = {
    # Admin gets ALL permissions
    "admin": [perm[0] for perm in PERMISSION_DEFINITIONS],
    "manager": _MANAGER_PERMISSIONS,
    "user": _USER_PERMISSIONS,
}
