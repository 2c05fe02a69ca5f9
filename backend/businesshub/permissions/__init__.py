# Overview: Permission system package.
# Re-exports the public catalogue, role templates and lookup helpers.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    BUSINESS_PERMISSIONS,
    INVENTORY_PERMISSIONS,
    QUOTE_PERMISSIONS,
    TASK_PERMISSIONS,
    DOCUMENT_PERMISSIONS,
    MESSAGE_PERMISSIONS,
    USER_PERMISSIONS,
    ANALYTICS_PERMISSIONS,
    SYSTEM_PERMISSIONS,
)
from .roles import DEFAULT_ROLES, DEFAULT_ROLE_PERMISSIONS
from .helpers import (
    get_all_permission_codes,
    get_permissions_by_category,
    get_permission_categories,
    get_permission_definition,
    validate_permission_code,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "BUSINESS_PERMISSIONS",
    "INVENTORY_PERMISSIONS",
    "QUOTE_PERMISSIONS",
    "TASK_PERMISSIONS",
    "DOCUMENT_PERMISSIONS",
    "MESSAGE_PERMISSIONS",
    "USER_PERMISSIONS",
    "ANALYTICS_PERMISSIONS",
    "SYSTEM_PERMISSIONS",
    "DEFAULT_ROLES",
    "DEFAULT_ROLE_PERMISSIONS",
    "get_all_permission_codes",
    "get_permissions_by_category",
    "get_permission_categories",
    "get_permission_definition",
    "validate_permission_code",
]
