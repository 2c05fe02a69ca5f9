# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- BUSINESSES --

BUSINESS_PERMISSIONS = [
    (
        "VIEW_BUSINESSES",
        "View Businesses",
        "View businesses, contacts and notes",
        PermissionCategory.BUSINESSES,
    ),
    (
        "MANAGE_BUSINESSES",
        "Manage Businesses",
        "Create, edit and delete businesses",
        PermissionCategory.BUSINESSES,
    ),
    (
        "MANAGE_CONTACTS",
        "Manage Contacts",
        "Create, edit and delete contacts and notes on a business",
        PermissionCategory.BUSINESSES,
    ),
]


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View products, serial numbers and product assignments",
        PermissionCategory.INVENTORY,
    ),
    (
        "MANAGE_PRODUCTS",
        "Manage Products",
        "Create, edit and delete catalog products",
        PermissionCategory.INVENTORY,
    ),
    (
        "MANAGE_SERIAL_NUMBERS",
        "Manage Serial Numbers",
        "Create, edit, return, delete, import and export serialized units",
        PermissionCategory.INVENTORY,
    ),
    (
        "ASSIGN_PRODUCTS",
        "Assign Products",
        "Assign products and serial numbers to businesses",
        PermissionCategory.INVENTORY,
    ),
]


# -- QUOTES --

QUOTE_PERMISSIONS = [
    (
        "VIEW_QUOTES",
        "View Quotes",
        "View quotes and their totals",
        PermissionCategory.QUOTES,
    ),
    (
        "MANAGE_QUOTES",
        "Manage Quotes",
        "Create, edit and delete quotes",
        PermissionCategory.QUOTES,
    ),
]


# -- TASKS --

TASK_PERMISSIONS = [
    (
        "VIEW_TASKS",
        "View Tasks",
        "View tasks and the calendar",
        PermissionCategory.TASKS,
    ),
    (
        "MANAGE_TASKS",
        "Manage Tasks",
        "Create, edit and delete tasks including recurring series",
        PermissionCategory.TASKS,
    ),
]


# -- DOCUMENTS --

DOCUMENT_PERMISSIONS = [
    (
        "VIEW_DOCUMENTS",
        "View Documents",
        "View and download documents",
        PermissionCategory.DOCUMENTS,
    ),
    (
        "MANAGE_DOCUMENTS",
        "Manage Documents",
        "Upload, edit and delete documents",
        PermissionCategory.DOCUMENTS,
    ),
]


# -- MESSAGES --

MESSAGE_PERMISSIONS = [
    (
        "VIEW_MESSAGES",
        "View Messages",
        "View messages",
        PermissionCategory.MESSAGES,
    ),
    (
        "SEND_MESSAGES",
        "Send Messages",
        "Send, file and delete messages",
        PermissionCategory.MESSAGES,
    ),
]


# -- USERS --

USER_PERMISSIONS = [
    (
        "VIEW_USERS",
        "View Users",
        "View user accounts and roles",
        PermissionCategory.USERS,
    ),
    (
        "CREATE_USER",
        "Create User",
        "Create user accounts",
        PermissionCategory.USERS,
    ),
    (
        "EDIT_USER",
        "Edit User",
        "Edit user details and reset passwords",
        PermissionCategory.USERS,
    ),
    (
        "DEACTIVATE_USER",
        "Deactivate User",
        "Deactivate and reactivate user accounts",
        PermissionCategory.USERS,
    ),
    (
        "ASSIGN_ROLES",
        "Assign Roles",
        "Assign and remove roles on users",
        PermissionCategory.USERS,
    ),
    (
        "MANAGE_PERMISSIONS",
        "Manage Permissions",
        "Create roles and change role permissions",
        PermissionCategory.USERS,
    ),
]


# -- ANALYTICS --

ANALYTICS_PERMISSIONS = [
    (
        "VIEW_ANALYTICS",
        "View Analytics",
        "View dashboard statistics and breakdowns",
        PermissionCategory.ANALYTICS,
    ),
]


# -- SYSTEM --

SYSTEM_PERMISSIONS = [
    (
        "VIEW_AUDIT_LOG",
        "View Audit Log",
        "View security events and privileged actions",
        PermissionCategory.SYSTEM,
    ),
    (
        "EXPORT_DATA",
        "Export Data",
        "Export businesses, contacts, products, quotes and users",
        PermissionCategory.SYSTEM,
    ),
    (
        "IMPORT_DATA",
        "Import Data",
        "Bulk import businesses, contacts and products",
        PermissionCategory.SYSTEM,
    ),
    (
        "SYSTEM_ADMIN",
        "System Administration",
        "Full administrative access",
        PermissionCategory.SYSTEM,
    ),
]


# Combined list of all permissions
PERMISSION_DEFINITIONS = (
    BUSINESS_PERMISSIONS
    + INVENTORY_PERMISSIONS
    + QUOTE_PERMISSIONS
    + TASK_PERMISSIONS
    + DOCUMENT_PERMISSIONS
    + MESSAGE_PERMISSIONS
    + USER_PERMISSIONS
    + ANALYTICS_PERMISSIONS
    + SYSTEM_PERMISSIONS
)
