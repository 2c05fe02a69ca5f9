# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    BUSINESSES = "BUSINESSES"
    INVENTORY = "INVENTORY"
    QUOTES = "QUOTES"
    TASKS = "TASKS"
    DOCUMENTS = "DOCUMENTS"
    MESSAGES = "MESSAGES"
    USERS = "USERS"
    ANALYTICS = "ANALYTICS"
    SYSTEM = "SYSTEM"
