"""Enum types for models."""

from enum import Enum


class ItemStatus(str, Enum):
    """Lifecycle state of an inventory item."""

    AVAILABLE = "Available"
    LENT = "Lent"
    MAINTENANCE = "Maintenance"


class UserRole(str, Enum):
    """Account role."""

    ADMINISTRATOR = "administrator"
    STANDARD = "standard user"


class AdminAction(str, Enum):
    """Privileged mutations recorded in the admin audit log."""

    CREATE_CATEGORY = "CREATE_CATEGORY"
    UPDATE_CATEGORY = "UPDATE_CATEGORY"
    DELETE_CATEGORY = "DELETE_CATEGORY"
    CREATE_USER = "CREATE_USER"
    UPDATE_USER = "UPDATE_USER"
    DELETE_USER = "DELETE_USER"


class AuditEntityType(str, Enum):
    """Entity kinds an admin audit entry can point at."""

    CATEGORY = "Category"
    USER = "User"
