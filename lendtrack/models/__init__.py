"""Database models for Lendtrack."""

from lendtrack.models.audit import AdminAuditLog
from lendtrack.models.base import Base, utcnow
from lendtrack.models.category import (
    CATEGORY_NAME_MAX_LENGTH,
    Category,
    category_name_key,
)
from lendtrack.models.enums import AdminAction, AuditEntityType, ItemStatus, UserRole
from lendtrack.models.item import Item
from lendtrack.models.lending import LendingLog
from lendtrack.models.user import User

__all__ = [
    "AdminAction",
    "AdminAuditLog",
    "AuditEntityType",
    "Base",
    "CATEGORY_NAME_MAX_LENGTH",
    "Category",
    "Item",
    "ItemStatus",
    "LendingLog",
    "User",
    "UserRole",
    "category_name_key",
    "utcnow",
]
