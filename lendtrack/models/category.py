"""Category model."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, validates

from lendtrack.models.base import Base, utcnow

CATEGORY_NAME_MAX_LENGTH = 50
# Case folding can expand a name ("ß" becomes "ss").
_NAME_KEY_MAX_LENGTH = CATEGORY_NAME_MAX_LENGTH * 3


def category_name_key(name: str) -> str:
    """Comparison key under which category names must be unique."""
    return name.casefold()


class Category(Base):
    """Item category managed by administrators.

    ``name_key`` is derived from ``name`` on every assignment; uniqueness is
    enforced on the key so that names differing only in case (Unicode-aware)
    collide.
    """

    __tablename__ = "categories"
    __table_args__ = (UniqueConstraint("name_key", name="uq_categories_name_key"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(CATEGORY_NAME_MAX_LENGTH))
    name_key: Mapped[str] = mapped_column(String(_NAME_KEY_MAX_LENGTH))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    @validates("name")
    def _sync_name_key(self, key: str, value: str) -> str:
        self.name_key = category_name_key(value)
        return value
