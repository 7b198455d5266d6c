"""Inventory item model."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lendtrack.models.base import Base, utcnow
from lendtrack.models.enums import ItemStatus

if TYPE_CHECKING:
    from lendtrack.models.category import Category
    from lendtrack.models.user import User


class Item(Base):
    """Physical asset that can be lent out.

    ``status`` and ``current_borrower_id`` are only changed by the lending
    service, together with the matching ledger row: the item is Lent exactly
    when one open loan exists, and the borrower is set exactly then.
    """

    __tablename__ = "items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("categories.id", ondelete="RESTRICT"), index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), default=ItemStatus.AVAILABLE.value, index=True
    )
    current_borrower_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    category: Mapped[Category] = relationship("Category")
    current_borrower: Mapped[User | None] = relationship("User")

    def can_be_lent(self) -> bool:
        return self.status == ItemStatus.AVAILABLE.value

    def can_be_returned(self) -> bool:
        return self.status == ItemStatus.LENT.value
