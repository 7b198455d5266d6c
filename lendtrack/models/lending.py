"""Lending ledger model."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lendtrack.models.base import Base, utcnow

if TYPE_CHECKING:
    from lendtrack.models.item import Item
    from lendtrack.models.user import User


class LendingLog(Base):
    """One lend/return cycle of an item.

    Rows are append-only: after insert, only ``date_returned`` and
    ``return_condition_notes`` are ever written, once. Borrower name and email
    are a snapshot taken at lend time and do not follow later user edits.
    """

    __tablename__ = "lending_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("items.id", ondelete="RESTRICT"), index=True
    )
    borrower_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), index=True
    )
    borrower_name: Mapped[str] = mapped_column(String(100))
    borrower_email: Mapped[str] = mapped_column(String(255))
    date_lent: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )
    date_returned: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    condition_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    return_condition_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    item: Mapped[Item] = relationship("Item")
    borrower: Mapped[User] = relationship("User")

    @property
    def is_open(self) -> bool:
        return self.date_returned is None


# At most one open loan per item, enforced by the database as well.
Index(
    "uq_lending_logs_open_item",
    LendingLog.item_id,
    unique=True,
    sqlite_where=LendingLog.date_returned.is_(None),
    postgresql_where=LendingLog.date_returned.is_(None),
)
