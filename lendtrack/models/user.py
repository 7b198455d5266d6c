"""User model."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from lendtrack.models.base import Base, utcnow
from lendtrack.models.enums import UserRole


class User(Base):
    """Staff member or borrower.

    Deleting a user only clears ``is_active`` so ledger and audit rows that
    reference the account stay valid.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    role: Mapped[str] = mapped_column(
        String(20), default=UserRole.STANDARD.value, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMINISTRATOR.value

    @staticmethod
    def normalize_email(email: str) -> str:
        return email.strip().lower()
