"""Base model definitions."""

from datetime import UTC, datetime

from sqlalchemy.orm import DeclarativeBase


def utcnow() -> datetime:
    """Current time in UTC; every stored timestamp goes through this."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass
