"""Domain errors raised by the lending and admin services.

Every error aborts the surrounding unit of work. The HTTP layer maps them to
status codes through :attr:`LendtrackError.status_code` and only ever shows
:attr:`LendtrackError.public_message` and :attr:`LendtrackError.public_context`
to callers.
"""

from __future__ import annotations


class LendtrackError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    @property
    def public_message(self) -> str:
        return self.message

    @property
    def public_context(self) -> dict[str, object]:
        return dict(self.context)


class NotFound(LendtrackError):
    """A referenced entity does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id: object | None = None) -> None:
        super().__init__(f"{entity} not found", entity=entity, entity_id=entity_id)
        self.entity = entity

    @property
    def public_message(self) -> str:
        return f"{self.entity} not found"

    @property
    def public_context(self) -> dict[str, object]:
        return {}


class Conflict(LendtrackError):
    """A state-transition or uniqueness precondition does not hold."""

    status_code = 409


class Forbidden(LendtrackError):
    """The operation would break an administrative safety invariant."""

    status_code = 403


class DataIntegrityViolation(LendtrackError):
    """Stored state contradicts an invariant; needs an operator, not a retry."""

    status_code = 500

    @property
    def public_message(self) -> str:
        return "Internal data integrity error"

    @property
    def public_context(self) -> dict[str, object]:
        return {}
