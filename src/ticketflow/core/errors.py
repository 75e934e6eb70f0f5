"""Exception hierarchy shared by the store, the ticket service and migrations."""

from __future__ import annotations


class TicketflowError(Exception):
    """Base class for every error ticketflow raises on purpose."""


# ---------------------------------------------------------------------------
# Ticket operations
# ---------------------------------------------------------------------------


class ValidationError(TicketflowError):
    """Raised when input to a mutating operation is rejected before any write."""

    def __init__(self, code: str, message: str, ticket_id: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.ticket_id = ticket_id


class CircularDependencyError(ValidationError):
    """Raised when a candidate blockedBy set would close a cycle."""

    def __init__(self, ticket_id: str, message: str = "Circular dependency detected") -> None:
        super().__init__("circular-dependency", message, ticket_id=ticket_id)


class NotFoundError(TicketflowError):
    """Raised when a referenced ticket id does not exist."""

    def __init__(self, ticket_id: str) -> None:
        super().__init__(f"Ticket {ticket_id} not found")
        self.ticket_id = ticket_id


class StorageError(TicketflowError):
    """Raised when the ticket document cannot be read or written."""


class ConfigError(TicketflowError):
    """Raised for an invalid data file location."""


# ---------------------------------------------------------------------------
# Migrations
# ---------------------------------------------------------------------------


class MigrationError(TicketflowError):
    """Base class for fatal startup migration failures."""


class MigrationPathNotFoundError(MigrationError):
    """Raised when no chain of steps connects the detected and current versions."""

    def __init__(self, from_version: str, to_version: str) -> None:
        super().__init__(f"No migration path from {from_version} to {to_version}")
        self.from_version = from_version
        self.to_version = to_version


class MigrationStepError(MigrationError):
    """Raised when a single migration step fails."""

    def __init__(self, from_version: str, to_version: str, reason: str) -> None:
        super().__init__(f"Migration {from_version} -> {to_version} failed: {reason}")
        self.from_version = from_version
        self.to_version = to_version
