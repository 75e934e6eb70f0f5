"""TicketService: create/read/update/delete/list/next over the ticket document.

Every public operation is one load -> validate -> mutate -> save cycle.
Validation always runs against the in-memory snapshot before anything is
written, so a rejected call leaves the file exactly as it was.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ticketflow.core.errors import NotFoundError, StorageError, ValidationError
from ticketflow.core.models import (
    Document,
    NextTicket,
    Ticket,
    TicketCreate,
    TicketStatus,
    TicketUpdate,
)
from ticketflow.core.research_tree import build_tree
from ticketflow.core.validator import check_circular, validate_exist
from ticketflow.state.migrations import CURRENT_VERSION, MigrationManager
from ticketflow.state.store import RecordStore, next_ticket_id

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _created_key(ticket: Ticket) -> datetime:
    try:
        created = datetime.fromisoformat(ticket.created_at.replace("Z", "+00:00"))
    except ValueError as e:
        raise StorageError(
            f"Ticket {ticket.id} has an unreadable createdAt: {ticket.created_at!r}"
        ) from e
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created


def _newest_first(tickets: Iterable[Ticket]) -> list[Ticket]:
    return sorted(tickets, key=_created_key, reverse=True)


def _invalid_input(e: PydanticValidationError) -> ValidationError:
    """Convert a pydantic error on caller input into our ValidationError."""
    first = e.errors()[0]
    field = ".".join(str(loc) for loc in first["loc"])
    if first["type"] in ("missing", "string_too_short"):
        return ValidationError("missing-field", f"{field} is required")
    if field.endswith("status"):
        values = ", ".join(s.value for s in TicketStatus)
        return ValidationError("invalid-status", f"status must be one of: {values}")
    return ValidationError("invalid-field", f"{field}: {first['msg']}")


def _parse_create(item: TicketCreate | Mapping[str, Any]) -> TicketCreate:
    if isinstance(item, TicketCreate):
        return item
    try:
        return TicketCreate.model_validate(item)
    except PydanticValidationError as e:
        raise _invalid_input(e) from e


def _parse_update(item: TicketUpdate | Mapping[str, Any]) -> TicketUpdate:
    if isinstance(item, TicketUpdate):
        return item
    try:
        return TicketUpdate.model_validate(item)
    except PydanticValidationError as e:
        raise _invalid_input(e) from e


def _parse_status(status: TicketStatus | str) -> TicketStatus:
    try:
        return TicketStatus(status)
    except ValueError as e:
        values = ", ".join(s.value for s in TicketStatus)
        raise ValidationError(
            "invalid-status", f"status must be one of: {values}"
        ) from e


class TicketService:
    """Orchestrates the record store, the dependency validator and the research tree."""

    def __init__(self, data_file: Path | str) -> None:
        self._store = RecordStore(data_file)

    @property
    def data_file(self) -> Path:
        return self._store.path

    def initialize(self) -> None:
        """Create the ticket file, or migrate an existing one to the current version.

        Must run before any other operation. Migration errors propagate.
        """
        if not self._store.initialize(CURRENT_VERSION):
            MigrationManager(self._store.path).run_if_needed()

    # -- internals ---------------------------------------------------------

    def _load(self) -> Document:
        document = self._store.load()
        if document.version != CURRENT_VERSION:
            raise StorageError(
                f"Ticket data is at version {document.version or 'unversioned'}, "
                f"expected {CURRENT_VERSION}; run migrations first"
            )
        return document

    @staticmethod
    def _get(document: Document, ticket_id: str) -> Ticket:
        ticket = document.tickets.get(ticket_id)
        if ticket is None:
            raise NotFoundError(ticket_id)
        return ticket

    # -- create ------------------------------------------------------------

    def create(
        self,
        title: str,
        description: str,
        projects: Sequence[str] = (),
        blocked_by: Sequence[str] = (),
    ) -> Ticket:
        """Create one open ticket. Nothing is written if validation fails."""
        data = _parse_create(
            {
                "title": title,
                "description": description,
                "projects": list(projects),
                "blocked_by": list(blocked_by),
            }
        )
        return self.create_batch([data])[0]

    def create_batch(
        self, items: Sequence[TicketCreate | Mapping[str, Any]]
    ) -> list[Ticket]:
        """Create several tickets in one write, all or nothing.

        Dependencies are checked against the document as it was before the
        call, so an item cannot be blocked by another item of the same batch.
        """
        if not items:
            raise ValidationError(
                "empty-batch", "tickets array is required and must not be empty"
            )
        parsed = [_parse_create(item) for item in items]
        document = self._load()

        for data in parsed:
            validate_exist(data.blocked_by, document)

        now = _now_iso()
        created: list[Ticket] = []
        for data in parsed:
            ticket_id, document = next_ticket_id(document)
            if ticket_id in document.tickets:
                raise StorageError(
                    f"nextId {document.next_id - 1} would reuse existing ticket {ticket_id}"
                )
            ticket = Ticket(
                id=ticket_id,
                title=data.title,
                description=data.description,
                projects=list(data.projects),
                blocked_by=list(data.blocked_by),
                status=TicketStatus.OPEN,
                created_at=now,
                updated_at=now,
            )
            check_circular(ticket_id, ticket.blocked_by, document)
            document.tickets = {**document.tickets, ticket_id: ticket}
            created.append(ticket)

        self._store.save(document)
        logger.debug("Created %s", ", ".join(t.id for t in created))
        return created

    # -- read --------------------------------------------------------------

    def read(self, ticket_id: str) -> Ticket:
        return self._get(self._load(), ticket_id)

    # -- update ------------------------------------------------------------

    def update(self, ticket_id: str, **changes: Any) -> Ticket:
        """Update a single ticket; see :meth:`update_batch`."""
        return self.update_batch([{"ticket_id": ticket_id, **changes}])[0]

    def update_batch(
        self, updates: Sequence[TicketUpdate | Mapping[str, Any]]
    ) -> list[Ticket]:
        """Apply several updates in one write, all or nothing.

        Three phases, each over the whole batch: every id must exist, then
        every new blockedBy must be valid and acyclic, then fields are
        replaced. Later updates are cycle-checked against the blockedBy of
        earlier ones in the same batch.
        """
        if not updates:
            raise ValidationError(
                "empty-batch", "tickets array is required and must not be empty"
            )
        parsed = [_parse_update(update) for update in updates]
        document = self._load()

        for update in parsed:
            self._get(document, update.ticket_id)

        working = document.model_copy(deep=True)
        for update in parsed:
            if update.blocked_by is None:
                continue
            validate_exist(update.blocked_by, working, exclude_id=update.ticket_id)
            check_circular(update.ticket_id, update.blocked_by, working)
            working.tickets[update.ticket_id].blocked_by = list(update.blocked_by)

        now = _now_iso()
        updated: list[Ticket] = []
        for update in parsed:
            current = document.tickets[update.ticket_id]
            ticket = current.model_copy(update={**update.changes(), "updated_at": now})
            document.tickets[update.ticket_id] = ticket
            updated.append(ticket)

        self._store.save(document)
        logger.debug("Updated %s", ", ".join(t.id for t in updated))
        return updated

    # -- delete ------------------------------------------------------------

    def delete(self, ticket_id: str) -> None:
        """Remove a ticket and strip it from every other ticket's blockedBy."""
        document = self._load()
        self._get(document, ticket_id)

        del document.tickets[ticket_id]
        for ticket in document.tickets.values():
            if ticket_id in ticket.blocked_by:
                ticket.blocked_by = [dep for dep in ticket.blocked_by if dep != ticket_id]

        self._store.save(document)
        logger.debug("Deleted %s", ticket_id)

    # -- queries -----------------------------------------------------------

    def list(
        self,
        project: str | None = None,
        status: TicketStatus | str | None = None,
        depends_on: str | None = None,
    ) -> list[Ticket]:
        """Tickets matching every given filter, newest first."""
        wanted_status = _parse_status(status) if status else None
        tickets: Iterable[Ticket] = self._load().tickets.values()

        if project:
            tickets = [t for t in tickets if t.in_project(project)]
        if wanted_status is not None:
            tickets = [t for t in tickets if t.status == wanted_status]
        if depends_on:
            tickets = [t for t in tickets if depends_on in t.blocked_by]

        return _newest_first(tickets)

    def next(self, project: str | None = None) -> list[NextTicket]:
        """Open or in-progress tickets whose blockers are all closed, newest first.

        A blockedBy id with no matching ticket can never close, so it keeps
        the ticket out of the result.
        """
        document = self._load()

        def is_ready(ticket: Ticket) -> bool:
            if ticket.status == TicketStatus.CLOSED:
                return False
            return all(
                dep_id in document.tickets
                and document.tickets[dep_id].status == TicketStatus.CLOSED
                for dep_id in ticket.blocked_by
            )

        ready = [t for t in document.tickets.values() if is_ready(t)]
        if project:
            ready = [t for t in ready if t.in_project(project)]

        return [
            NextTicket(
                **ticket.model_dump(exclude={"blocked_by"}),
                research_tree=build_tree(ticket.id, document),
            )
            for ticket in _newest_first(ready)
        ]
