"""Single synchronous call boundary: tool name + arguments in, result or error out.

Ticket errors never escape :func:`dispatch`; they come back as a
``CallResult`` with ``is_error`` set.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel

from ticketflow.core.errors import TicketflowError, ValidationError
from ticketflow.core.models import dump_model
from ticketflow.core.service import TicketService

logger = logging.getLogger(__name__)


class CallResult(BaseModel):
    """Outcome of one call: a summary line plus JSON-ready data."""

    is_error: bool = False
    message: str
    data: Any = None


def _require(arguments: Mapping[str, Any], key: str) -> Any:
    value = arguments.get(key)
    if not value:
        raise ValidationError("missing-field", f"{key} is required")
    return value


def _create_ticket(service: TicketService, arguments: Mapping[str, Any]) -> CallResult:
    items = arguments.get("tickets")
    if isinstance(items, list):
        for item in items:
            if not isinstance(item, Mapping) or not item.get("title") or not item.get("description"):
                raise ValidationError(
                    "missing-field", "Each ticket must have title and description"
                )
        created = service.create_batch(items)
        return CallResult(
            message=f"{len(created)} ticket(s) created successfully!",
            data=[dump_model(t) for t in created],
        )

    if not arguments.get("title") or not arguments.get("description"):
        raise ValidationError("missing-field", "Title and description are required")
    ticket = service.create(
        arguments["title"],
        arguments["description"],
        projects=arguments.get("projects") or [],
        blocked_by=arguments.get("blockedBy") or [],
    )
    return CallResult(message="Ticket created successfully!", data=dump_model(ticket))


def _read_ticket(service: TicketService, arguments: Mapping[str, Any]) -> CallResult:
    ticket = service.read(_require(arguments, "ticketId"))
    return CallResult(message=f"Ticket {ticket.id}", data=dump_model(ticket))


def _update_ticket(service: TicketService, arguments: Mapping[str, Any]) -> CallResult:
    updates = arguments.get("tickets")
    if not isinstance(updates, list) or not updates:
        raise ValidationError(
            "empty-batch", "tickets array is required and must not be empty"
        )
    for update in updates:
        if not isinstance(update, Mapping) or not update.get("ticketId"):
            raise ValidationError("missing-field", "Each update must have a ticketId")
    updated = service.update_batch(updates)
    return CallResult(
        message=f"{len(updated)} ticket(s) updated successfully!",
        data=[dump_model(t) for t in updated],
    )


def _delete_ticket(service: TicketService, arguments: Mapping[str, Any]) -> CallResult:
    ticket_id = _require(arguments, "ticketId")
    service.delete(ticket_id)
    return CallResult(
        message=f"Ticket {ticket_id} deleted successfully!", data={"deleted": ticket_id}
    )


def _list_tickets(service: TicketService, arguments: Mapping[str, Any]) -> CallResult:
    tickets = service.list(
        project=arguments.get("project"),
        status=arguments.get("status"),
        depends_on=arguments.get("dependsOn"),
    )
    return CallResult(
        message=f"Found {len(tickets)} tickets",
        data=[dump_model(t) for t in tickets],
    )


def _next_tickets(service: TicketService, arguments: Mapping[str, Any]) -> CallResult:
    tickets = service.next(project=arguments.get("project"))
    return CallResult(
        message=f"Found {len(tickets)} next tickets to work on",
        data=[dump_model(t) for t in tickets],
    )


HANDLERS: dict[str, Callable[[TicketService, Mapping[str, Any]], CallResult]] = {
    "create_ticket": _create_ticket,
    "read_ticket": _read_ticket,
    "update_ticket": _update_ticket,
    "delete_ticket": _delete_ticket,
    "list_tickets": _list_tickets,
    "next_tickets": _next_tickets,
}


def dispatch(
    service: TicketService,
    name: str,
    arguments: Mapping[str, Any] | None = None,
) -> CallResult:
    """Run one named operation against ``service``."""
    handler = HANDLERS.get(name)
    if handler is None:
        return CallResult(is_error=True, message=f"Unknown tool: {name}")
    try:
        return handler(service, arguments or {})
    except TicketflowError as e:
        logger.debug("Call %s failed: %s", name, e)
        return CallResult(is_error=True, message=f"Error: {e}")
