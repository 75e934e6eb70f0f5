"""Research tree: the cascade of open work a ticket unblocks once it closes."""

from __future__ import annotations

from ticketflow.core.models import Document, ResearchTreeNode, Ticket, TicketStatus


def _dependents_index(document: Document) -> dict[str, list[Ticket]]:
    """Map each ticket id to the non-closed tickets blocked by it, in document order."""
    index: dict[str, list[Ticket]] = {}
    for ticket in document.tickets.values():
        if ticket.status == TicketStatus.CLOSED:
            continue
        for dep_id in dict.fromkeys(ticket.blocked_by):
            index.setdefault(dep_id, []).append(ticket)
    return index


def build_tree(ticket_id: str, document: Document) -> list[ResearchTreeNode]:
    """Return the tickets ``ticket_id`` unblocks, each with its own subtree.

    Walks blockedBy edges in reverse. Closed tickets are neither shown nor
    traversed. The visited set is per path, so a stored cycle ends the branch
    with an empty list while diamonds are still expanded down every branch.
    """
    index = _dependents_index(document)

    def walk(current_id: str, path: frozenset[str]) -> list[ResearchTreeNode]:
        if current_id in path:
            return []
        path = path | {current_id}
        return [
            ResearchTreeNode(
                id=dependent.id,
                title=dependent.title,
                unblocks=walk(dependent.id, path),
            )
            for dependent in index.get(current_id, [])
        ]

    return walk(ticket_id, frozenset())
