"""Dependency checks over a document snapshot. PURE - nothing here mutates.

All checks run against a hypothetical graph (the stored edges with the
candidate's edges swapped in) so that they can happen strictly before any
write.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence

from ticketflow.core.errors import CircularDependencyError, ValidationError
from ticketflow.core.models import Document


def validate_exist(
    ids: Iterable[str],
    document: Document,
    exclude_id: str | None = None,
) -> None:
    """Check that every id in ``ids`` names an existing ticket.

    Raises:
        ValidationError: ``self-dependency`` if an id equals ``exclude_id``,
            ``missing-dependency`` if an id is not in the document.
    """
    for dep_id in ids:
        if exclude_id is not None and dep_id == exclude_id:
            raise ValidationError(
                "self-dependency", "A ticket cannot depend on itself", ticket_id=dep_id
            )
        if dep_id not in document.tickets:
            raise ValidationError(
                "missing-dependency",
                f"Dependency ticket {dep_id} does not exist",
                ticket_id=dep_id,
            )


def has_cycle(
    candidate_id: str,
    candidate_blocked_by: Sequence[str],
    document: Document,
) -> bool:
    """Return True if ``candidate_id`` would sit on a blockedBy cycle.

    The candidate's stored edges (if any) are replaced by
    ``candidate_blocked_by``, so this serves both new and updated tickets.
    Three-colour DFS: ``visiting`` is the current path, ``visited`` is
    fully processed. Uses an explicit stack so long chains do not hit the
    recursion limit.
    """
    visiting: set[str] = set()
    visited: set[str] = set()

    def edges(ticket_id: str) -> Iterator[str]:
        if ticket_id == candidate_id:
            return iter(candidate_blocked_by)
        ticket = document.tickets.get(ticket_id)
        return iter(ticket.blocked_by if ticket is not None else ())

    visiting.add(candidate_id)
    stack: list[tuple[str, Iterator[str]]] = [(candidate_id, edges(candidate_id))]
    while stack:
        ticket_id, pending = stack[-1]
        dep_id = next(pending, None)
        if dep_id is None:
            stack.pop()
            visiting.remove(ticket_id)
            visited.add(ticket_id)
            continue
        if dep_id in visiting:
            return True
        if dep_id in visited:
            continue
        visiting.add(dep_id)
        stack.append((dep_id, edges(dep_id)))
    return False


def check_circular(
    candidate_id: str,
    candidate_blocked_by: Sequence[str],
    document: Document,
) -> None:
    """Raise ``CircularDependencyError`` if :func:`has_cycle` finds one."""
    if has_cycle(candidate_id, candidate_blocked_by, document):
        raise CircularDependencyError(candidate_id)
