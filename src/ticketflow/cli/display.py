"""Rich output helpers: ticket tables, detail panels, research trees."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from ticketflow import __version__

if TYPE_CHECKING:
    from ticketflow.core.models import NextTicket, ResearchTreeNode, Ticket

console = Console()
err_console = Console(stderr=True)

STATUS_STYLES = {
    "open": "white",
    "in-progress": "yellow",
    "closed": "dim",
}


def get_version_string() -> str:
    """Return a version string like 'ticketflow 0.2.0 (commit abc1234, clean)'."""
    base = f"ticketflow {__version__}"
    try:
        import git

        project_root = Path(__file__).resolve().parents[3]
        repo = git.Repo(project_root)
        sha7 = repo.head.commit.hexsha[:7]
        state = "dirty" if repo.is_dirty() else "clean"
        return f"{base} (commit {sha7}, {state})"
    except Exception:
        return base


def configure_logging(level: str) -> None:
    """Send log records to stderr through rich at ``level``."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def print_error(message: str) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {message}")


def _status(status: str) -> str:
    style = STATUS_STYLES.get(status, "")
    return f"[{style}]{status}[/{style}]" if style else status


def print_tickets(tickets: Sequence[Ticket], title: str = "Tickets") -> None:
    """Display tickets as a table."""
    table = Table(title=title)
    table.add_column("ID", style="bold")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Projects")
    table.add_column("Blocked by")

    for t in tickets:
        table.add_row(
            t.id,
            t.title,
            _status(t.status.value),
            ", ".join(t.projects) or "-",
            ", ".join(t.blocked_by) or "-",
        )

    console.print(table)


def print_ticket(ticket: Ticket) -> None:
    """Display every field of one ticket."""
    lines = [
        f"[bold]{ticket.title}[/bold]",
        "",
        ticket.description,
        "",
        f"Status:     {_status(ticket.status.value)}",
        f"Projects:   {', '.join(ticket.projects) or '-'}",
        f"Blocked by: {', '.join(ticket.blocked_by) or '-'}",
        f"Created:    {ticket.created_at}",
        f"Updated:    {ticket.updated_at}",
    ]
    console.print(Panel("\n".join(lines), title=ticket.id, border_style="cyan"))


def _add_branches(tree: Tree, nodes: Sequence[ResearchTreeNode]) -> None:
    for node in nodes:
        branch = tree.add(f"[cyan]{node.id}[/cyan] {node.title}")
        _add_branches(branch, node.unblocks)


def print_next_tickets(tickets: Sequence[NextTicket]) -> None:
    """Display ready tickets, each with the work it unblocks."""
    for t in tickets:
        tree = Tree(f"[bold cyan]{t.id}[/bold cyan] {t.title} {_status(t.status.value)}")
        if t.research_tree:
            _add_branches(tree, t.research_tree)
        else:
            tree.add("[dim]unblocks nothing[/dim]")
        console.print(tree)
