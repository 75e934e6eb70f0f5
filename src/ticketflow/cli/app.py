"""Typer CLI commands: create, read, update, delete, list, next, migrate, call, version."""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional

import typer

from ticketflow.cli.display import (
    configure_logging,
    console,
    get_version_string,
    print_error,
    print_next_tickets,
    print_ticket,
    print_tickets,
)
from ticketflow.core.errors import ConfigError, MigrationError, TicketflowError

app = typer.Typer(
    name="ticketflow",
    help="Dependency-aware ticket tracking",
    no_args_is_help=True,
)

PATH_OPTION = typer.Option(Path.cwd(), "--path", "-p", help="Project path")
DATA_FILE_OPTION = typer.Option(
    None, "--data-file", help="Ticket JSON file (default: data/tickets.json under the project)"
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(get_version_string())
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Dependency-aware ticket tracking."""
    ctx.obj = {"verbose": verbose}


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Turn ticket errors into an error message and exit code 1."""
    try:
        yield
    except TicketflowError as e:
        print_error(str(e))
        raise typer.Exit(1)


def _resolve_data_file(ctx: typer.Context, path: Path, data_file: Optional[Path]) -> Path:
    """Load settings, set up logging and return the validated data file path."""
    from ticketflow.config.loader import load_settings, resolve_data_file

    overrides: dict = {}
    if data_file is not None:
        overrides.setdefault("storage", {})["data_file"] = str(data_file)

    try:
        settings = load_settings(project_path=path, overrides=overrides)
        settings.project.path = path.resolve()

        verbose = bool(ctx.obj and ctx.obj.get("verbose"))
        configure_logging("DEBUG" if verbose else settings.logging.level)

        return resolve_data_file(settings)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(1)


def _open_service(ctx: typer.Context, path: Path, data_file: Optional[Path]):
    """Return a ready TicketService; a failed migration ends the process."""
    from ticketflow.core.service import TicketService

    service = TicketService(_resolve_data_file(ctx, path, data_file))
    try:
        service.initialize()
    except MigrationError as e:
        print_error(f"Migration failed: {e}")
        raise typer.Exit(1)
    except TicketflowError as e:
        print_error(str(e))
        raise typer.Exit(1)
    return service


def _read_json_file(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        print_error(f"Cannot read {path}: {e}")
        raise typer.Exit(1)


@app.command()
def create(
    ctx: typer.Context,
    title: Optional[str] = typer.Argument(None, help="Ticket title"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Ticket description"),
    project: Optional[list[str]] = typer.Option(None, "--project", help="Project name (repeatable)"),
    blocked_by: Optional[list[str]] = typer.Option(
        None, "--blocked-by", "-b", help="ID of a blocking ticket (repeatable)"
    ),
    from_file: Optional[Path] = typer.Option(
        None, "--from-file", help="JSON array of tickets to create as one batch"
    ),
    path: Path = PATH_OPTION,
    data_file: Optional[Path] = DATA_FILE_OPTION,
) -> None:
    """Create one ticket, or a batch from a JSON file."""
    if from_file is None and (not title or not description):
        print_error("Title and description are required (or use --from-file).")
        raise typer.Exit(1)

    service = _open_service(ctx, path, data_file)

    with _handle_errors():
        if from_file is not None:
            items = _read_json_file(from_file)
            if not isinstance(items, list):
                print_error(f"{from_file} must contain a JSON array of tickets.")
                raise typer.Exit(1)
            created = service.create_batch(items)
        else:
            created = [service.create(title, description, project or [], blocked_by or [])]

    for t in created:
        console.print(f"[green]Created {t.id}:[/green] {t.title}")


@app.command()
def read(
    ctx: typer.Context,
    ticket_id: str = typer.Argument(..., help="Ticket ID, e.g. TICKET-0001"),
    path: Path = PATH_OPTION,
    data_file: Optional[Path] = DATA_FILE_OPTION,
) -> None:
    """Show one ticket."""
    service = _open_service(ctx, path, data_file)
    with _handle_errors():
        ticket = service.read(ticket_id)
    print_ticket(ticket)


@app.command()
def update(
    ctx: typer.Context,
    ticket_id: Optional[str] = typer.Argument(None, help="Ticket ID to update"),
    title: Optional[str] = typer.Option(None, "--title", help="New title"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="New description"),
    status: Optional[str] = typer.Option(None, "--status", "-s", help="open, in-progress or closed"),
    project: Optional[list[str]] = typer.Option(None, "--project", help="Replace projects (repeatable)"),
    blocked_by: Optional[list[str]] = typer.Option(
        None, "--blocked-by", "-b", help="Replace blockers (repeatable)"
    ),
    clear_blocked_by: bool = typer.Option(False, "--clear-blocked-by", help="Remove all blockers"),
    from_file: Optional[Path] = typer.Option(
        None, "--from-file", help="JSON array of update objects to apply as one batch"
    ),
    path: Path = PATH_OPTION,
    data_file: Optional[Path] = DATA_FILE_OPTION,
) -> None:
    """Update one ticket, or a batch from a JSON file."""
    updates: list[dict[str, Any]] = []
    if from_file is not None:
        loaded = _read_json_file(from_file)
        if not isinstance(loaded, list):
            print_error(f"{from_file} must contain a JSON array of updates.")
            raise typer.Exit(1)
        updates = loaded
    else:
        if not ticket_id:
            print_error("Ticket ID required: ticketflow update <ID> [options]")
            raise typer.Exit(1)
        changes: dict[str, Any] = {}
        if title is not None:
            changes["title"] = title
        if description is not None:
            changes["description"] = description
        if status is not None:
            changes["status"] = status
        if project:
            changes["projects"] = project
        if blocked_by:
            changes["blocked_by"] = blocked_by
        elif clear_blocked_by:
            changes["blocked_by"] = []
        if not changes:
            print_error("Nothing to update.")
            raise typer.Exit(1)
        updates = [{"ticket_id": ticket_id, **changes}]

    service = _open_service(ctx, path, data_file)
    with _handle_errors():
        updated = service.update_batch(updates)

    for t in updated:
        console.print(f"[green]Updated {t.id}:[/green] {t.title} ({t.status.value})")


@app.command()
def delete(
    ctx: typer.Context,
    ticket_id: str = typer.Argument(..., help="Ticket ID to delete"),
    path: Path = PATH_OPTION,
    data_file: Optional[Path] = DATA_FILE_OPTION,
) -> None:
    """Delete a ticket and drop it from other tickets' blockers."""
    service = _open_service(ctx, path, data_file)
    with _handle_errors():
        service.delete(ticket_id)
    console.print(f"[green]Deleted {ticket_id}[/green]")


@app.command("list")
def list_tickets(
    ctx: typer.Context,
    project: Optional[str] = typer.Option(None, "--project", help="Filter by project (case-insensitive)"),
    status: Optional[str] = typer.Option(None, "--status", "-s", help="Filter by status"),
    depends_on: Optional[str] = typer.Option(
        None, "--depends-on", help="Only tickets blocked by this ID"
    ),
    path: Path = PATH_OPTION,
    data_file: Optional[Path] = DATA_FILE_OPTION,
) -> None:
    """List tickets, newest first."""
    service = _open_service(ctx, path, data_file)
    with _handle_errors():
        tickets = service.list(project=project, status=status, depends_on=depends_on)

    if not tickets:
        console.print("[dim]No tickets found.[/dim]")
        return
    print_tickets(tickets)


@app.command("next")
def next_tickets(
    ctx: typer.Context,
    project: Optional[str] = typer.Option(None, "--project", help="Filter by project (case-insensitive)"),
    path: Path = PATH_OPTION,
    data_file: Optional[Path] = DATA_FILE_OPTION,
) -> None:
    """Show unblocked tickets and the work each one unlocks."""
    service = _open_service(ctx, path, data_file)
    with _handle_errors():
        tickets = service.next(project=project)

    if not tickets:
        console.print("[dim]No tickets ready.[/dim]")
        return
    print_next_tickets(tickets)


@app.command()
def migrate(
    ctx: typer.Context,
    path: Path = PATH_OPTION,
    data_file: Optional[Path] = DATA_FILE_OPTION,
) -> None:
    """Bring the ticket file up to the current schema version."""
    from ticketflow.state.migrations import MigrationManager
    from ticketflow.state.store import RecordStore

    resolved = _resolve_data_file(ctx, path, data_file)
    manager = MigrationManager(resolved)

    with _handle_errors():
        if RecordStore(resolved).initialize(manager.current_version):
            console.print(f"[green]Created {resolved} at version {manager.current_version}[/green]")
            return
        try:
            applied = manager.run_if_needed()
        except MigrationError as e:
            print_error(f"Migration failed: {e}")
            raise typer.Exit(1)

    if not applied:
        console.print(f"[dim]Already at version {manager.current_version}.[/dim]")
        return
    for step in applied:
        console.print(f"[green]Migrated {step.from_version} -> {step.to_version}[/green]")


@app.command()
def call(
    ctx: typer.Context,
    tool: str = typer.Argument(..., help="Operation, e.g. create_ticket or next_tickets"),
    arguments: str = typer.Argument("{}", help="JSON object of arguments"),
    path: Path = PATH_OPTION,
    data_file: Optional[Path] = DATA_FILE_OPTION,
) -> None:
    """Run one operation with JSON arguments and print the JSON result."""
    from ticketflow.core.calls import dispatch

    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError as e:
        print_error(f"Arguments must be a JSON object: {e}")
        raise typer.Exit(1)
    if not isinstance(parsed, dict):
        print_error("Arguments must be a JSON object.")
        raise typer.Exit(1)

    service = _open_service(ctx, path, data_file)
    result = dispatch(service, tool, parsed)
    typer.echo(json.dumps(result.model_dump(), indent=2))
    if result.is_error:
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(get_version_string())
