"""Versioned migrations for the ticket document.

The catalog is a list of (from_version, to_version, transform) steps. At
startup the manager detects the on-disk version, finds the shortest chain of
steps to the current version and runs it, backing up the file before each
step.
"""

from __future__ import annotations

import logging
import shutil
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ticketflow.core.errors import (
    MigrationError,
    MigrationPathNotFoundError,
    MigrationStepError,
    StorageError,
)
from ticketflow.state.store import RecordStore, write_json_atomic

logger = logging.getLogger(__name__)

CURRENT_VERSION = "0.2.0"
OLDEST_VERSION = "0.1.0"


@dataclass(frozen=True)
class MigrationStep:
    """One transform between two adjacent document versions."""

    from_version: str
    to_version: str
    migrate: Callable[[Path], None]
    description: str = ""


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


def _read_json(data_file: Path) -> Any:
    return RecordStore(data_file).load_raw()


def migrate_0_1_0_to_0_2_0(data_file: Path) -> None:
    """Rename every ticket's ``dependencies`` to ``blockedBy`` and stamp the version."""
    legacy = _read_json(data_file)
    tickets: dict[str, Any] = {}
    for ticket_id, legacy_ticket in legacy.get("tickets", {}).items():
        ticket = {k: v for k, v in legacy_ticket.items() if k != "dependencies"}
        ticket["blockedBy"] = list(legacy_ticket.get("dependencies") or [])
        tickets[ticket_id] = ticket

    migrated = {
        "version": "0.2.0",
        "tickets": tickets,
        "nextId": legacy.get("nextId", 1),
    }
    write_json_atomic(data_file, migrated)


MIGRATIONS: list[MigrationStep] = [
    MigrationStep(
        from_version="0.1.0",
        to_version="0.2.0",
        migrate=migrate_0_1_0_to_0_2_0,
        description="Rename ticket 'dependencies' to 'blockedBy'",
    ),
]


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def detect_version(raw: Any) -> str:
    """Work out which schema version a parsed document is in.

    An explicit ``version`` wins. Otherwise the first ticket is sniffed:
    a ``dependencies`` list means 0.1.0, a ``blockedBy`` list means 0.2.0.
    Anything unrecognised, including a document with no tickets, is treated
    as the oldest known version.
    """
    if isinstance(raw, dict):
        version = raw.get("version")
        if version:
            return str(version)

        tickets = raw.get("tickets")
        if isinstance(tickets, dict) and tickets:
            first = next(iter(tickets.values()))
            if isinstance(first, dict):
                if isinstance(first.get("dependencies"), list):
                    return "0.1.0"
                if isinstance(first.get("blockedBy"), list):
                    return "0.2.0"

    return OLDEST_VERSION


def find_migration_path(
    from_version: str,
    to_version: str,
    steps: Sequence[MigrationStep] = MIGRATIONS,
) -> list[MigrationStep] | None:
    """Breadth-first search for the fewest steps from one version to another.

    Returns ``[]`` when the versions are equal and ``None`` when the target
    cannot be reached.
    """
    queue: deque[tuple[str, list[MigrationStep]]] = deque([(from_version, [])])
    seen = {from_version}

    while queue:
        version, path = queue.popleft()
        if version == to_version:
            return path
        for step in steps:
            if step.from_version == version and step.to_version not in seen:
                seen.add(step.to_version)
                queue.append((step.to_version, [*path, step]))

    return None


def backup_path(data_file: Path, version: str) -> Path:
    """``tickets.json`` at version 0.1.0 backs up to ``tickets.0.1.0.json``."""
    return data_file.with_name(f"{data_file.stem}.{version}{data_file.suffix}")


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


class MigrationManager:
    """Brings an existing ticket file up to the current schema version."""

    def __init__(
        self,
        data_file: Path | str,
        steps: Sequence[MigrationStep] = MIGRATIONS,
        current_version: str = CURRENT_VERSION,
    ) -> None:
        self._data_file = Path(data_file)
        self._steps = list(steps)
        self._current_version = current_version

    @property
    def current_version(self) -> str:
        return self._current_version

    def _load_raw(self) -> Any:
        try:
            return RecordStore(self._data_file).load_raw()
        except StorageError as e:
            raise MigrationError(f"Cannot read {self._data_file} for migration: {e}") from e

    def detect(self) -> str:
        """Return the version of the document on disk."""
        return detect_version(self._load_raw())

    def _stamp_version(self, raw: dict[str, Any]) -> None:
        """Write the current version into a document that is current but unstamped."""
        stamped = {"version": self._current_version}
        stamped.update((k, v) for k, v in raw.items() if k != "version")
        try:
            write_json_atomic(self._data_file, stamped)
        except OSError as e:
            raise MigrationError(f"Cannot stamp version on {self._data_file}: {e}") from e
        logger.info("Stamped %s with version %s", self._data_file, self._current_version)

    def plan(self, from_version: str) -> list[MigrationStep]:
        path = find_migration_path(from_version, self._current_version, self._steps)
        if path is None:
            raise MigrationPathNotFoundError(from_version, self._current_version)
        return path

    def run_if_needed(self) -> list[MigrationStep]:
        """Migrate the file in place if it is not at the current version.

        Returns the steps that were applied. An up-to-date file is left
        untouched and no backup is written; if it is current by structure
        but has no ``version`` field, only the version is stamped.

        Raises:
            MigrationPathNotFoundError: the catalog cannot reach the current version.
            MigrationStepError: a step failed. Earlier steps stay applied.
        """
        logger.debug("Loaded %d migration step(s)", len(self._steps))
        raw = self._load_raw()
        detected = detect_version(raw)
        if detected == self._current_version:
            if isinstance(raw, dict) and not raw.get("version"):
                self._stamp_version(raw)
            return []

        logger.info(
            "Data version %s detected, migrating to %s", detected, self._current_version
        )
        path = self.plan(detected)
        for step in path:
            self._apply(step)
        logger.info(
            "Successfully migrated from %s to %s", detected, self._current_version
        )
        return path

    def _apply(self, step: MigrationStep) -> None:
        logger.info("Executing migration: %s -> %s", step.from_version, step.to_version)
        backup = backup_path(self._data_file, step.from_version)
        try:
            shutil.copyfile(self._data_file, backup)
        except OSError as e:
            logger.error("Backup before migration %s failed: %s", step.from_version, e)
            raise MigrationStepError(
                step.from_version, step.to_version, f"backup failed: {e}"
            ) from e
        logger.info("Backup created: %s", backup)

        try:
            step.migrate(self._data_file)
        except Exception as e:
            logger.error(
                "Migration %s -> %s failed: %s", step.from_version, step.to_version, e
            )
            raise MigrationStepError(step.from_version, step.to_version, str(e)) from e
