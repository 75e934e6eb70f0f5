"""Startup path: TicketService.initialize against fresh, legacy and unknown files."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from ticketflow.core.errors import MigrationPathNotFoundError, StorageError
from ticketflow.core.service import TicketService
from ticketflow.state.migrations import CURRENT_VERSION

pytestmark = pytest.mark.regression

LEGACY = {
    "tickets": {
        "TICKET-0001": {
            "id": "TICKET-0001",
            "title": "Design schema",
            "description": "tables",
            "projects": ["db"],
            "dependencies": [],
            "createdAt": "2024-01-01T00:00:00.000Z",
            "updatedAt": "2024-01-01T00:00:00.000Z",
            "status": "closed",
        },
        "TICKET-0002": {
            "id": "TICKET-0002",
            "title": "Write queries",
            "description": "selects",
            "projects": ["db"],
            "dependencies": ["TICKET-0001"],
            "createdAt": "2024-01-02T00:00:00.000Z",
            "updatedAt": "2024-01-02T00:00:00.000Z",
            "status": "open",
        },
    },
    "nextId": 3,
}


@pytest.fixture
def legacy_file(data_file: Path) -> Path:
    data_file.parent.mkdir(parents=True, exist_ok=True)
    data_file.write_text(json.dumps(LEGACY, indent=2), encoding="utf-8")
    return data_file


def test_fresh_start_creates_current_file(data_file: Path):
    TicketService(data_file).initialize()
    assert json.loads(data_file.read_text(encoding="utf-8")) == {
        "version": CURRENT_VERSION,
        "tickets": {},
        "nextId": 1,
    }


def test_legacy_file_is_migrated_and_usable(legacy_file: Path, clock):
    original = legacy_file.read_bytes()
    service = TicketService(legacy_file)
    service.initialize()

    backup = legacy_file.with_name("tickets.0.1.0.json")
    assert backup.read_bytes() == original

    queries = service.read("TICKET-0002")
    assert queries.blocked_by == ["TICKET-0001"]
    assert queries.created_at == "2024-01-02T00:00:00.000Z"

    (ready,) = service.next(project="DB")
    assert ready.id == "TICKET-0002"

    assert service.create("Index", "btree").id == "TICKET-0003"


def test_second_startup_changes_nothing(legacy_file: Path):
    TicketService(legacy_file).initialize()
    migrated = legacy_file.read_bytes()
    backup = legacy_file.with_name("tickets.0.1.0.json")
    backup_bytes = backup.read_bytes()

    TicketService(legacy_file).initialize()

    assert legacy_file.read_bytes() == migrated
    assert backup.read_bytes() == backup_bytes
    assert sorted(p.name for p in legacy_file.parent.iterdir()) == [
        "tickets.0.1.0.json",
        "tickets.json",
    ]


def test_unknown_version_aborts_startup(data_file: Path):
    data_file.parent.mkdir(parents=True, exist_ok=True)
    data_file.write_text(json.dumps({"version": "3.0.0", "tickets": {}, "nextId": 1}))
    service = TicketService(data_file)

    with pytest.raises(MigrationPathNotFoundError, match="No migration path from 3.0.0"):
        service.initialize()
    with pytest.raises(StorageError, match="run migrations first"):
        service.list()


def test_unversioned_blocked_by_file_is_stamped(data_file: Path, clock):
    data_file.parent.mkdir(parents=True, exist_ok=True)
    ticket = {
        key: value
        for key, value in LEGACY["tickets"]["TICKET-0002"].items()
        if key != "dependencies"
    }
    ticket["blockedBy"] = []
    data_file.write_text(
        json.dumps({"tickets": {"TICKET-0002": ticket}, "nextId": 3}), encoding="utf-8"
    )
    service = TicketService(data_file)

    service.initialize()

    data = json.loads(data_file.read_text(encoding="utf-8"))
    assert data["version"] == CURRENT_VERSION
    assert data["nextId"] == 3
    assert sorted(p.name for p in data_file.parent.iterdir()) == ["tickets.json"]
    assert service.read("TICKET-0002").title == "Write queries"
    assert service.create("Index", "btree").id == "TICKET-0003"
