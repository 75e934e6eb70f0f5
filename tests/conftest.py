"""Shared test fixtures."""

from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from ticketflow.core.service import TicketService


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Auto-apply 'smoke' marker to any test not marked 'regression'."""
    smoke = pytest.mark.smoke
    for item in items:
        if not any(m.name == "regression" for m in item.iter_markers()):
            item.add_marker(smoke)


@pytest.fixture
def data_file(tmp_path: Path) -> Path:
    return tmp_path / "data" / "tickets.json"


@pytest.fixture
def clock():
    """Make every service timestamp one second later than the previous one."""
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    ticks = itertools.count()

    def fake_now() -> str:
        return (start + timedelta(seconds=next(ticks))).isoformat()

    with patch("ticketflow.core.service._now_iso", side_effect=fake_now):
        yield


@pytest.fixture
def service(data_file: Path, clock) -> TicketService:
    svc = TicketService(data_file)
    svc.initialize()
    return svc
