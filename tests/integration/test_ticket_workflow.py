"""End-to-end ticket workflows against a real ticket file."""

from __future__ import annotations

import json
import random
from graphlib import CycleError, TopologicalSorter
from pathlib import Path

import pytest

from ticketflow.core.errors import CircularDependencyError, NotFoundError, TicketflowError
from ticketflow.core.models import TicketStatus
from ticketflow.core.service import TicketService

pytestmark = pytest.mark.regression


def _assert_acyclic(data_file: Path) -> None:
    tickets = json.loads(data_file.read_text(encoding="utf-8"))["tickets"]
    graph = {tid: set(t["blockedBy"]) for tid, t in tickets.items()}
    try:
        list(TopologicalSorter(graph).static_order())
    except CycleError as e:  # pragma: no cover - failure path
        pytest.fail(f"blockedBy graph has a cycle: {e.args[1]}")


class TestScenarios:
    def test_cycle_rejected_and_tickets_unchanged(self, service: TicketService):
        a = service.create("A", "first")
        b = service.create("B", "second", blocked_by=[a.id])

        with pytest.raises(CircularDependencyError):
            service.update(a.id, blocked_by=[b.id])

        assert service.read(a.id) == a
        assert service.read(b.id) == b

    def test_next_and_research_tree_through_closing(self, service: TicketService):
        a = service.create("A", "a")
        b = service.create("B", "b", blocked_by=[a.id])
        c = service.create("C", "c", blocked_by=[b.id])

        (only,) = service.next()
        assert only.id == a.id
        assert [n.id for n in only.research_tree] == [b.id]
        assert [n.id for n in only.research_tree[0].unblocks] == [c.id]

        service.update(a.id, status="closed")

        (only,) = service.next()
        assert only.id == b.id
        assert [n.id for n in only.research_tree] == [c.id]

    def test_delete_cleans_dependents(self, service: TicketService):
        a = service.create("A", "a")
        b = service.create("B", "b", blocked_by=[a.id])

        service.delete(a.id)

        after = service.read(b.id)
        assert after.blocked_by == []
        assert after.model_dump(exclude={"blocked_by"}) == b.model_dump(exclude={"blocked_by"})

    def test_batch_update_with_unknown_id_is_atomic(self, service: TicketService, data_file: Path):
        valid = service.create("Valid", "v")
        x = service.create("X", "x")
        before = data_file.read_bytes()

        with pytest.raises(NotFoundError):
            service.update_batch(
                [
                    {"ticketId": x.id, "blockedBy": [valid.id]},
                    {"ticketId": "missing", "title": "x"},
                ]
            )

        assert data_file.read_bytes() == before
        assert service.read(x.id) == x


class TestInvariants:
    def test_random_mutations_keep_graph_sound(self, service: TicketService, data_file: Path):
        rng = random.Random(1234)
        statuses = [s.value for s in TicketStatus]
        minted: list[str] = []

        for step in range(150):
            live = [t.id for t in service.list()]
            roll = rng.random()
            before = data_file.read_bytes()
            try:
                if roll < 0.45 or not live:
                    blockers = rng.sample(live, k=min(len(live), rng.randint(0, 3)))
                    minted.append(service.create(f"T{step}", "d", blocked_by=blockers).id)
                elif roll < 0.85:
                    target = rng.choice(live)
                    pool = live + ["TICKET-9999"]
                    blockers = rng.sample(pool, k=min(len(pool), rng.randint(0, 3)))
                    service.update(target, blocked_by=blockers, status=rng.choice(statuses))
                else:
                    service.delete(rng.choice(live))
            except TicketflowError:
                assert data_file.read_bytes() == before

            _assert_acyclic(data_file)
            doc = json.loads(data_file.read_text(encoding="utf-8"))
            for tid, t in doc["tickets"].items():
                assert tid not in t["blockedBy"]
                assert all(dep in doc["tickets"] for dep in t["blockedBy"])
            assert doc["nextId"] > max(int(m.split("-")[1]) for m in minted)

        # next() only returns tickets whose blockers are all closed
        by_id = {t.id: t for t in service.list()}
        for ready in service.next():
            assert ready.status != TicketStatus.CLOSED
            assert all(by_id[dep].status == TicketStatus.CLOSED for dep in by_id[ready.id].blocked_by)

    def test_ids_unique_across_deletes(self, service: TicketService):
        seen = set()
        for i in range(5):
            t = service.create(f"T{i}", "d")
            assert t.id not in seen
            seen.add(t.id)
            if i % 2 == 0:
                service.delete(t.id)
        assert service.create("last", "d").id == "TICKET-0006"

    def test_research_tree_tolerates_stored_cycle(self, service: TicketService, data_file: Path):
        a = service.create("A", "a")
        b = service.create("B", "b", blocked_by=[a.id])
        c = service.create("C", "c")
        # hand-edit a latent cycle A <-> B, leaving C ready
        doc = json.loads(data_file.read_text(encoding="utf-8"))
        doc["tickets"][a.id]["blockedBy"] = [b.id]
        doc["tickets"][c.id]["blockedBy"] = []
        doc["tickets"][b.id]["blockedBy"] = [a.id, c.id]
        data_file.write_text(json.dumps(doc), encoding="utf-8")

        (ready,) = service.next()
        assert ready.id == c.id
        assert [n.id for n in ready.research_tree] == [b.id]
        assert [n.id for n in ready.research_tree[0].unblocks] == [a.id]
        assert [n.id for n in ready.research_tree[0].unblocks[0].unblocks] == [b.id]
        assert ready.research_tree[0].unblocks[0].unblocks[0].unblocks == []
