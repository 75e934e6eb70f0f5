"""Tests for the reverse-dependency research tree."""

from __future__ import annotations

from ticketflow.core.models import Document, ResearchTreeNode, Ticket, TicketStatus
from ticketflow.core.research_tree import build_tree


def _doc(*tickets: tuple[str, list[str], str]) -> Document:
    """Build a document from (id, blockedBy, status) triples."""
    return Document(
        version="0.2.0",
        tickets={
            ticket_id: Ticket(
                id=ticket_id,
                title=f"title {ticket_id}",
                blocked_by=blocked_by,
                status=TicketStatus(status),
                created_at="2024-01-01T00:00:00+00:00",
                updated_at="2024-01-01T00:00:00+00:00",
            )
            for ticket_id, blocked_by, status in tickets
        },
    )


def _shape(nodes: list[ResearchTreeNode]) -> list:
    return [(n.id, _shape(n.unblocks)) for n in nodes]


class TestBuildTree:
    def test_leaf(self):
        assert build_tree("A", _doc(("A", [], "open"))) == []

    def test_chain(self):
        doc = _doc(("A", [], "open"), ("B", ["A"], "open"), ("C", ["B"], "open"))
        tree = build_tree("A", doc)
        assert _shape(tree) == [("B", [("C", [])])]
        assert tree[0].title == "title B"

    def test_closed_dependents_are_dropped_with_their_subtree(self):
        doc = _doc(
            ("A", [], "open"),
            ("B", ["A"], "closed"),
            ("C", ["B"], "open"),
            ("D", ["A"], "in-progress"),
        )
        assert _shape(build_tree("A", doc)) == [("D", [])]

    def test_diamond_expanded_on_every_branch(self):
        doc = _doc(
            ("A", [], "open"),
            ("B", ["A"], "open"),
            ("C", ["A"], "open"),
            ("D", ["B", "C"], "open"),
        )
        assert _shape(build_tree("A", doc)) == [("B", [("D", [])]), ("C", [("D", [])])]

    def test_stored_cycle_terminates(self):
        doc = _doc(("A", ["B"], "open"), ("B", ["A"], "open"))
        assert _shape(build_tree("A", doc)) == [("B", [("A", [])])]

    def test_self_loop_terminates(self):
        doc = _doc(("A", ["A"], "open"))
        assert _shape(build_tree("A", doc)) == [("A", [])]

    def test_duplicate_blocker_listed_once(self):
        doc = _doc(("A", [], "open"), ("B", ["A", "A"], "open"))
        assert _shape(build_tree("A", doc)) == [("B", [])]

    def test_unknown_root(self):
        doc = _doc(("B", ["GONE"], "open"))
        assert _shape(build_tree("GONE", doc)) == [("B", [])]
