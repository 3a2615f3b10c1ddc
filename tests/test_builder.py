"""Tests for the tree-to-graph builder and CEO resolution."""

from __future__ import annotations

from collections import Counter

import pytest

from orgchart.core.errors import MalformedTreeError
from orgchart.core.types import GraphNodeType, NodeKind
from orgchart.graph.builder import build_graph, dedupe_edges, node_from_record
from orgchart.graph.ceo import find_ceo, is_ceo_title
from orgchart.graph.models import GraphEdge
from orgchart.hierarchy.models import BoundUser, HierarchyRecord

from tests.conftest import ALICE, BOB, company, department, role, sample_records, seat


def _ids(graph) -> list[str]:
    return [n.id for n in graph.nodes]


class TestTreeShape:
    def test_single_root_and_one_parent_each(self):
        graph = build_graph(sample_records())
        incoming = Counter(e.target for e in graph.edges)
        roots = [n for n in graph.nodes if incoming[n.id] == 0]
        assert len(roots) == 1
        assert roots[0].type == GraphNodeType.COMPANY
        assert all(incoming[n.id] == 1 for n in graph.nodes if n is not roots[0])
        assert graph.edge_count == graph.node_count - 1

    def test_pre_order_with_siblings_by_position(self):
        records = [
            company(),
            department("b", "company", "B", position=2),
            department("a", "company", "A", position=1),
            seat("a1", "a", ALICE),
        ]
        graph = build_graph(records)
        assert _ids(graph) == ["company", "a", "a1", "b"]

    def test_edge_ids_are_deterministic(self):
        graph = build_graph(sample_records())
        edge = next(e for e in graph.edges if e.target == "dept-eng")
        assert edge.id == "edge:company->dept-eng"
        assert edge.kind == "hierarchy"

    def test_parent_id_is_graph_parent(self):
        graph = build_graph(sample_records())
        assert graph.get_node("seat-alice").parent_id == "dept-eng"
        assert graph.get_node("company").parent_id is None

    def test_idempotent(self):
        first = build_graph(sample_records())
        second = build_graph(sample_records())
        assert first.model_dump() == second.model_dump()

    def test_user_seats_are_terminal(self):
        records = [
            company(),
            department("d", "company", "Ops"),
            seat("lead", "d", ALICE),
            seat("report", "lead", BOB),
            role("r", "lead", "Group"),
            department("nested", "r", "Nested"),
        ]
        graph = build_graph(records)
        assert _ids(graph) == ["company", "d", "lead"]
        assert graph.children("lead") == []
        assert all(e.source != "lead" for e in graph.edges)

    def test_cycle_below_a_seat_is_still_detected(self):
        records = [
            company(),
            seat("lead", "company", ALICE),
            department("a", "lead"),
            department("b", "c"),
            department("c", "b"),
        ]
        with pytest.raises(MalformedTreeError, match="unreachable"):
            build_graph(records)


class TestRoleElision:
    def test_role_records_never_become_nodes(self):
        records = [
            company(),
            role("r", "company", "Engineering"),
            department("backend", "r", "Backend"),
        ]
        graph = build_graph(records)
        assert "r" not in _ids(graph)
        assert graph.get_node("backend").parent_id == "company"
        assert [e.id for e in graph.edges] == ["edge:company->backend"]

    def test_nested_roles_attach_to_nearest_emitted_ancestor(self):
        records = [
            company(),
            department("d", "company", "Research"),
            role("r1", "d", "Group"),
            role("r2", "r1", "Subgroup"),
            seat("s", "r2", ALICE),
        ]
        graph = build_graph(records)
        assert _ids(graph) == ["company", "d", "s"]
        assert graph.get_node("s").parent_id == "d"
        assert graph.get_node("s").meta.source_parent_id == "r2"

    def test_kinds_are_only_company_department_user(self):
        records = sample_records() + [role("r", "dept-sales"), seat("x", "r", BOB)]
        graph = build_graph(records)
        assert {n.type for n in graph.nodes} <= {
            GraphNodeType.COMPANY, GraphNodeType.DEPARTMENT, GraphNodeType.USER,
        }


class TestTitles:
    def test_user_title_from_full_name_and_role_subtitle(self):
        graph = build_graph(sample_records())
        alice = graph.get_node("seat-alice")
        assert alice.title == "Alice Moreau"
        assert alice.subtitle == "Tech Lead"
        assert alice.meta.email == "alice@example.com"

    def test_user_without_role_is_participant(self):
        graph = build_graph(sample_records())
        assert graph.get_node("seat-bob").subtitle == "Participant"

    def test_user_title_falls_back_to_email_local_part(self):
        user = BoundUser(id="u", email="jdoe@example.com")
        graph = build_graph([company(), seat("s", "company", user, title="Stored")])
        assert graph.get_node("s").title == "jdoe"

    def test_user_title_falls_back_to_stored_title_then_label(self):
        graph = build_graph([
            company(),
            seat("stored", "company", title="Vacancy"),
            seat("blank", "company", position=1),
        ])
        assert graph.get_node("stored").title == "Vacancy"
        assert graph.get_node("blank").title == "Employee"

    def test_department_subtitle_and_fallback_title(self):
        graph = build_graph([company(), department("d", "company")])
        node = graph.get_node("d")
        assert node.title == "Untitled"
        assert node.subtitle == "Department"

    def test_unbound_company_is_labelled_root(self):
        graph = build_graph([company(title="Acme")])
        node = graph.get_node("company")
        assert node.title == "Acme"
        assert node.subtitle == "Root node"

    def test_bound_company_shows_the_ceo(self):
        record = company(bound_user_id=BOB.id, bound_user=BOB)
        graph = build_graph([record])
        node = graph.get_node("company")
        assert node.title == "Bob Lindqvist"
        assert node.subtitle == "CEO"


class TestCeoResolution:
    def test_role_elided_ceo_example(self):
        alice = BoundUser(id="u-a", email="alice@example.com", full_name="Alice")
        records = [
            company(title="Acme"),
            role("eng", "company", "Engineering"),
            department("backend", "eng", "Backend"),
            seat("alice", "backend", alice, role_title="CEO"),
        ]
        graph = build_graph(records)

        assert _ids(graph) == ["company", "backend", "alice"]
        assert [e.id for e in graph.edges] == [
            "edge:company->backend",
            "edge:backend->alice",
        ]
        company_node = graph.get_node("company")
        assert company_node.title == "Alice"
        assert company_node.meta.linked_user_node_id == "alice"
        assert company_node.meta.is_ceo is True
        assert graph.get_node("alice").meta.is_ceo is True
        # Parentage is untouched.
        assert graph.get_node("alice").parent_id == "backend"

    @pytest.mark.parametrize("label", ["CEO", " ceo ", "Chief Executive Officer", "Генеральный директор"])
    def test_ceo_synonyms(self, label):
        assert is_ceo_title(label)

    @pytest.mark.parametrize("label", ["Deputy CEO", "", None, "CTO"])
    def test_non_ceo_titles(self, label):
        assert not is_ceo_title(label)

    def test_first_match_in_walk_order_wins(self):
        records = [
            company(),
            department("a", "company", position=0),
            seat("first", "a", ALICE, role_title="CEO"),
            department("b", "company", position=1),
            seat("second", "b", BOB, role_title="ceo"),
        ]
        graph = build_graph(records)
        assert find_ceo(graph.nodes).id == "first"
        assert graph.get_node("first").meta.is_ceo
        assert not graph.get_node("second").meta.is_ceo

    def test_bound_company_is_not_overridden(self):
        records = [
            company(bound_user_id=BOB.id, bound_user=BOB),
            seat("s", "company", ALICE, role_title="CEO"),
        ]
        graph = build_graph(records)
        company_node = graph.get_node("company")
        assert company_node.title == "Bob Lindqvist"
        assert company_node.meta.linked_user_node_id is None
        assert company_node.meta.is_ceo is True
        assert graph.get_node("s").meta.is_ceo

    def test_no_ceo_leaves_company_alone(self):
        graph = build_graph(sample_records())
        assert graph.get_node("company").title == "Acme"
        assert not any(n.meta.is_ceo for n in graph.nodes)


class TestMalformedTrees:
    def test_two_roots(self):
        with pytest.raises(MalformedTreeError, match="exactly one root"):
            build_graph([company("c1"), company("c2")])

    def test_no_records(self):
        with pytest.raises(MalformedTreeError):
            build_graph([])

    def test_root_must_be_company(self):
        with pytest.raises(MalformedTreeError, match="not a company"):
            build_graph([HierarchyRecord(id="d", kind=NodeKind.DEPARTMENT)])

    def test_missing_parent(self):
        with pytest.raises(MalformedTreeError, match="missing parent"):
            build_graph([company(), department("d", "ghost-parent")])

    def test_duplicate_ids(self):
        with pytest.raises(MalformedTreeError, match="Duplicate"):
            build_graph([company(), department("d", "company"), department("d", "company")])

    def test_self_parent(self):
        with pytest.raises(MalformedTreeError):
            build_graph([company(), department("d", "d")])

    def test_cycle_detached_from_root(self):
        records = [company(), department("a", "b"), department("b", "a")]
        with pytest.raises(MalformedTreeError, match="unreachable"):
            build_graph(records)

    def test_role_record_has_no_graph_node(self):
        with pytest.raises(MalformedTreeError):
            node_from_record(role("r", "company"), "company")


class TestEdgeDedup:
    def test_first_occurrence_wins(self):
        edges = [
            GraphEdge.between("a", "b"),
            GraphEdge.between("a", "c"),
            GraphEdge.between("a", "b"),
        ]
        assert [e.id for e in dedupe_edges(edges)] == ["edge:a->b", "edge:a->c"]


class TestGraphHelpers:
    def test_children_roots_and_subtree(self):
        graph = build_graph(sample_records())
        assert graph.children("dept-eng") == ["seat-alice", "seat-bob"]
        assert [n.id for n in graph.roots()] == ["company"]
        assert graph.subtree_ids("dept-eng") == ["dept-eng", "seat-alice", "seat-bob"]
        assert graph.subtree_ids("seat-carol") == ["seat-carol"]
        assert graph.get_node("nope") is None
