"""Tree-to-graph transformation.

``build_graph`` turns the flat list of hierarchy records delivered by the
Tree Source into the graph rendered by the client. Role records are
pass-through groupings: they never become graph nodes and their children
are attached to the nearest emitted ancestor, so the visual graph keeps
three tiers (company, department, user) whatever the role subgrouping in
the data.
"""

from __future__ import annotations

import logging

from orgchart.core.errors import MalformedTreeError
from orgchart.core.types import GraphNodeType, NodeKind
from orgchart.graph.ceo import apply_ceo
from orgchart.graph.models import Graph, GraphEdge, GraphNode, GraphNodeMeta
from orgchart.hierarchy.models import HierarchyRecord
from orgchart.hierarchy.tree import children_index

logger = logging.getLogger(__name__)

COMPANY_FALLBACK_TITLE = "Company"
COMPANY_ROOT_LABEL = "Root node"
COMPANY_CEO_LABEL = "CEO"
DEPARTMENT_LABEL = "Department"
DEPARTMENT_FALLBACK_TITLE = "Untitled"
USER_FALLBACK_TITLE = "Employee"
PARTICIPANT_LABEL = "Participant"

_NODE_TYPES = {
    NodeKind.COMPANY: GraphNodeType.COMPANY,
    NodeKind.DEPARTMENT: GraphNodeType.DEPARTMENT,
    NodeKind.USER: GraphNodeType.USER,
}


def build_graph(records: list[HierarchyRecord]) -> Graph:
    """Build the renderable graph for a hierarchy record forest.

    Pure and deterministic: the same records always yield the same nodes
    and edges, in the same order (depth-first pre-order, siblings by
    ``position``).

    Raises:
        MalformedTreeError: if the records do not form a single tree rooted
            at a company record. No partial graph is returned.
    """
    root = _check_forest(records)
    index = children_index(records)

    nodes: list[GraphNode] = []
    edges: list[GraphEdge] = []
    visited: set[str] = set()
    hidden = 0

    # (record, nearest emitted graph parent id, below a user seat)
    stack: list[tuple[HierarchyRecord, str | None, bool]] = [(root, None, False)]
    while stack:
        record, graph_parent, under_seat = stack.pop()
        if record.id in visited:
            raise MalformedTreeError(f"Record {record.id!r} reached twice (cycle)")
        visited.add(record.id)

        if under_seat:
            hidden += 1
            next_parent = graph_parent
        elif record.kind == NodeKind.ROLE:
            next_parent = graph_parent
        else:
            node = node_from_record(record, graph_parent)
            nodes.append(node)
            if graph_parent is not None:
                edges.append(GraphEdge.between(graph_parent, node.id))
            next_parent = node.id

        # User seats are terminal: records filed under them are walked for
        # cycle detection but never drawn.
        hide = under_seat or record.kind == NodeKind.USER
        children = index.get(record.id, [])
        stack.extend((child, next_parent, hide) for child in reversed(children))

    if len(visited) != len(records):
        unreachable = sorted({r.id for r in records} - visited)
        raise MalformedTreeError(
            f"Records unreachable from the root (cycle): {', '.join(unreachable)}"
        )

    if hidden:
        logger.debug("Skipped %d records filed under user seats", hidden)

    apply_ceo(nodes)

    graph = Graph(nodes=nodes, edges=dedupe_edges(edges))
    logger.debug(
        "Built graph with %d nodes and %d edges from %d records",
        graph.node_count, graph.edge_count, len(records),
    )
    return graph


def node_from_record(record: HierarchyRecord, graph_parent: str | None) -> GraphNode:
    """Materialize a single non-role record as a graph node."""
    node_type = _NODE_TYPES.get(record.kind)
    if node_type is None:
        raise MalformedTreeError(f"Record {record.id!r} of kind {record.kind!r} has no graph node")

    user = record.bound_user
    role_title = (record.role_title or "").strip() or None
    meta = GraphNodeMeta(
        source_id=record.id,
        source_parent_id=record.parent_id,
        bound_user_id=record.bound_user_id,
        role_title=role_title,
        email=user.email if user else None,
        avatar_url=user.avatar_url if user else None,
        status=record.status,
        is_ceo=node_type == GraphNodeType.COMPANY and bool(record.bound_user_id),
    )
    display_name = user.display_name if user else None

    if node_type == GraphNodeType.USER:
        title = display_name or record.title or USER_FALLBACK_TITLE
        subtitle = role_title or PARTICIPANT_LABEL
    elif node_type == GraphNodeType.DEPARTMENT:
        title = record.title or DEPARTMENT_FALLBACK_TITLE
        subtitle = DEPARTMENT_LABEL
    elif record.bound_user_id:
        title = display_name or record.title or COMPANY_FALLBACK_TITLE
        subtitle = COMPANY_CEO_LABEL
    else:
        title = record.title or COMPANY_FALLBACK_TITLE
        subtitle = COMPANY_ROOT_LABEL

    return GraphNode(
        id=record.id,
        type=node_type,
        title=title,
        subtitle=subtitle,
        parent_id=graph_parent,
        meta=meta,
    )


def dedupe_edges(edges: list[GraphEdge]) -> list[GraphEdge]:
    """Drop repeated edges by id, keeping the first occurrence."""
    unique: dict[str, GraphEdge] = {}
    for edge in edges:
        unique.setdefault(edge.id, edge)
    if len(unique) != len(edges):
        logger.warning("Dropped %d duplicate edges", len(edges) - len(unique))
    return list(unique.values())


def _check_forest(records: list[HierarchyRecord]) -> HierarchyRecord:
    ids: set[str] = set()
    for record in records:
        if record.id in ids:
            raise MalformedTreeError(f"Duplicate record id {record.id!r}")
        ids.add(record.id)

    roots = [r for r in records if r.parent_id is None]
    if len(roots) != 1:
        raise MalformedTreeError(f"Expected exactly one root record, found {len(roots)}")
    root = roots[0]
    if root.kind != NodeKind.COMPANY:
        raise MalformedTreeError(f"Root record {root.id!r} is a {root.kind}, not a company")

    for record in records:
        if record.parent_id is not None and record.parent_id not in ids:
            raise MalformedTreeError(
                f"Record {record.id!r} references missing parent {record.parent_id!r}"
            )
        if record.parent_id == record.id:
            raise MalformedTreeError(f"Record {record.id!r} is its own parent")
    return root
