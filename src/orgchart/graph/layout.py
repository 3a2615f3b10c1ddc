"""Layered hierarchical layout for tree-shaped graphs.

Nodes are ranked by depth from the root. Along the order axis, leaves are
packed left to right and every parent sits at the barycenter of its
children (bottom-up). When a parent would overlap the node to its left on
the same rank, its whole subtree is shifted right; shifts are recorded on
the parent and pushed down to the descendants in a second, top-down pass.
Siblings keep the order in which they appear in the node list, which for a
tree built by depth-first walk is already crossing-free.

The result depends only on the node list, the edge list, the direction and
the spacing constants, so re-running the layout after an edit leaves
untouched subtrees where they were, as far as the new structure allows.
"""

from __future__ import annotations

from orgchart.core.config import LayoutConfig
from orgchart.core.errors import MalformedTreeError
from orgchart.core.types import GraphNodeType, HandlePosition, LayoutDirection
from orgchart.graph.models import GraphEdge, GraphNode, PositionedGraphNode

FOOTPRINTS: dict[GraphNodeType, tuple[float, float]] = {
    GraphNodeType.COMPANY: (320.0, 124.0),
    GraphNodeType.DEPARTMENT: (300.0, 116.0),
    GraphNodeType.USER: (280.0, 108.0),
    GraphNodeType.GHOST: (260.0, 92.0),
}

_ANCHORS = {
    LayoutDirection.TOP_BOTTOM: (HandlePosition.BOTTOM, HandlePosition.TOP),
    LayoutDirection.LEFT_RIGHT: (HandlePosition.RIGHT, HandlePosition.LEFT),
}

_GRAPH_NODE_FIELDS = set(GraphNode.model_fields)


def footprint(node_type: GraphNodeType) -> tuple[float, float]:
    """Width and height of a node of the given type."""
    return FOOTPRINTS.get(node_type, FOOTPRINTS[GraphNodeType.USER])


def layout(
    nodes: list[GraphNode],
    edges: list[GraphEdge],
    direction: LayoutDirection | str = LayoutDirection.TOP_BOTTOM,
    config: LayoutConfig | None = None,
) -> list[PositionedGraphNode]:
    """Compute positions for every node of a tree-shaped graph.

    Args:
        nodes: Graph nodes; their order fixes sibling order.
        edges: Parent-to-child edges.
        direction: ``TB`` (top to bottom) or ``LR`` (left to right).
        config: Spacing constants. Defaults to LayoutConfig().

    Returns:
        Positioned copies of ``nodes``, in input order. ``x``/``y`` is the
        top-left corner of the node's footprint.

    Raises:
        MalformedTreeError: if the edges do not describe a forest over
            ``nodes``.
    """
    if config is None:
        config = LayoutConfig()
    direction = LayoutDirection(direction)
    if not nodes:
        return []

    order_index = {node.id: i for i, node in enumerate(nodes)}
    by_id = {node.id: node for node in nodes}
    children = _children_map(nodes, edges, order_index)
    roots = [n.id for n in nodes if n.id not in _targets(edges)]
    ranks = _assign_ranks(roots, children, len(nodes))

    horizontal = direction == LayoutDirection.LEFT_RIGHT

    def breadth(node_id: str) -> float:
        width, height = footprint(by_id[node_id].type)
        return height if horizontal else width

    def depth_extent(node_id: str) -> float:
        width, height = footprint(by_id[node_id].type)
        return width if horizontal else height

    # -- bottom-up: barycenter placement with per-rank contour -------------
    center: dict[str, float] = {}
    mod: dict[str, float] = {}
    deepest: dict[str, int] = {}
    next_free: dict[int, float] = {}

    for root in roots:
        for node_id in _post_order(root, children):
            rank = ranks[node_id]
            kids = children[node_id]
            half = breadth(node_id) / 2
            floor = next_free.get(rank, 0.0)
            mod[node_id] = 0.0
            if not kids:
                center[node_id] = floor + half
                deepest[node_id] = rank
            else:
                center[node_id] = sum(center[k] for k in kids) / len(kids)
                deepest[node_id] = max(deepest[k] for k in kids)
                shift = floor - (center[node_id] - half)
                if shift > 0:
                    center[node_id] += shift
                    mod[node_id] += shift
                    for below in range(rank + 1, deepest[node_id] + 1):
                        next_free[below] += shift
            next_free[rank] = center[node_id] + half + config.node_sep

    # -- top-down: push accumulated shifts to descendants ------------------
    final: dict[str, float] = {}
    for root in roots:
        stack = [(root, 0.0)]
        while stack:
            node_id, offset = stack.pop()
            final[node_id] = center[node_id] + offset
            below = offset + mod[node_id]
            stack.extend((kid, below) for kid in children[node_id])

    # -- rank axis ----------------------------------------------------------
    rank_depth: dict[int, float] = {}
    for node_id, rank in ranks.items():
        rank_depth[rank] = max(rank_depth.get(rank, 0.0), depth_extent(node_id))
    rank_center: dict[int, float] = {}
    cursor = 0.0
    for rank in range(max(rank_depth) + 1):
        depth = rank_depth.get(rank, 0.0)
        rank_center[rank] = cursor + depth / 2
        cursor += depth + config.rank_sep

    min_left = min(final[n] - breadth(n) / 2 for n in final)
    source_position, target_position = _ANCHORS[direction]

    positioned: list[PositionedGraphNode] = []
    for node in nodes:
        width, height = footprint(node.type)
        along = final[node.id] - min_left
        across = rank_center[ranks[node.id]]
        if horizontal:
            cx, cy = across + config.margin_x, along + config.margin_y
        else:
            cx, cy = along + config.margin_x, across + config.margin_y
        positioned.append(PositionedGraphNode(
            **node.model_dump(include=_GRAPH_NODE_FIELDS),
            x=_stable(cx - width / 2),
            y=_stable(cy - height / 2),
            width=width,
            height=height,
            source_position=source_position,
            target_position=target_position,
        ))
    return positioned


def _targets(edges: list[GraphEdge]) -> set[str]:
    return {e.target for e in edges}


def _children_map(
    nodes: list[GraphNode],
    edges: list[GraphEdge],
    order_index: dict[str, int],
) -> dict[str, list[str]]:
    children: dict[str, list[str]] = {node.id: [] for node in nodes}
    parent_of: dict[str, str] = {}
    for edge in edges:
        if edge.source not in order_index or edge.target not in order_index:
            raise MalformedTreeError(f"Edge {edge.id!r} references an unknown node")
        previous = parent_of.get(edge.target)
        if previous is not None and previous != edge.source:
            raise MalformedTreeError(f"Node {edge.target!r} has more than one parent")
        if previous == edge.source:
            continue
        parent_of[edge.target] = edge.source
        children[edge.source].append(edge.target)
    for kids in children.values():
        kids.sort(key=order_index.__getitem__)
    return children


def _assign_ranks(
    roots: list[str],
    children: dict[str, list[str]],
    total: int,
) -> dict[str, int]:
    ranks: dict[str, int] = {}
    frontier = list(roots)
    for root in roots:
        ranks[root] = 0
    while frontier:
        following: list[str] = []
        for node_id in frontier:
            for kid in children[node_id]:
                ranks[kid] = ranks[node_id] + 1
                following.append(kid)
        frontier = following
    if len(ranks) != total:
        raise MalformedTreeError("Graph contains a cycle: some nodes are unreachable from a root")
    return ranks


def _post_order(root: str, children: dict[str, list[str]]) -> list[str]:
    order: list[str] = []
    stack: list[tuple[str, bool]] = [(root, False)]
    while stack:
        node_id, expanded = stack.pop()
        if expanded:
            order.append(node_id)
            continue
        stack.append((node_id, True))
        stack.extend((kid, False) for kid in reversed(children[node_id]))
    return order


def _stable(value: float) -> float:
    return round(value, 3) + 0.0
