"""Graph data models: the rendering-oriented derivation of the hierarchy tree."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from orgchart.core.types import GraphNodeType, HandlePosition, UserStatus


class GraphNodeMeta(BaseModel):
    source_id: str | None = None
    source_parent_id: str | None = None
    bound_user_id: str | None = None
    role_title: str | None = None
    email: str | None = None
    avatar_url: str | None = None
    status: UserStatus | None = None
    linked_user_node_id: str | None = None
    is_ceo: bool = False
    is_ghost: bool = False


class GraphNode(BaseModel):
    id: str
    type: GraphNodeType
    title: str = ""
    subtitle: str = ""
    parent_id: str | None = None
    meta: GraphNodeMeta = Field(default_factory=GraphNodeMeta)


class GraphEdge(BaseModel):
    id: str
    source: str
    target: str
    kind: Literal["hierarchy"] = "hierarchy"

    @classmethod
    def between(cls, source: str, target: str) -> GraphEdge:
        return cls(id=edge_id(source, target), source=source, target=target)


class PositionedGraphNode(GraphNode):
    """A graph node with layout-assigned coordinates (top-left corner)."""

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    source_position: HandlePosition = HandlePosition.BOTTOM
    target_position: HandlePosition = HandlePosition.TOP


class Graph(BaseModel):
    """Nodes and edges of a hierarchy graph, with adjacency helpers."""

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)

    def get_node(self, node_id: str) -> GraphNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def children(self, node_id: str) -> list[str]:
        return [e.target for e in self.edges if e.source == node_id]

    def roots(self) -> list[GraphNode]:
        targets = {e.target for e in self.edges}
        return [n for n in self.nodes if n.id not in targets]

    def subtree_ids(self, node_id: str) -> list[str]:
        return subtree_ids(self.edges, node_id)

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)


def edge_id(source: str, target: str) -> str:
    return f"edge:{source}->{target}"


def subtree_ids(edges: list[GraphEdge], node_id: str) -> list[str]:
    """Return ``node_id`` and every node reachable from it via outgoing edges."""
    adjacency: dict[str, list[str]] = {}
    for edge in edges:
        adjacency.setdefault(edge.source, []).append(edge.target)

    result: list[str] = []
    seen: set[str] = set()
    stack = [node_id]
    while stack:
        current = stack.pop()
        if current in seen:
            continue
        seen.add(current)
        result.append(current)
        stack.extend(reversed(adjacency.get(current, [])))
    return result
