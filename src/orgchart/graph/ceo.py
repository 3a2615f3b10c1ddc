"""CEO resolution by role-title matching.

The hierarchy has no explicit CEO flag: the CEO is inferred from a user
seat whose role title is one of a small set of reserved labels. The rule
is kept here, apart from the tree walk, so it can be replaced by an
explicit field without touching the builder.
"""

from __future__ import annotations

from orgchart.core.types import GraphNodeType
from orgchart.graph.models import GraphNode

CEO_TITLES = frozenset({
    "ceo",
    "chief executive officer",
    "генеральный директор",
})


def is_ceo_title(role_title: str | None) -> bool:
    return (role_title or "").strip().lower() in CEO_TITLES


def find_ceo(nodes: list[GraphNode]) -> GraphNode | None:
    """First user node in walk order whose role title is a CEO label."""
    for node in nodes:
        if node.type == GraphNodeType.USER and is_ceo_title(node.meta.role_title):
            return node
    return None


def apply_ceo(nodes: list[GraphNode]) -> GraphNode | None:
    """Flag the resolved CEO and mirror it onto an unbound company node.

    The mirrored company carries the CEO flag as well, the same as a company
    with a directly bound user. Only display attributes change; parentage is
    untouched. Returns the resolved CEO node, if any.
    """
    ceo = find_ceo(nodes)
    if ceo is None:
        return None
    ceo.meta.is_ceo = True

    company = next((n for n in nodes if n.type == GraphNodeType.COMPANY), None)
    if company is not None and not company.meta.bound_user_id:
        company.title = ceo.title
        company.meta.avatar_url = ceo.meta.avatar_url
        company.meta.linked_user_node_id = ceo.id
        company.meta.is_ceo = True
    return ceo
