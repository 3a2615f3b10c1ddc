"""Helpers for moving between nested and flat hierarchy representations."""

from __future__ import annotations

from typing import Any

from orgchart.hierarchy.models import CatalogItem, HierarchyRecord


def flatten_tree(tree: list[dict[str, Any]]) -> list[HierarchyRecord]:
    """Flatten the server's nested ``tree`` payload into records.

    Each item may carry ``children``; the parent pointer is taken from the
    nesting when the item does not state one. Pre-order is preserved.
    """
    records: list[HierarchyRecord] = []
    stack: list[tuple[dict[str, Any], str | None]] = [
        (item, None) for item in reversed(tree)
    ]
    while stack:
        item, nesting_parent = stack.pop()
        records.append(record_from_payload(item, nesting_parent))
        children = item.get("children") or []
        stack.extend((child, str(item["id"])) for child in reversed(children))
    return records


def record_from_payload(item: dict[str, Any], parent_id: str | None = None) -> HierarchyRecord:
    """Map a single API node payload onto a HierarchyRecord."""
    user = item.get("user")
    role_title = (item.get("role_title") or "").strip() or None
    status = (item.get("status") or "").strip() or None
    return HierarchyRecord(
        id=str(item["id"]),
        parent_id=item.get("parent_id") or parent_id,
        kind=item.get("type") or item.get("kind"),
        title=item.get("title") or "",
        role_title=role_title,
        status=status,
        bound_user_id=item.get("user_id"),
        bound_user=user,
        position=item.get("position") or 0,
    )


def children_index(records: list[HierarchyRecord]) -> dict[str | None, list[HierarchyRecord]]:
    """Group records by parent id, ordered by ``position`` then input order."""
    index: dict[str | None, list[HierarchyRecord]] = {}
    for record in records:
        index.setdefault(record.parent_id, []).append(record)
    for siblings in index.values():
        siblings.sort(key=lambda r: r.position)
    return index


def catalog_from_payload(items: Any) -> list[CatalogItem]:
    """Map a catalog list from the tree payload; anything but a list is empty."""
    if not isinstance(items, list):
        return []
    return [
        CatalogItem(id=str(item["id"]), name=item["name"], is_system=bool(item.get("is_system")))
        for item in items
    ]


def normalize_catalog_name(name: str | None) -> str:
    """Trim and collapse internal whitespace."""
    return " ".join((name or "").split())


def sort_catalog(items: list[CatalogItem]) -> list[CatalogItem]:
    """System entries first, then by name."""
    return sorted(items, key=lambda item: (not item.is_system, item.name))
