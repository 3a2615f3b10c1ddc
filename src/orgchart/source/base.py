"""Tree Source protocol: the hierarchy API consumed by the graph store."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from orgchart.core.types import NodeKind, UserStatus
from orgchart.hierarchy.models import BoundUser, HierarchyRecord, TreeSnapshot


@runtime_checkable
class TreeSource(Protocol):
    """Persistence boundary for hierarchy records.

    Every method may raise TransportError or ServerError; both are
    recoverable from the store's point of view.
    """

    async def fetch_tree(self) -> TreeSnapshot: ...

    async def list_users(self) -> list[BoundUser]: ...

    async def create_node(self, parent_id: str, kind: NodeKind, title: str) -> HierarchyRecord: ...

    async def delete_node(self, node_id: str) -> None: ...

    async def rename_node(self, node_id: str, title: str) -> HierarchyRecord: ...

    async def assign_user(self, node_id: str, user_id: str) -> HierarchyRecord: ...

    async def set_status(self, node_id: str, status: UserStatus) -> None: ...

    async def set_role_title(self, node_id: str, role_title: str | None) -> HierarchyRecord: ...

    async def set_ceo(self, company_id: str, user_id: str) -> HierarchyRecord: ...

    async def close(self) -> None: ...
