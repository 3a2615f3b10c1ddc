"""Optimistic graph store.

Holds the live positioned graph for one hierarchy and applies edits to it
before the Tree Source confirms them. Every edit follows the same pattern:

1. validate locally (permissions, node existence, node type);
2. snapshot nodes and edges;
3. apply the edit in memory and re-run the layout;
4. send the request to the Tree Source;
5. on success, reconcile from a fresh ``fetch_tree``;
   on failure, restore the snapshot verbatim and re-raise.

Edits are serialized through an ``asyncio.Lock`` so two in-flight edits
never restore each other's snapshots.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from orgchart.core.config import LayoutConfig
from orgchart.core.errors import (
    GraphNotReadyError,
    MalformedTreeError,
    NodeNotFoundError,
    PermissionDeniedError,
    TreeSourceError,
    ValidationError,
)
from orgchart.core.types import GraphNodeType, LayoutDirection, NodeKind, StoreState, UserStatus
from orgchart.graph.builder import (
    COMPANY_CEO_LABEL,
    DEPARTMENT_LABEL,
    PARTICIPANT_LABEL,
    USER_FALLBACK_TITLE,
    build_graph,
    node_from_record,
)
from orgchart.graph.layout import layout
from orgchart.graph.models import (
    GraphEdge,
    GraphNode,
    GraphNodeMeta,
    PositionedGraphNode,
    subtree_ids,
)
from orgchart.hierarchy.models import (
    BoundUser,
    Catalogs,
    HierarchyRecord,
    Permissions,
    TreeSnapshot,
)
from orgchart.source.base import TreeSource

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 180
GHOST_PREFIX = "ghost:"

_Snapshot = tuple[list[PositionedGraphNode], list[GraphEdge]]


class GraphStore:
    """Live client copy of the hierarchy graph with optimistic edits."""

    def __init__(
        self,
        source: TreeSource,
        config: LayoutConfig | None = None,
        direction: LayoutDirection | str | None = None,
    ) -> None:
        self.source = source
        self.config = config or LayoutConfig()
        self.direction = LayoutDirection(direction or self.config.direction)
        self.state = StoreState.IDLE
        self.nodes: list[PositionedGraphNode] = []
        self.edges: list[GraphEdge] = []
        self.records: list[HierarchyRecord] = []
        self.permissions = Permissions()
        self.current_user_id: str | None = None
        self.catalogs = Catalogs()
        self.users: dict[str, BoundUser] = {}
        self.last_error: str | None = None
        self._lock = asyncio.Lock()

    @property
    def can_edit(self) -> bool:
        return self.permissions.can_edit

    @property
    def is_ready(self) -> bool:
        return self.state in (StoreState.READY, StoreState.MUTATING)

    def get_node(self, node_id: str) -> PositionedGraphNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def subtree_ids(self, node_id: str) -> list[str]:
        return subtree_ids(self.edges, node_id)

    # -- loading -------------------------------------------------------------

    async def load(self) -> None:
        """Fetch the tree and rebuild the graph from scratch.

        A failed fetch leaves a previously loaded graph in place. A
        malformed tree moves the store to the error state. The user
        directory is loaded once the graph is ready; failing to load it
        only leaves optimistic seats with fallback titles.
        """
        async with self._lock:
            had_graph = self.is_ready
            self.state = StoreState.LOADING
            try:
                snapshot = await self.source.fetch_tree()
                self._apply_tree(snapshot)
            except MalformedTreeError as exc:
                self._fail(exc)
                raise
            except Exception as exc:
                self.state = StoreState.READY if had_graph else StoreState.IDLE
                self.last_error = str(exc)
                logger.warning("Failed to load hierarchy tree: %s", exc)
                raise

            self.state = StoreState.READY
            self.last_error = None
            logger.info(
                "Loaded hierarchy graph: %d nodes, %d edges (can_edit=%s)",
                len(self.nodes), len(self.edges), self.can_edit,
            )
            await self._load_users()

    async def relayout(self, direction: LayoutDirection | str) -> None:
        """Re-run the layout for a new direction without touching the graph."""
        async with self._lock:
            self._require_ready()
            self.direction = LayoutDirection(direction)
            self._relayout()

    async def close(self) -> None:
        await self.source.close()

    # -- edit operations -----------------------------------------------------

    def validate_update(
        self,
        node_id: str,
        title: str | None = None,
        role_title: str | None = None,
        set_role: bool = False,
    ) -> None:
        """Run the local checks of a combined rename / role-title edit.

        Lets callers reject the whole edit before either request is sent.
        The two requests are still separate Tree Source calls: if the second
        one fails, the first stays applied.
        """
        if title is not None:
            self._check_rename(node_id, title)
        if set_role:
            self._check_role_title(node_id, role_title)

    async def rename_node(self, node_id: str, title: str) -> HierarchyRecord:
        async with self._lock:
            node, title = self._check_rename(node_id, title)

            def apply() -> None:
                node.title = title

            return await self._mutate(
                "rename_node", apply, lambda: self.source.rename_node(node_id, title),
            )

    async def create_child_node(
        self,
        parent_id: str,
        kind: NodeKind | str = NodeKind.DEPARTMENT,
        title: str = "",
    ) -> HierarchyRecord:
        """Insert a ghost child under ``parent_id`` and create it remotely.

        On success the ghost is replaced in place by the server's record.
        """
        async with self._lock:
            self._require_editable()
            parent = self._require_node(parent_id)
            if parent.type not in (GraphNodeType.COMPANY, GraphNodeType.DEPARTMENT):
                raise ValidationError(
                    "Departments can only be created under the company or a department"
                )
            try:
                kind = NodeKind(kind)
            except ValueError:
                raise ValidationError(f"Unknown node kind {kind!r}")
            if kind != NodeKind.DEPARTMENT:
                raise ValidationError("Only departments can be created")
            title = _clean_title(title)

            ghost = _ghost_node(
                parent_id,
                title=title,
                subtitle=DEPARTMENT_LABEL,
            )

            def apply() -> None:
                self._insert_subtree(parent_id, [ghost])
                self.edges.append(GraphEdge.between(parent_id, ghost.id))

            def confirm(record: HierarchyRecord) -> None:
                self._replace_ghost(ghost.id, record, parent_id)

            return await self._mutate(
                "create_child_node",
                apply,
                lambda: self.source.create_node(parent_id, kind, title),
                confirm,
            )

    async def delete_node(self, node_id: str) -> list[str]:
        """Delete a node and its whole subtree. Returns the removed node ids."""
        async with self._lock:
            self._require_editable()
            node = self._require_node(node_id)
            if node.type == GraphNodeType.COMPANY:
                raise ValidationError("The company root cannot be deleted")
            removed = self.subtree_ids(node_id)

            def apply() -> None:
                self._remove_nodes(set(removed))

            await self._mutate(
                "delete_node", apply, lambda: self.source.delete_node(node_id),
            )
            return removed

    async def assign_user(self, node_id: str, user_id: str) -> HierarchyRecord:
        """Seat a user under the company or a department.

        Assigning to the company binds the CEO seat and removes the user's
        existing seat. Otherwise an existing seat of the user is moved under
        the target, or a new seat is inserted as a ghost. The acting CEO
        cannot be moved into a department until another CEO is assigned.
        """
        async with self._lock:
            self._require_editable()
            target = self._require_node(node_id)
            if target.type not in (GraphNodeType.COMPANY, GraphNodeType.DEPARTMENT):
                raise ValidationError("Users can only be assigned to the company or a department")
            if not user_id:
                raise ValidationError("A user is required")

            seat = self._seat_of(user_id)
            if target.type == GraphNodeType.COMPANY:
                def apply() -> None:
                    self._bind_company(target, user_id, seat)

                return await self._mutate(
                    "assign_user", apply, lambda: self.source.assign_user(node_id, user_id),
                )

            company = self._company()
            bound_ceo = company is not None and company.meta.bound_user_id == user_id
            if bound_ceo or (seat is not None and seat.meta.is_ceo):
                raise ValidationError(
                    "The acting CEO cannot be moved into a department; assign another CEO first"
                )

            if seat is not None and node_id in self.subtree_ids(seat.id):
                raise ValidationError("Cannot move a node into its own subtree")

            if seat is not None:
                def apply() -> None:
                    self._move_subtree(seat.id, node_id)
                    seat.title = self._user_title(user_id, seat.title)

                return await self._mutate(
                    "assign_user", apply, lambda: self.source.assign_user(node_id, user_id),
                )

            ghost = _ghost_node(
                node_id,
                title=self._user_title(user_id, USER_FALLBACK_TITLE),
                subtitle=PARTICIPANT_LABEL,
                bound_user_id=user_id,
            )

            def apply() -> None:
                self._insert_subtree(node_id, [ghost])
                self.edges.append(GraphEdge.between(node_id, ghost.id))

            def confirm(record: HierarchyRecord) -> None:
                self._replace_ghost(ghost.id, record, node_id)

            return await self._mutate(
                "assign_user",
                apply,
                lambda: self.source.assign_user(node_id, user_id),
                confirm,
            )

    async def set_status(self, node_id: str, status: UserStatus | str) -> None:
        async with self._lock:
            self._require_editable()
            node = self._require_node(node_id)
            if not node.meta.bound_user_id:
                raise ValidationError("Status can only be set on a node with a bound user")
            try:
                status = UserStatus(status)
            except ValueError:
                raise ValidationError("Status must be free, busy or sick")

            def apply() -> None:
                node.meta.status = status

            await self._mutate(
                "set_status", apply, lambda: self.source.set_status(node_id, status),
            )

    async def set_role_title(self, node_id: str, role_title: str | None) -> HierarchyRecord:
        async with self._lock:
            node, role_title = self._check_role_title(node_id, role_title)

            def apply() -> None:
                node.meta.role_title = role_title
                node.subtitle = role_title or PARTICIPANT_LABEL

            return await self._mutate(
                "set_role_title",
                apply,
                lambda: self.source.set_role_title(node_id, role_title),
            )

    async def set_ceo(self, user_node_id: str) -> HierarchyRecord:
        """Make the user seated at ``user_node_id`` the company's CEO."""
        async with self._lock:
            self._require_editable()
            node = self._require_node(user_node_id)
            if node.type != GraphNodeType.USER or not node.meta.bound_user_id:
                raise ValidationError("Only a seat with a bound user can become CEO")
            company = self._company()
            if company is None:
                raise MalformedTreeError("Graph has no company node")
            user_id = node.meta.bound_user_id

            def apply() -> None:
                self._bind_company(company, user_id, node)

            return await self._mutate(
                "set_ceo", apply, lambda: self.source.set_ceo(company.id, user_id),
            )

    # -- optimistic machinery ------------------------------------------------

    async def _mutate(
        self,
        operation: str,
        apply: Callable[[], None],
        request: Callable[[], Awaitable[Any]],
        confirm: Callable[[Any], None] | None = None,
    ) -> Any:
        snapshot = self._snapshot()
        try:
            apply()
            self._relayout()
            self.state = StoreState.MUTATING
            result = await request()
        except Exception as exc:
            self._rollback(operation, snapshot, exc)
            raise

        if confirm is not None:
            try:
                confirm(result)
                self._relayout()
            except MalformedTreeError as exc:
                # The server accepted the edit but its record cannot be drawn.
                self._restore(snapshot)
                self._fail(exc)
                raise
            except Exception as exc:
                self._rollback(operation, snapshot, exc)
                raise
        try:
            await self._reconcile(operation)
        finally:
            if self.state == StoreState.MUTATING:
                self.state = StoreState.READY
        self.last_error = None
        return result

    def _rollback(self, operation: str, snapshot: _Snapshot, exc: Exception) -> None:
        self._restore(snapshot)
        self.state = StoreState.READY
        self.last_error = str(exc)
        logger.warning("Rolled back %s: %s", operation, exc)

    async def _reconcile(self, operation: str) -> None:
        try:
            snapshot = await self.source.fetch_tree()
            self._apply_tree(snapshot)
        except TreeSourceError as exc:
            logger.warning(
                "Could not refresh tree after %s, keeping optimistic graph: %s",
                operation, exc,
            )
        except MalformedTreeError as exc:
            self._fail(exc)
            raise

    def _snapshot(self) -> _Snapshot:
        return (
            [node.model_copy(deep=True) for node in self.nodes],
            [edge.model_copy() for edge in self.edges],
        )

    def _restore(self, snapshot: _Snapshot) -> None:
        nodes, edges = snapshot
        self.nodes = nodes
        self.edges = edges

    def _apply_tree(self, snapshot: TreeSnapshot) -> None:
        graph = build_graph(snapshot.records)
        positioned = layout(graph.nodes, graph.edges, self.direction, self.config)
        self.records = snapshot.records
        self.permissions = snapshot.permissions
        self.current_user_id = snapshot.current_user_id
        self.catalogs = snapshot.catalogs
        self.nodes = positioned
        self.edges = graph.edges

    def _relayout(self) -> None:
        self.nodes = layout(self.nodes, self.edges, self.direction, self.config)

    def _fail(self, exc: MalformedTreeError) -> None:
        self.state = StoreState.ERROR
        self.last_error = str(exc)
        logger.error("Hierarchy tree is malformed, reload required: %s", exc)

    async def _load_users(self) -> None:
        try:
            users = await self.source.list_users()
        except TreeSourceError as exc:
            logger.warning("Failed to load user directory: %s", exc)
            return
        self.users = {user.id: user for user in users}

    # -- validation ----------------------------------------------------------

    def _require_ready(self) -> None:
        if self.state == StoreState.ERROR:
            raise GraphNotReadyError(f"Graph needs a reload: {self.last_error}")
        if not self.is_ready:
            raise GraphNotReadyError("Graph is not loaded")

    def _require_editable(self) -> None:
        self._require_ready()
        if not self.can_edit:
            raise PermissionDeniedError("Editing the hierarchy is not allowed")

    def _require_node(self, node_id: str) -> PositionedGraphNode:
        node = self.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        if node.meta.is_ghost:
            raise ValidationError(f"Node {node_id!r} is still being created")
        return node

    def _check_rename(self, node_id: str, title: str) -> tuple[PositionedGraphNode, str]:
        self._require_editable()
        node = self._require_node(node_id)
        if node.type == GraphNodeType.COMPANY:
            raise ValidationError("The company root cannot be renamed")
        return node, _clean_title(title)

    def _check_role_title(
        self, node_id: str, role_title: str | None,
    ) -> tuple[PositionedGraphNode, str | None]:
        self._require_editable()
        node = self._require_node(node_id)
        if node.type != GraphNodeType.USER:
            raise ValidationError("Role titles apply to user nodes only")
        role_title = (role_title or "").strip() or None
        if role_title and len(role_title) > MAX_TITLE_LENGTH:
            raise ValidationError("Role title is too long")
        return node, role_title

    # -- in-memory graph edits -----------------------------------------------

    def _company(self) -> PositionedGraphNode | None:
        return next((n for n in self.nodes if n.type == GraphNodeType.COMPANY), None)

    def _seat_of(self, user_id: str) -> PositionedGraphNode | None:
        for node in self.nodes:
            if node.type == GraphNodeType.USER and node.meta.bound_user_id == user_id:
                return node
        return None

    def _user_title(self, user_id: str, fallback: str) -> str:
        user = self.users.get(user_id)
        return (user.display_name if user else None) or fallback

    def _bind_company(
        self,
        company: GraphNode,
        user_id: str,
        seat: GraphNode | None,
    ) -> None:
        title = self._user_title(user_id, seat.title if seat else company.title)
        avatar_url = seat.meta.avatar_url if seat else None
        if seat is not None:
            self._remove_nodes(set(self.subtree_ids(seat.id)))
        for node in self.nodes:
            node.meta.is_ceo = False
        user = self.users.get(user_id)
        company.title = title
        company.subtitle = COMPANY_CEO_LABEL
        company.meta.bound_user_id = user_id
        company.meta.avatar_url = (user.avatar_url if user else None) or avatar_url
        company.meta.email = user.email if user else None
        company.meta.linked_user_node_id = None
        company.meta.is_ceo = True

    def _index_of(self, node_id: str) -> int:
        for i, node in enumerate(self.nodes):
            if node.id == node_id:
                return i
        raise NodeNotFoundError(node_id)

    def _insert_subtree(self, parent_id: str, nodes: list[GraphNode]) -> None:
        """Insert nodes right after the last node of ``parent_id``'s subtree."""
        block = set(self.subtree_ids(parent_id))
        last = max(i for i, n in enumerate(self.nodes) if n.id in block)
        self.nodes[last + 1:last + 1] = nodes

    def _remove_nodes(self, removed: set[str]) -> None:
        self.nodes = [n for n in self.nodes if n.id not in removed]
        self.edges = [
            e for e in self.edges if e.source not in removed and e.target not in removed
        ]

    def _move_subtree(self, node_id: str, new_parent_id: str) -> None:
        moved = set(self.subtree_ids(node_id))
        block = [n for n in self.nodes if n.id in moved]
        self.nodes = [n for n in self.nodes if n.id not in moved]
        self.edges = [e for e in self.edges if e.target != node_id]
        self._insert_subtree(new_parent_id, block)
        self.edges.append(GraphEdge.between(new_parent_id, node_id))
        block[0].parent_id = new_parent_id
        block[0].meta.source_parent_id = new_parent_id

    def _replace_ghost(self, ghost_id: str, record: HierarchyRecord, parent_id: str) -> None:
        index = self._index_of(ghost_id)
        real = node_from_record(record, parent_id)
        self.nodes[index] = real
        self.edges = [
            GraphEdge.between(parent_id, real.id) if e.target == ghost_id else e
            for e in self.edges
        ]


def _ghost_node(
    parent_id: str,
    title: str,
    subtitle: str,
    bound_user_id: str | None = None,
) -> GraphNode:
    return GraphNode(
        id=f"{GHOST_PREFIX}{uuid.uuid4().hex}",
        type=GraphNodeType.GHOST,
        title=title,
        subtitle=subtitle,
        parent_id=parent_id,
        meta=GraphNodeMeta(
            source_parent_id=parent_id,
            bound_user_id=bound_user_id,
            is_ghost=True,
        ),
    )


def _clean_title(title: str) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title is required")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Title must be at most {MAX_TITLE_LENGTH} characters")
    return title
