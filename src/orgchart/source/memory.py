"""In-memory Tree Source seeded from YAML.

Applies the same rules as the hierarchy API: only departments can be
created, the company root cannot be deleted, deletes cascade, a user holds
at most one seat, and binding a user to the company root makes them the CEO.
Department titles and role titles written through it are added to the
name catalogs served with the tree.
"""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Any

import yaml

from orgchart.core.errors import ServerError
from orgchart.core.types import NodeKind, UserStatus
from orgchart.hierarchy.models import (
    BoundUser,
    CatalogItem,
    Catalogs,
    HierarchyRecord,
    Permissions,
    TreeSnapshot,
)
from orgchart.hierarchy.tree import normalize_catalog_name, sort_catalog

_DEFAULT_SEED_PATH = Path(__file__).resolve().parents[3] / "config" / "hierarchy_seed.yml"

MAX_TITLE_LENGTH = 180


class InMemoryTreeSource:
    """Tree Source backed by a dict of records.

    Suitable for demos, tests and single-process deployments.
    """

    def __init__(
        self,
        records: list[HierarchyRecord] | None = None,
        users: list[BoundUser] | None = None,
        can_edit: bool = True,
        current_user_id: str | None = None,
        seed_path: str | Path | None = None,
        catalogs: Catalogs | None = None,
    ) -> None:
        self._records: dict[str, HierarchyRecord] = {}
        self._users: dict[str, BoundUser] = {}
        self._departments: dict[str, CatalogItem] = {}
        self._roles: dict[str, CatalogItem] = {}
        self.can_edit = can_edit
        self.current_user_id = current_user_id
        if records is None and users is None:
            self._load_seed(Path(seed_path) if seed_path else _DEFAULT_SEED_PATH)
        for record in records or []:
            self._records[record.id] = record.model_copy(deep=True)
        for user in users or []:
            self._users[user.id] = user
        if catalogs is not None:
            self._departments.update((item.name, item) for item in catalogs.departments)
            self._roles.update((item.name, item) for item in catalogs.roles)

    def _load_seed(self, path: Path) -> None:
        if not path.exists():
            return
        with open(path) as fh:
            data: dict[str, Any] = yaml.safe_load(fh) or {}
        self.can_edit = data.get("can_edit", self.can_edit)
        self.current_user_id = data.get("current_user_id", self.current_user_id)
        for user in data.get("users", []):
            parsed = BoundUser(**user)
            self._users[parsed.id] = parsed
        for position, item in enumerate(data.get("records", [])):
            record = HierarchyRecord(
                id=item["id"],
                parent_id=item.get("parent_id"),
                kind=item["kind"],
                title=item.get("title", ""),
                role_title=item.get("role_title"),
                status=item.get("status"),
                bound_user_id=item.get("user_id"),
                position=item.get("position", position),
            )
            self._records[record.id] = record
        catalogs = data.get("catalogs") or {}
        for item in catalogs.get("departments", []):
            parsed = CatalogItem(**item)
            self._departments[parsed.name] = parsed
        for item in catalogs.get("roles", []):
            parsed = CatalogItem(**item)
            self._roles[parsed.name] = parsed

    # -- reads ---------------------------------------------------------------

    async def fetch_tree(self) -> TreeSnapshot:
        records = [self._snapshot(r) for r in self._records.values()]
        return TreeSnapshot(
            records=records,
            permissions=Permissions(
                can_edit=self.can_edit,
                can_add_department=self.can_edit,
                can_assign_user=self.can_edit,
            ),
            current_user_id=self.current_user_id,
            catalogs=Catalogs(
                departments=sort_catalog([i.model_copy() for i in self._departments.values()]),
                roles=sort_catalog([i.model_copy() for i in self._roles.values()]),
            ),
        )

    async def list_users(self) -> list[BoundUser]:
        return list(self._users.values())

    # -- mutations -----------------------------------------------------------

    async def create_node(self, parent_id: str, kind: NodeKind, title: str) -> HierarchyRecord:
        self._require_edit()
        title = self._clean_title(title)
        if NodeKind(kind) != NodeKind.DEPARTMENT:
            raise ServerError("type must be department", 400)
        parent = self._records.get(parent_id)
        if parent is None:
            raise ServerError("parent node not found", 400)
        if parent.kind == NodeKind.USER:
            raise ServerError("cannot create a department under a user node", 400)

        record = HierarchyRecord(
            id=str(uuid.uuid4()),
            parent_id=parent_id,
            kind=NodeKind.DEPARTMENT,
            title=title,
            position=self._next_position(parent_id),
        )
        self._records[record.id] = record
        _ensure_catalog_entry(self._departments, title)
        return self._snapshot(record)

    async def delete_node(self, node_id: str) -> None:
        self._require_edit()
        record = self._get(node_id)
        if record.kind == NodeKind.COMPANY:
            raise ServerError("cannot delete company root node", 400)
        self._delete_subtree(node_id)

    async def rename_node(self, node_id: str, title: str) -> HierarchyRecord:
        self._require_edit()
        record = self._get(node_id)
        record.title = self._clean_title(title)
        if record.kind == NodeKind.DEPARTMENT:
            _ensure_catalog_entry(self._departments, record.title)
        return self._snapshot(record)

    async def assign_user(self, node_id: str, user_id: str) -> HierarchyRecord:
        self._require_edit()
        target = self._records.get(node_id)
        user = self._users.get(user_id)
        if target is None or user is None:
            raise ServerError("node or user not found", 400)
        if target.kind == NodeKind.USER:
            raise ServerError("user cannot be assigned under a user node", 400)

        existing = next(
            (r for r in self._records.values() if r.bound_user_id == user_id),
            None,
        )

        if target.kind == NodeKind.COMPANY:
            if existing is not None and existing.id != target.id:
                self._delete_subtree(existing.id)
            target.bound_user_id = user_id
            return self._snapshot(target)

        if existing is not None and existing.kind == NodeKind.COMPANY:
            existing.bound_user_id = None
            existing = None

        title = user.display_name or "User"
        if existing is None:
            seat = HierarchyRecord(
                id=str(uuid.uuid4()),
                parent_id=node_id,
                kind=NodeKind.USER,
                title=title,
                bound_user_id=user_id,
                status=UserStatus.FREE,
                position=self._next_position(node_id),
            )
            self._records[seat.id] = seat
            return self._snapshot(seat)

        if node_id in self._subtree(existing.id):
            raise ServerError("cannot move a node into its own subtree", 400)
        existing.title = title
        existing.parent_id = node_id
        existing.position = self._next_position(node_id)
        return self._snapshot(existing)

    async def set_status(self, node_id: str, status: UserStatus) -> None:
        self._require_edit()
        record = self._get(node_id)
        try:
            record.status = UserStatus(status)
        except ValueError:
            raise ServerError("status must be free, busy, or sick", 400)

    async def set_role_title(self, node_id: str, role_title: str | None) -> HierarchyRecord:
        self._require_edit()
        record = self._get(node_id)
        if record.kind != NodeKind.USER:
            raise ServerError("role title applies to user nodes only", 400)
        record.role_title = (role_title or "").strip() or None
        if record.role_title:
            _ensure_catalog_entry(self._roles, record.role_title)
        return self._snapshot(record)

    async def set_ceo(self, company_id: str, user_id: str) -> HierarchyRecord:
        company = self._get(company_id)
        if company.kind != NodeKind.COMPANY:
            raise ServerError("CEO can only be assigned to the company root", 400)
        return await self.assign_user(company_id, user_id)

    async def close(self) -> None:
        """Nothing to release."""

    # -- internal ------------------------------------------------------------

    def _require_edit(self) -> None:
        if not self.can_edit:
            raise ServerError("forbidden", 403)

    def _get(self, node_id: str) -> HierarchyRecord:
        record = self._records.get(node_id)
        if record is None:
            raise ServerError("node not found", 404)
        return record

    @staticmethod
    def _clean_title(title: str) -> str:
        title = (title or "").strip()
        if not title:
            raise ServerError("title is required", 400)
        if len(title) > MAX_TITLE_LENGTH:
            raise ServerError("title is too long", 400)
        return title

    def _next_position(self, parent_id: str) -> int:
        positions = [r.position for r in self._records.values() if r.parent_id == parent_id]
        return max(positions, default=-1) + 1

    def _subtree(self, node_id: str) -> set[str]:
        found = {node_id}
        changed = True
        while changed:
            changed = False
            for record in self._records.values():
                if record.parent_id in found and record.id not in found:
                    found.add(record.id)
                    changed = True
        return found

    def _delete_subtree(self, node_id: str) -> None:
        for record_id in self._subtree(node_id):
            del self._records[record_id]

    def _snapshot(self, record: HierarchyRecord) -> HierarchyRecord:
        copy = record.model_copy(deep=True)
        if copy.bound_user_id:
            copy.bound_user = self._users.get(copy.bound_user_id)
        return copy


def _ensure_catalog_entry(catalog: dict[str, CatalogItem], name: str) -> None:
    name = normalize_catalog_name(name)
    if name and name not in catalog:
        catalog[name] = CatalogItem(id=str(uuid.uuid4()), name=name)
