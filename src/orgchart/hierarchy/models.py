"""Hierarchy record models as delivered by the Tree Source."""

from __future__ import annotations

from pydantic import BaseModel, Field

from orgchart.core.types import NodeKind, UserStatus


class BoundUser(BaseModel):
    """Denormalized snapshot of the user bound to a hierarchy seat."""

    id: str
    email: str = ""
    full_name: str | None = None
    avatar_url: str | None = None

    @property
    def display_name(self) -> str | None:
        """Full name, else the local part of the email address."""
        name = (self.full_name or "").strip()
        if name:
            return name
        local = self.email.split("@")[0].strip()
        return local or None


class HierarchyRecord(BaseModel):
    """A persisted hierarchy node: company, department, role group or user seat."""

    id: str
    parent_id: str | None = None
    kind: NodeKind
    title: str = ""
    role_title: str | None = None
    status: UserStatus | None = None
    bound_user_id: str | None = None
    bound_user: BoundUser | None = None
    position: int = 0


class Permissions(BaseModel):
    """Edit rights of the current user, delivered alongside the tree."""

    can_edit: bool = False
    can_add_department: bool = False
    can_assign_user: bool = False


class CatalogItem(BaseModel):
    """A reusable department or role name offered by the edit menus."""

    id: str
    name: str
    is_system: bool = False


class Catalogs(BaseModel):
    """Department and role name catalogs, system entries first."""

    departments: list[CatalogItem] = Field(default_factory=list)
    roles: list[CatalogItem] = Field(default_factory=list)


class TreeSnapshot(BaseModel):
    """Result of a full tree fetch."""

    records: list[HierarchyRecord] = Field(default_factory=list)
    permissions: Permissions = Field(default_factory=Permissions)
    current_user_id: str | None = None
    catalogs: Catalogs = Field(default_factory=Catalogs)
