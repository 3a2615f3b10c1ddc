"""Node interaction controller.

One coordinator owns the action-menu state for the whole graph, so at most
one node can have its menu open: the menu is a single tagged value, either
``MenuClosed`` or ``MenuOpen(node_id, mode)``, and opening a menu on one
node replaces whatever was open before.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from orgchart.core.errors import NodeNotFoundError, PermissionDeniedError, ValidationError
from orgchart.core.types import GraphNodeType, MenuMode, UserStatus
from orgchart.graph.models import GraphNode
from orgchart.graph.store import GraphStore
from orgchart.interaction.picker import PickerFlow, PickerResult

logger = logging.getLogger(__name__)


class MenuClosed(BaseModel):
    state: Literal["closed"] = "closed"


class MenuOpen(BaseModel):
    state: Literal["open"] = "open"
    node_id: str
    mode: MenuMode = MenuMode.DEFAULT


MenuState = Annotated[MenuClosed | MenuOpen, Field(discriminator="state")]

ALLOWED_MODES: dict[GraphNodeType, frozenset[MenuMode]] = {
    GraphNodeType.COMPANY: frozenset({MenuMode.DEFAULT, MenuMode.SET_CEO}),
    GraphNodeType.DEPARTMENT: frozenset({MenuMode.DEFAULT}),
    GraphNodeType.USER: frozenset({
        MenuMode.DEFAULT,
        MenuMode.ASSIGN_ROLE,
        MenuMode.SET_STATUS,
        MenuMode.SET_CEO,
    }),
}

DOUBLE_CLICK_MODES: dict[GraphNodeType, MenuMode] = {
    GraphNodeType.COMPANY: MenuMode.SET_CEO,
    GraphNodeType.USER: MenuMode.SET_STATUS,
}


class InteractionController:
    """Selection, action menu and delete confirmation for a GraphStore."""

    def __init__(self, store: GraphStore, picker: PickerFlow | None = None) -> None:
        self.store = store
        self.picker = picker or PickerFlow()
        self.menu: MenuState = MenuClosed()
        self.selected_node_id: str | None = None
        self.delete_dialog_node_id: str | None = None

    @property
    def open_node_id(self) -> str | None:
        return self.menu.node_id if isinstance(self.menu, MenuOpen) else None

    def is_menu_open(self, node_id: str) -> bool:
        return self.open_node_id == node_id

    # -- selection -----------------------------------------------------------

    def select(self, node_id: str | None) -> None:
        """Select a node (or clear the selection). Read-only users may select."""
        if node_id is not None:
            self._node(node_id)
        if self.open_node_id is not None and self.open_node_id != node_id:
            self.close_menu()
        self.selected_node_id = node_id

    def click(self, node_id: str) -> PickerResult | None:
        """Single click: resolves the picker when active, otherwise selects."""
        node = self._node(node_id)
        if self.picker.active:
            return self.picker.pick(node)
        self.select(node_id)
        return None

    def double_click(self, node_id: str) -> PickerResult | None:
        """Open the node's type-specific menu mode."""
        node = self._node(node_id)
        if self.picker.active:
            return self.picker.pick(node)
        self.select(node_id)
        self.open_menu(node_id, DOUBLE_CLICK_MODES.get(node.type, MenuMode.DEFAULT))
        return None

    # -- action menu ---------------------------------------------------------

    def open_menu(self, node_id: str, mode: MenuMode | str = MenuMode.DEFAULT) -> MenuOpen:
        if not self.store.can_edit:
            raise PermissionDeniedError("Editing the hierarchy is not allowed")
        node = self._node(node_id)
        mode = MenuMode(mode)
        if mode not in ALLOWED_MODES.get(node.type, frozenset()):
            raise ValidationError(f"Menu mode {mode!s} is not available for a {node.type} node")
        self.menu = MenuOpen(node_id=node_id, mode=mode)
        self.selected_node_id = node_id
        return self.menu

    def toggle_menu(self, node_id: str) -> MenuClosed | MenuOpen:
        if self.is_menu_open(node_id):
            self.close_menu()
        else:
            self.open_menu(node_id)
        return self.menu

    def close_menu(self) -> None:
        self.menu = MenuClosed()

    # -- submit helpers ------------------------------------------------------

    async def submit_status(self, status: UserStatus | str) -> None:
        menu = self._require_menu(MenuMode.SET_STATUS)
        await self.store.set_status(menu.node_id, status)
        self.close_menu()

    async def submit_role(self, role_title: str | None) -> None:
        menu = self._require_menu(MenuMode.ASSIGN_ROLE)
        await self.store.set_role_title(menu.node_id, role_title)
        self.close_menu()

    async def submit_ceo(self, user_id: str | None = None) -> None:
        """Make someone the CEO.

        From a company menu ``user_id`` names the user to bind to the
        company seat; from a user seat menu that seat's user is used.
        """
        menu = self._require_menu(MenuMode.SET_CEO)
        node = self._node(menu.node_id)
        if node.type == GraphNodeType.COMPANY:
            if not user_id:
                raise ValidationError("A user is required")
            await self.store.assign_user(node.id, user_id)
        else:
            await self.store.set_ceo(node.id)
        self.close_menu()

    # -- delete confirmation -------------------------------------------------

    def request_delete(self, node_id: str) -> None:
        if not self.store.can_edit:
            raise PermissionDeniedError("Editing the hierarchy is not allowed")
        node = self._node(node_id)
        if node.type in (GraphNodeType.COMPANY, GraphNodeType.GHOST):
            raise ValidationError(f"A {node.type} node cannot be deleted")
        self.close_menu()
        self.delete_dialog_node_id = node_id

    async def confirm_delete(self) -> list[str]:
        """Delete the node awaiting confirmation.

        The dialog stays open when the delete fails so the user can retry
        or cancel.
        """
        node_id = self.delete_dialog_node_id
        if node_id is None:
            raise ValidationError("No delete is awaiting confirmation")
        removed = await self.store.delete_node(node_id)
        self.delete_dialog_node_id = None
        self.close_menu()
        if self.selected_node_id in removed:
            self.selected_node_id = None
        logger.info("Deleted node %s and %d descendants", node_id, len(removed) - 1)
        return removed

    def cancel_delete(self) -> None:
        self.delete_dialog_node_id = None

    # -- view ----------------------------------------------------------------

    def view(self) -> dict[str, Any]:
        return {
            "menu": self.menu.model_dump(),
            "selected_node_id": self.selected_node_id,
            "delete_dialog_node_id": self.delete_dialog_node_id,
            "picker_active": self.picker.active,
        }

    # -- internal ------------------------------------------------------------

    def _node(self, node_id: str) -> GraphNode:
        node = self.store.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def _require_menu(self, mode: MenuMode) -> MenuOpen:
        if not isinstance(self.menu, MenuOpen) or self.menu.mode != mode:
            raise ValidationError(f"No {mode!s} menu is open")
        return self.menu
