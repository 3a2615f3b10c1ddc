"""Enumerations shared across the hierarchy, graph and interaction modules."""

from __future__ import annotations

from enum import StrEnum


class NodeKind(StrEnum):
    """Kind of a persisted hierarchy record."""

    COMPANY = "company"
    DEPARTMENT = "department"
    ROLE = "role"
    USER = "user"


class GraphNodeType(StrEnum):
    """Type of a rendered graph node. Role records never become graph nodes."""

    COMPANY = "company"
    DEPARTMENT = "department"
    USER = "user"
    GHOST = "ghost"


class UserStatus(StrEnum):
    FREE = "free"
    BUSY = "busy"
    SICK = "sick"


class LayoutDirection(StrEnum):
    TOP_BOTTOM = "TB"
    LEFT_RIGHT = "LR"


class HandlePosition(StrEnum):
    """Side of a node where edges enter or leave."""

    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"


class StoreState(StrEnum):
    """Lifecycle of the graph store."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    MUTATING = "mutating"
    ERROR = "error"


class MenuMode(StrEnum):
    """Action menu modes of a graph node."""

    DEFAULT = "default"
    ASSIGN_ROLE = "assignRole"
    SET_STATUS = "setStatus"
    SET_CEO = "setCEO"
