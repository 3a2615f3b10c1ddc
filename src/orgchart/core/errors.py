"""Error taxonomy for hierarchy graph operations.

Every error carries a ``recoverable`` flag. Recoverable errors leave the
graph exactly as it was before the failed edit; a non-recoverable error
means the current view must be reloaded from the Tree Source.
"""

from __future__ import annotations


class HierarchyError(Exception):
    """Base class for all hierarchy graph errors."""

    recoverable: bool = True


class MalformedTreeError(HierarchyError):
    """The record forest or graph violates the single-root tree invariant."""

    recoverable = False


class PermissionDeniedError(HierarchyError):
    """An edit was attempted without edit rights. No request is sent."""


class ValidationError(HierarchyError):
    """A local precondition failed (unknown node, wrong node kind, bad value)."""


class NodeNotFoundError(ValidationError):
    """The referenced node does not exist."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Node {node_id!r} not found")
        self.node_id = node_id


class GraphNotReadyError(HierarchyError):
    """The store has no usable graph (not loaded yet, or needs a reload)."""


class TreeSourceError(HierarchyError):
    """A Tree Source request failed."""


class TransportError(TreeSourceError):
    """The Tree Source could not be reached."""


class ServerError(TreeSourceError):
    """The Tree Source rejected the request or failed to process it."""

    def __init__(self, message: str, status_code: int = 500) -> None:
        super().__init__(message)
        self.status_code = status_code
