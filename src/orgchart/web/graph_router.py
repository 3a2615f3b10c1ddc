"""FastAPI router for the hierarchy graph, its edits and picker mode."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from orgchart.core.errors import (
    GraphNotReadyError,
    HierarchyError,
    MalformedTreeError,
    NodeNotFoundError,
    PermissionDeniedError,
    ServerError,
    TransportError,
    ValidationError,
)
from orgchart.core.types import NodeKind, StoreState
from orgchart.graph.store import GraphStore
from orgchart.hierarchy.models import HierarchyRecord

router = APIRouter()


# --- Request models ---


class LayoutRequest(BaseModel):
    direction: str


class CreateNodeRequest(BaseModel):
    parent_id: str
    kind: str = NodeKind.DEPARTMENT
    title: str


class UpdateNodeRequest(BaseModel):
    title: str | None = None
    role_title: str | None = None


class StatusRequest(BaseModel):
    status: str


class AssignUserRequest(BaseModel):
    user_id: str


class PickerEnterRequest(BaseModel):
    return_to: str | None = None


class PickerPickRequest(BaseModel):
    node_id: str


# --- Helpers ---


def to_http_error(exc: HierarchyError) -> HTTPException:
    """Map a hierarchy error onto an HTTP status."""
    if isinstance(exc, PermissionDeniedError):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, NodeNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, GraphNotReadyError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ServerError):
        status = exc.status_code if 400 <= exc.status_code < 500 else 502
        return HTTPException(status_code=status, detail=str(exc))
    if isinstance(exc, TransportError):
        return HTTPException(status_code=502, detail=str(exc))
    if isinstance(exc, MalformedTreeError):
        return HTTPException(status_code=500, detail=f"Malformed hierarchy: {exc}")
    return HTTPException(status_code=500, detail=str(exc))


def graph_payload(store: GraphStore) -> dict[str, Any]:
    return {
        "state": str(store.state),
        "can_edit": store.can_edit,
        "direction": str(store.direction),
        "last_error": store.last_error,
        "catalogs": store.catalogs.model_dump(mode="json"),
        "nodes": [node.model_dump(mode="json") for node in store.nodes],
        "edges": [edge.model_dump(mode="json") for edge in store.edges],
    }


def _record_payload(store: GraphStore, record: HierarchyRecord) -> dict[str, Any]:
    return {"record": record.model_dump(mode="json"), "graph": graph_payload(store)}


def _store(request: Request) -> GraphStore:
    return request.app.state.graph_store


# --- Graph ---


@router.get("/api/graph")
async def get_graph(request: Request) -> dict[str, Any]:
    """Return the positioned graph, loading it on first access."""
    store = _store(request)
    if store.state == StoreState.IDLE:
        try:
            await store.load()
        except HierarchyError as exc:
            raise to_http_error(exc)
    return graph_payload(store)


@router.post("/api/graph/reload")
async def reload_graph(request: Request) -> dict[str, Any]:
    store = _store(request)
    try:
        await store.load()
    except HierarchyError as exc:
        raise to_http_error(exc)
    return graph_payload(store)


@router.post("/api/graph/layout")
async def relayout_graph(body: LayoutRequest, request: Request) -> dict[str, Any]:
    store = _store(request)
    try:
        await store.relayout(body.direction)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown direction {body.direction!r}")
    except HierarchyError as exc:
        raise to_http_error(exc)
    return graph_payload(store)


# --- Edits ---


@router.post("/api/graph/nodes", status_code=201)
async def create_node(body: CreateNodeRequest, request: Request) -> dict[str, Any]:
    store = _store(request)
    try:
        record = await store.create_child_node(body.parent_id, body.kind, body.title)
    except HierarchyError as exc:
        raise to_http_error(exc)
    return _record_payload(store, record)


@router.patch("/api/graph/nodes/{node_id}")
async def update_node(node_id: str, body: UpdateNodeRequest, request: Request) -> dict[str, Any]:
    """Rename a node and/or change a seat's role title.

    Both parts are validated before either is sent, but they remain two
    Tree Source calls: if the role title is rejected remotely, the rename
    has already been applied.
    """
    store = _store(request)
    set_role = "role_title" in body.model_fields_set
    if body.title is None and not set_role:
        raise HTTPException(status_code=400, detail="Nothing to update")
    try:
        store.validate_update(node_id, body.title, body.role_title, set_role=set_role)
        record = None
        if body.title is not None:
            record = await store.rename_node(node_id, body.title)
        if set_role:
            record = await store.set_role_title(node_id, body.role_title)
    except HierarchyError as exc:
        raise to_http_error(exc)
    return _record_payload(store, record)


@router.delete("/api/graph/nodes/{node_id}")
async def delete_node(node_id: str, request: Request) -> dict[str, Any]:
    store = _store(request)
    try:
        removed = await store.delete_node(node_id)
    except HierarchyError as exc:
        raise to_http_error(exc)
    return {"removed": removed, "graph": graph_payload(store)}


@router.patch("/api/graph/nodes/{node_id}/status")
async def set_node_status(node_id: str, body: StatusRequest, request: Request) -> dict[str, Any]:
    store = _store(request)
    try:
        await store.set_status(node_id, body.status)
    except HierarchyError as exc:
        raise to_http_error(exc)
    return graph_payload(store)


@router.post("/api/graph/nodes/{node_id}/assign-user")
async def assign_user(node_id: str, body: AssignUserRequest, request: Request) -> dict[str, Any]:
    store = _store(request)
    try:
        record = await store.assign_user(node_id, body.user_id)
    except HierarchyError as exc:
        raise to_http_error(exc)
    return _record_payload(store, record)


@router.post("/api/graph/nodes/{node_id}/ceo")
async def set_ceo(node_id: str, request: Request) -> dict[str, Any]:
    store = _store(request)
    try:
        record = await store.set_ceo(node_id)
    except HierarchyError as exc:
        raise to_http_error(exc)
    return _record_payload(store, record)


# --- Picker mode ---


@router.post("/api/graph/picker/enter")
async def enter_picker(body: PickerEnterRequest, request: Request) -> dict[str, Any]:
    picker = request.app.state.picker
    return {"active": True, "return_to": picker.enter(body.return_to)}


@router.post("/api/graph/picker/pick")
async def pick_user(body: PickerPickRequest, request: Request) -> dict[str, Any]:
    """Resolve picker mode with a clicked node."""
    controller = request.app.state.interaction
    if not controller.picker.active:
        raise HTTPException(status_code=400, detail="Picker mode is not active")
    try:
        result = controller.click(body.node_id)
    except HierarchyError as exc:
        raise to_http_error(exc)
    if result is None:
        return {"resolved": False, "active": controller.picker.active}
    return {"resolved": True, "active": False, **result.model_dump()}


@router.post("/api/graph/picker/cancel")
async def cancel_picker(request: Request) -> dict[str, Any]:
    picker = request.app.state.picker
    try:
        result = picker.cancel()
    except HierarchyError as exc:
        raise to_http_error(exc)
    return {"resolved": False, "active": False, **result.model_dump()}
