"""HTTP Tree Source talking to the hierarchy REST API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from orgchart.core.config import TreeSourceConfig
from orgchart.core.errors import MalformedTreeError, ServerError, TransportError
from orgchart.core.types import NodeKind, UserStatus
from orgchart.hierarchy.models import (
    BoundUser,
    Catalogs,
    HierarchyRecord,
    Permissions,
    TreeSnapshot,
)
from orgchart.hierarchy.tree import catalog_from_payload, flatten_tree, record_from_payload

logger = logging.getLogger(__name__)


class HttpTreeSource:
    """Tree Source over ``/hierarchy`` endpoints.

    5xx responses and transport errors are retried with exponential
    back-off up to ``config.max_retries`` times. 4xx responses are not
    retried and surface as ServerError with the API's ``error`` message.
    """

    def __init__(self, config: TreeSourceConfig) -> None:
        self.config = config
        headers: dict[str, str] = {}
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"
        self._http = httpx.AsyncClient(
            base_url=config.base_url.rstrip("/") + config.api_prefix,
            timeout=httpx.Timeout(config.timeout_seconds),
            headers=headers,
        )

    # -- reads ---------------------------------------------------------------

    async def fetch_tree(self) -> TreeSnapshot:
        data = await self._request("GET", "/hierarchy/tree") or {}
        try:
            permissions = data.get("permissions") or {}
            catalogs = data.get("catalogs") or {}
            return TreeSnapshot(
                records=flatten_tree(data.get("tree") or []),
                permissions=Permissions(
                    can_edit=bool(permissions.get("can_edit")),
                    can_add_department=bool(permissions.get("can_add_department")),
                    can_assign_user=bool(permissions.get("can_assign_user")),
                ),
                current_user_id=data.get("current_user_id") or None,
                catalogs=Catalogs(
                    departments=catalog_from_payload(catalogs.get("departments")),
                    roles=catalog_from_payload(catalogs.get("roles")),
                ),
            )
        except (AttributeError, KeyError, TypeError, PydanticValidationError) as exc:
            raise MalformedTreeError(f"Invalid hierarchy tree payload: {exc}")

    async def list_users(self) -> list[BoundUser]:
        data = await self._request("GET", "/users")
        try:
            return [BoundUser(**item) for item in data or []]
        except (KeyError, TypeError, PydanticValidationError) as exc:
            raise ServerError(f"Invalid user directory payload: {exc}", 502)

    # -- mutations -----------------------------------------------------------

    async def create_node(self, parent_id: str, kind: NodeKind, title: str) -> HierarchyRecord:
        data = await self._request(
            "POST", "/hierarchy/nodes",
            json={"title": title, "type": str(kind), "parent_id": parent_id},
        )
        return _parse_record(data)

    async def delete_node(self, node_id: str) -> None:
        await self._request("DELETE", f"/hierarchy/nodes/{node_id}")

    async def rename_node(self, node_id: str, title: str) -> HierarchyRecord:
        data = await self._request("PATCH", f"/hierarchy/nodes/{node_id}", json={"title": title})
        return _parse_record(data)

    async def assign_user(self, node_id: str, user_id: str) -> HierarchyRecord:
        data = await self._request(
            "PATCH", "/hierarchy/assign-user",
            json={"node_id": node_id, "user_id": user_id},
        )
        return _parse_record(data)

    async def set_status(self, node_id: str, status: UserStatus) -> None:
        await self._request(
            "PATCH", f"/hierarchy/nodes/{node_id}/status",
            json={"status": str(status)},
        )

    async def set_role_title(self, node_id: str, role_title: str | None) -> HierarchyRecord:
        data = await self._request(
            "PATCH", f"/hierarchy/nodes/{node_id}",
            json={"role_title": role_title},
        )
        return _parse_record(data)

    async def set_ceo(self, company_id: str, user_id: str) -> HierarchyRecord:
        return await self.assign_user(company_id, user_id)

    async def close(self) -> None:
        await self._http.aclose()

    # -- internal retry logic ------------------------------------------------

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        """Execute a request, retrying on 5xx and transport errors."""
        max_attempts = max(1, self.config.max_retries + 1)

        for attempt in range(max_attempts):
            last_attempt = attempt == max_attempts - 1
            try:
                resp = await self._http.request(method, url, **kwargs)
            except httpx.TransportError as exc:
                if last_attempt:
                    raise TransportError(f"{method} {url} failed: {exc}")
                delay = 0.5 * (2 ** attempt)
                logger.warning(
                    "Transport error on %s: %s, retrying in %.1fs (%d/%d)",
                    url, exc, delay, attempt + 1, max_attempts,
                )
                await asyncio.sleep(delay)
                continue

            if resp.status_code >= 500 and not last_attempt:
                delay = 0.5 * (2 ** attempt)
                logger.warning(
                    "Request to %s returned %d, retrying in %.1fs (%d/%d)",
                    url, resp.status_code, delay, attempt + 1, max_attempts,
                )
                await asyncio.sleep(delay)
                continue
            if resp.status_code >= 400:
                raise ServerError(_error_message(resp), resp.status_code)
            if not resp.content:
                return None
            return resp.json()

        raise TransportError(f"{method} {url} failed")  # pragma: no cover


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return f"Server returned {resp.status_code}"
    if isinstance(body, dict):
        return str(body.get("error") or body.get("detail") or f"Server returned {resp.status_code}")
    return f"Server returned {resp.status_code}"


def _parse_record(data: Any) -> HierarchyRecord:
    try:
        return record_from_payload(data)
    except (KeyError, TypeError, PydanticValidationError) as exc:
        raise ServerError(f"Invalid hierarchy node payload: {exc}", 502)
