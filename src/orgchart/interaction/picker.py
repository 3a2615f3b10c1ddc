"""Picker mode: reuse the graph view to choose a user for another page.

A caller enters picker mode with a return destination. Clicking a user
seat resolves the picker and sends the caller back with the chosen user id
appended as a query parameter; cancelling sends them back without it.
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import BaseModel

from orgchart.core.config import PickerConfig
from orgchart.core.errors import ValidationError
from orgchart.core.types import GraphNodeType
from orgchart.graph.models import GraphNode

logger = logging.getLogger(__name__)


class PickerResult(BaseModel):
    """Where to navigate once the picker is resolved or cancelled."""

    destination: str
    user_id: str | None = None


def safe_return_path(raw: str | None, default: str) -> str:
    """Return ``raw`` if it is an internal path, else ``default``.

    Internal means: starts with a single ``/``, is not protocol-relative
    (``//host`` or ``/\\host``), has no scheme or host, and contains no
    control characters.
    """
    if not raw:
        return default
    if any(ord(ch) < 32 or ord(ch) == 127 for ch in raw):
        return default
    if not raw.startswith("/") or raw.startswith("//") or raw.startswith("/\\"):
        return default
    parts = urlsplit(raw)
    if parts.scheme or parts.netloc:
        return default
    return raw


def with_query_param(path: str, name: str, value: str) -> str:
    """Set ``name=value`` on ``path``, replacing any previous value."""
    parts = urlsplit(path)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != name]
    query.append((name, value))
    return urlunsplit(("", "", parts.path, urlencode(query), parts.fragment))


class PickerFlow:
    """Short-lived user-selection flow layered over the graph view."""

    def __init__(self, config: PickerConfig | None = None) -> None:
        self.config = config or PickerConfig()
        self.return_to: str | None = None

    @property
    def active(self) -> bool:
        return self.return_to is not None

    def enter(self, return_to: str | None) -> str:
        """Enter picker mode. Returns the validated return destination."""
        self.return_to = safe_return_path(return_to, self.config.default_destination)
        if return_to and self.return_to != return_to:
            logger.warning("Rejected picker return destination %r", return_to)
        return self.return_to

    def pick(self, node: GraphNode) -> PickerResult | None:
        """Resolve with ``node``'s bound user.

        Returns None, leaving picker mode active, when ``node`` is not a
        user seat with a bound user.
        """
        destination = self._require_active()
        user_id = node.meta.bound_user_id
        if node.type != GraphNodeType.USER or not user_id:
            return None
        self.return_to = None
        return PickerResult(
            destination=with_query_param(destination, self.config.user_param, user_id),
            user_id=user_id,
        )

    def cancel(self) -> PickerResult:
        destination = self._require_active()
        self.return_to = None
        return PickerResult(destination=destination)

    def _require_active(self) -> str:
        if self.return_to is None:
            raise ValidationError("Picker mode is not active")
        return self.return_to
