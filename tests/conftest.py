"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from orgchart.core.errors import TransportError
from orgchart.core.types import NodeKind, UserStatus
from orgchart.hierarchy.models import BoundUser, HierarchyRecord
from orgchart.source.memory import InMemoryTreeSource

MUTATIONS = frozenset({
    "create_node",
    "delete_node",
    "rename_node",
    "assign_user",
    "set_status",
    "set_role_title",
    "set_ceo",
})


# ---------------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------------

def company(id: str = "company", title: str = "Acme", **kwargs: Any) -> HierarchyRecord:
    return HierarchyRecord(id=id, kind=NodeKind.COMPANY, title=title, **kwargs)


def department(id: str, parent_id: str, title: str = "", position: int = 0) -> HierarchyRecord:
    return HierarchyRecord(
        id=id, parent_id=parent_id, kind=NodeKind.DEPARTMENT, title=title, position=position,
    )


def role(id: str, parent_id: str, title: str = "", position: int = 0) -> HierarchyRecord:
    return HierarchyRecord(
        id=id, parent_id=parent_id, kind=NodeKind.ROLE, title=title, position=position,
    )


def seat(
    id: str,
    parent_id: str,
    user: BoundUser | None = None,
    title: str = "",
    role_title: str | None = None,
    status: UserStatus | None = None,
    position: int = 0,
) -> HierarchyRecord:
    return HierarchyRecord(
        id=id,
        parent_id=parent_id,
        kind=NodeKind.USER,
        title=title,
        role_title=role_title,
        status=status,
        bound_user_id=user.id if user else None,
        bound_user=user,
        position=position,
    )


ALICE = BoundUser(id="u-alice", email="alice@example.com", full_name="Alice Moreau")
BOB = BoundUser(id="u-bob", email="bob@example.com", full_name="Bob Lindqvist")
CAROL = BoundUser(
    id="u-carol",
    email="carol@example.com",
    full_name="Carol Nakamura",
    avatar_url="https://example.com/carol.png",
)
DAN = BoundUser(id="u-dan", email="dan@example.com")


def sample_records() -> list[HierarchyRecord]:
    """company -> Engineering(Alice, Bob), Sales(Carol). Dan has no seat."""
    return [
        company(),
        department("dept-eng", "company", "Engineering", position=0),
        seat("seat-alice", "dept-eng", ALICE, role_title="Tech Lead", status=UserStatus.FREE),
        seat("seat-bob", "dept-eng", BOB, status=UserStatus.BUSY, position=1),
        department("dept-sales", "company", "Sales", position=1),
        seat("seat-carol", "dept-sales", CAROL, role_title="Account Manager"),
    ]


def sample_users() -> list[BoundUser]:
    return [ALICE, BOB, CAROL, DAN]


# ---------------------------------------------------------------------------
# Tree Source wrapper
# ---------------------------------------------------------------------------

class ControlledTreeSource:
    """Wraps a Tree Source to fail or hold selected calls and record them."""

    def __init__(self, inner: Any, fail_on: set[str] | frozenset[str] = frozenset()) -> None:
        self.inner = inner
        self.fail_on = set(fail_on)
        self.error: Exception = TransportError("network down")
        self.gate: asyncio.Event | None = None
        self.calls: list[str] = []

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self.inner, name)
        if name.startswith("_") or not callable(attr):
            return attr

        async def call(*args: Any, **kwargs: Any) -> Any:
            self.calls.append(name)
            if self.gate is not None and name in MUTATIONS:
                await self.gate.wait()
            if name in self.fail_on:
                raise self.error
            return await attr(*args, **kwargs)

        return call

    @property
    def mutation_calls(self) -> list[str]:
        return [c for c in self.calls if c in MUTATIONS]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def records() -> list[HierarchyRecord]:
    return sample_records()


@pytest.fixture
def users() -> list[BoundUser]:
    return sample_users()


@pytest.fixture
def memory_source(records, users) -> InMemoryTreeSource:
    return InMemoryTreeSource(records=records, users=users)


@pytest.fixture
def source(memory_source) -> ControlledTreeSource:
    return ControlledTreeSource(memory_source)
