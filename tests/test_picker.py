"""Tests for picker mode and return-path validation."""

from __future__ import annotations

import pytest

from orgchart.core.config import PickerConfig
from orgchart.core.errors import ValidationError
from orgchart.core.types import GraphNodeType
from orgchart.graph.models import GraphNode, GraphNodeMeta
from orgchart.interaction.picker import PickerFlow, safe_return_path, with_query_param


def _user_node(user_id: str | None = "u-1") -> GraphNode:
    return GraphNode(
        id="seat-1",
        type=GraphNodeType.USER,
        title="Jane",
        meta=GraphNodeMeta(bound_user_id=user_id),
    )


class TestSafeReturnPath:
    @pytest.mark.parametrize("raw", [
        "/tasks/new",
        "/tasks/new?tab=assignee",
        "/calendar#today",
        "/",
    ])
    def test_internal_paths_pass(self, raw):
        assert safe_return_path(raw, "/dashboard") == raw

    @pytest.mark.parametrize("raw", [
        None,
        "",
        "tasks/new",
        "//evil.example.com/phish",
        "/\\evil.example.com",
        "https://evil.example.com/",
        "javascript:alert(1)",
        "/tasks\nSet-Cookie: x=1",
        "/tasks\x00",
    ])
    def test_everything_else_falls_back(self, raw):
        assert safe_return_path(raw, "/dashboard") == "/dashboard"


class TestQueryParam:
    def test_appends(self):
        assert with_query_param("/tasks/new", "pickedUserId", "u-1") == "/tasks/new?pickedUserId=u-1"

    def test_keeps_other_params_and_fragment(self):
        result = with_query_param("/tasks/new?tab=a#top", "pickedUserId", "u-1")
        assert result == "/tasks/new?tab=a&pickedUserId=u-1#top"

    def test_replaces_previous_value(self):
        result = with_query_param("/tasks/new?pickedUserId=old", "pickedUserId", "u-2")
        assert result == "/tasks/new?pickedUserId=u-2"


class TestPickerFlow:
    def test_inactive_by_default(self):
        assert not PickerFlow().active

    def test_enter_validates_destination(self):
        picker = PickerFlow()
        assert picker.enter("//evil.example.com") == "/dashboard"
        assert picker.active

    def test_enter_uses_configured_default(self):
        picker = PickerFlow(PickerConfig(default_destination="/home"))
        assert picker.enter(None) == "/home"

    def test_pick_user_seat(self):
        picker = PickerFlow()
        picker.enter("/tasks/new")
        result = picker.pick(_user_node("u-42"))
        assert result.user_id == "u-42"
        assert result.destination == "/tasks/new?pickedUserId=u-42"
        assert not picker.active

    def test_custom_param_name(self):
        picker = PickerFlow(PickerConfig(user_param="assignee"))
        picker.enter("/tasks/new")
        assert picker.pick(_user_node("u-1")).destination == "/tasks/new?assignee=u-1"

    def test_pick_non_user_is_ignored(self):
        picker = PickerFlow()
        picker.enter("/tasks/new")
        department = GraphNode(id="d", type=GraphNodeType.DEPARTMENT)
        assert picker.pick(department) is None
        assert picker.pick(_user_node(None)) is None
        assert picker.active

    def test_cancel_returns_without_id(self):
        picker = PickerFlow()
        picker.enter("/tasks/new?tab=a")
        result = picker.cancel()
        assert result.destination == "/tasks/new?tab=a"
        assert result.user_id is None
        assert not picker.active

    def test_pick_when_inactive(self):
        with pytest.raises(ValidationError):
            PickerFlow().pick(_user_node())

    def test_cancel_when_inactive(self):
        with pytest.raises(ValidationError):
            PickerFlow().cancel()
