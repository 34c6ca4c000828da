"""
Tests for edge condition evaluation and dot-path resolution.
"""

import pytest

from orchestration.workflow.conditions import (
    evaluate_edge_condition,
    parse_condition,
    resolve_path,
)
from orchestration.workflow.models import ConditionOperator


class TestResolvePath:
    """Dot paths through dicts, lists and attributes."""

    def test_nested_dict(self):
        assert resolve_path({"a": {"b": {"c": 3}}}, "a.b.c") == 3

    def test_list_index(self):
        assert resolve_path({"items": [{"name": "x"}, {"name": "y"}]}, "items.1.name") == "y"

    def test_missing_segment_is_none(self):
        assert resolve_path({"a": {}}, "a.b.c") is None
        assert resolve_path({"items": []}, "items.3") is None

    def test_empty_path_returns_object(self):
        data = {"a": 1}
        assert resolve_path(data, "") is data


class TestParseCondition:
    """Stored condition data is coerced or ignored."""

    def test_dict(self):
        parsed = parse_condition({"field": "result", "operator": "equals", "value": True})
        assert parsed.operator == ConditionOperator.EQUALS
        assert parsed.value is True

    def test_json_string(self):
        parsed = parse_condition('{"field": "score", "operator": "greater_than", "value": 5}')
        assert parsed.field == "score"

    @pytest.mark.parametrize("raw", [None, "", {}, "not json", {"field": "x"}, {"field": "x", "operator": "approx"}, 42])
    def test_unusable_conditions_are_none(self, raw):
        assert parse_condition(raw) is None


class TestEvaluateEdgeCondition:
    """Edges block only when a readable condition evaluates false."""

    def test_no_condition_passes(self):
        assert evaluate_edge_condition(None, {"result": False}) is True

    def test_malformed_condition_passes(self):
        assert evaluate_edge_condition("garbage", {"result": False}) is True

    def test_equals(self):
        condition = {"field": "result", "operator": "equals", "value": True}
        assert evaluate_edge_condition(condition, {"result": True}) is True
        assert evaluate_edge_condition(condition, {"result": False}) is False

    def test_not_equals(self):
        condition = {"field": "status", "operator": "not_equals", "value": "error"}
        assert evaluate_edge_condition(condition, {"status": "ok"}) is True

    def test_greater_and_less_than(self):
        assert evaluate_edge_condition({"field": "score", "operator": "greater_than", "value": 5}, {"score": 7})
        assert not evaluate_edge_condition({"field": "score", "operator": "less_than", "value": 5}, {"score": 7})

    def test_contains(self):
        condition = {"field": "result", "operator": "contains", "value": "urgent"}
        assert evaluate_edge_condition(condition, {"result": "this is urgent"}) is True
        assert evaluate_edge_condition(
            {"field": "result", "operator": "not_contains", "value": "urgent"},
            {"result": "this is urgent"},
        ) is False

    def test_exists(self):
        assert evaluate_edge_condition({"field": "a.b", "operator": "exists"}, {"a": {"b": 0}}) is True
        assert evaluate_edge_condition({"field": "a.c", "operator": "exists"}, {"a": {"b": 0}}) is False
        assert evaluate_edge_condition({"field": "a.c", "operator": "not_exists"}, {"a": {}}) is True

    def test_variables_field(self):
        condition = {"field": "variables.mode", "operator": "equals", "value": "fast"}
        assert evaluate_edge_condition(condition, {}, {"mode": "fast"}) is True

    def test_variable_reference_value(self):
        condition = {"field": "score", "operator": "greater_than", "value": "{{threshold}}"}
        assert evaluate_edge_condition(condition, {"score": 10}, {"threshold": 5}) is True
        assert evaluate_edge_condition(condition, {"score": 1}, {"threshold": 5}) is False

    def test_incomparable_types_pass(self):
        condition = {"field": "score", "operator": "greater_than", "value": 5}
        assert evaluate_edge_condition(condition, {"score": "high"}) is True
