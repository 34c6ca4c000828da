"""
Edge Condition Evaluator

Decides whether a payload travels along an edge. Missing or malformed
conditions pass, and so do comparisons that raise: an edge only blocks when
its condition was understood and evaluated false.
"""

import json
import logging
import re
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .models import ConditionOperator, EdgeCondition

logger = logging.getLogger(__name__)

_VARIABLE_REF = re.compile(r"^\{\{\s*([\w.]+)\s*\}\}$")
_VARIABLES_PREFIX = "variables."


def resolve_path(obj: Any, path: str) -> Any:
    """
    Walk a dot path through nested dicts, lists and attributes.

    Returns None when any segment is missing.
    """
    if not path:
        return obj
    current = obj
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, dict):
            current = current.get(part)
        elif isinstance(current, (list, tuple)):
            try:
                current = current[int(part)]
            except (ValueError, IndexError):
                return None
        else:
            current = getattr(current, part, None)
    return current


def compare(operator: ConditionOperator, actual: Any, expected: Any) -> bool:
    """Apply one comparison operator. May raise on incompatible types."""
    if operator == ConditionOperator.EQUALS:
        return actual == expected
    if operator == ConditionOperator.NOT_EQUALS:
        return actual != expected
    if operator == ConditionOperator.GREATER_THAN:
        return actual > expected
    if operator == ConditionOperator.LESS_THAN:
        return actual < expected
    if operator == ConditionOperator.CONTAINS:
        return expected in actual
    if operator == ConditionOperator.NOT_CONTAINS:
        return expected not in actual
    if operator == ConditionOperator.EXISTS:
        return actual is not None
    if operator == ConditionOperator.NOT_EXISTS:
        return actual is None
    raise ValueError(f"Unsupported operator: {operator}")


def parse_condition(raw: Any) -> Optional[EdgeCondition]:
    """Coerce stored edge condition data into an EdgeCondition, or None if unusable"""
    if raw is None or raw == "" or raw == {}:
        return None
    if isinstance(raw, EdgeCondition):
        return raw
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.debug(f"Ignoring unparseable edge condition: {raw!r}")
            return None
    if not isinstance(raw, dict):
        return None
    try:
        return EdgeCondition.model_validate(raw)
    except ValidationError as e:
        logger.debug(f"Ignoring invalid edge condition {raw!r}: {e}")
        return None


def _resolve_field(field: str, output: Any, variables: Dict[str, Any]) -> Any:
    if field.startswith(_VARIABLES_PREFIX):
        return resolve_path(variables, field[len(_VARIABLES_PREFIX):])
    return resolve_path(output, field)


def _resolve_value(value: Any, variables: Dict[str, Any]) -> Any:
    if isinstance(value, str):
        match = _VARIABLE_REF.match(value)
        if match:
            return resolve_path(variables, match.group(1))
    return value


def evaluate_edge_condition(
    condition: Any,
    output: Any,
    variables: Optional[Dict[str, Any]] = None,
) -> bool:
    """Return True if the edge should deliver its payload"""
    parsed = parse_condition(condition)
    if parsed is None:
        return True

    variables = variables or {}
    try:
        actual = _resolve_field(parsed.field, output, variables)
        expected = _resolve_value(parsed.value, variables)
        return bool(compare(parsed.operator, actual, expected))
    except Exception as e:
        logger.warning(
            f"Edge condition {parsed.field} {parsed.operator.value} {parsed.value!r} "
            f"could not be evaluated, passing through: {e}"
        )
        return True
