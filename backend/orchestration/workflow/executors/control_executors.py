"""
Control Flow Node Handlers - Branching, loops, joins and flow control
"""

from typing import Dict, Any, List, Optional
import asyncio

from ...errors import ConditionEvaluationError, ExecutionCancelled
from ...expressions import build_namespace, evaluate_expression, run_script
from ..conditions import compare, resolve_path
from ..models import NodeKind, NodeCategory, ConditionOperator, WorkflowNode
from .base import NodeHandler, ExecutionContext

# Keys the engine adds to a merge node's input
MERGE_BRANCHES_KEY = "_branches"
MERGE_SKIPPED_KEY = "_skippedBranches"

DELAY_UNITS = {
    "milliseconds": 0.001,
    "seconds": 1,
    "minutes": 60,
    "hours": 3600,
    "days": 86400,
}


class ConditionHandler(NodeHandler):
    """Evaluate a boolean and expose it as ``result`` for edge gating"""

    node_type = NodeKind.CONDITION
    display_name = "Condition"
    category = NodeCategory.CONTROL
    description = "Evaluate an expression, script or comparison for branching"

    async def execute(
        self, node: WorkflowNode, inputs: Dict[str, Any], context: ExecutionContext
    ) -> Dict[str, Any]:
        condition_type = self.get_config_value(node, "conditionType", "expression")

        try:
            if condition_type == "expression":
                condition = self.get_config_value(node, "condition", "True")
                result = evaluate_expression(
                    condition, build_namespace(inputs, context.variables)
                )
            elif condition_type == "script":
                condition = self.get_config_value(node, "script", "")
                result = run_script(condition, build_namespace(inputs, context.variables))
            elif condition_type == "comparison":
                field_path = self.get_config_value(node, "field", "")
                operator = ConditionOperator(self.get_config_value(node, "operator", "equals"))
                expected = node.config.get("value")
                condition = f"{field_path} {operator.value} {expected!r}"
                result = compare(operator, resolve_path(inputs, field_path), expected)
            else:
                raise ValueError(f"Unknown condition type: {condition_type}")
        except Exception as e:
            context.log(f"Condition evaluation error: {e}", level="error")
            raise ConditionEvaluationError(f"Condition evaluation failed: {e}")

        is_true = bool(result)
        context.log(f"Condition {condition!r} -> {is_true}")

        return {
            "condition": condition,
            "result": is_true,
            "input": inputs.get("input", inputs),
        }


class DelayHandler(NodeHandler):
    """Wait for specified duration"""

    node_type = NodeKind.DELAY
    display_name = "Delay"
    category = NodeCategory.CONTROL
    description = "Pause execution for a specified time"

    async def execute(
        self, node: WorkflowNode, inputs: Dict[str, Any], context: ExecutionContext
    ) -> Dict[str, Any]:
        amount = float(self.get_config_value(node, "delayAmount", 1))
        unit = self.get_config_value(node, "delayUnit", "seconds")
        if unit not in DELAY_UNITS:
            raise ValueError(f"Unknown delay unit: {unit}")

        seconds = amount * DELAY_UNITS[unit]
        context.log(f"Delaying for {amount} {unit}")

        if await context.cancel_token.wait(seconds):
            raise ExecutionCancelled(context.execution_id)

        return dict(inputs)


class LoopHandler(NodeHandler):
    """
    Bounded iteration inside a single dispatch.

    loopType ``for`` runs ``iterations`` passes, ``while`` re-evaluates
    ``loopCondition`` before every pass and ``foreach`` walks the list found at
    ``itemsField`` in the input. ``maxIterations`` caps all three; hitting the
    cap reports ``completed: false``.
    """

    node_type = NodeKind.LOOP
    display_name = "Loop"
    category = NodeCategory.CONTROL
    description = "Repeat a body expression with a bounded iteration count"

    async def execute(
        self, node: WorkflowNode, inputs: Dict[str, Any], context: ExecutionContext
    ) -> Dict[str, Any]:
        loop_type = self.get_config_value(node, "loopType", "for")
        max_iterations = int(self.get_config_value(node, "maxIterations", 100))
        body_expression = self.get_config_value(node, "bodyExpression")
        break_condition = self.get_config_value(node, "breakCondition")

        items: Optional[List[Any]] = None
        total: Optional[int] = None
        loop_condition = None
        if loop_type == "for":
            total = int(self.get_config_value(node, "iterations", 1))
        elif loop_type == "foreach":
            items_field = self.get_config_value(node, "itemsField", "items")
            items = resolve_path(inputs, items_field)
            if not isinstance(items, (list, tuple)):
                raise ValueError(f"Loop items field '{items_field}' is not a list")
            total = len(items)
        elif loop_type == "while":
            loop_condition = self.get_config_value(node, "loopCondition")
            if not loop_condition:
                raise ValueError("While loop requires a loopCondition")
        else:
            raise ValueError(f"Unknown loop type: {loop_type}")

        results: List[Any] = []
        index = 0
        completed = True

        while True:
            context.check_cancelled()
            item = items[index] if items is not None and index < len(items) else None
            namespace = build_namespace(
                inputs, context.variables,
                index=index, iteration=index, item=item, results=results,
            )

            if total is not None:
                if index >= total:
                    break
            elif not self._evaluate(loop_condition, namespace):
                break

            if index >= max_iterations:
                completed = False
                context.log(f"Loop stopped at maxIterations ({max_iterations})", level="warning")
                break

            if body_expression:
                value = self._evaluate(body_expression, namespace, truthy=False)
            elif items is not None:
                value = {"index": index, "item": item}
            else:
                value = {"index": index, "input": inputs.get("input")}
            results.append(value)
            index += 1

            if break_condition and self._evaluate(
                break_condition, {**namespace, "result": value, "results": results}
            ):
                context.log(f"Loop break condition met after {index} iterations")
                break

            # Let other executions and cancellation in between passes
            await asyncio.sleep(0)

        context.log(f"Loop complete after {index} iterations")
        return {
            "loopType": loop_type,
            "iterations": index,
            "results": results,
            "completed": completed,
        }

    @staticmethod
    def _evaluate(expression: str, namespace: Dict[str, Any], truthy: bool = True) -> Any:
        try:
            value = evaluate_expression(expression, namespace)
        except Exception as e:
            raise ConditionEvaluationError(f"Loop expression {expression!r} failed: {e}")
        return bool(value) if truthy else value


class MergeHandler(NodeHandler):
    """Join barrier over every participating incoming branch"""

    node_type = NodeKind.MERGE
    display_name = "Merge"
    category = NodeCategory.CONTROL
    description = "Wait for all incoming branches and combine their outputs"

    async def execute(
        self, node: WorkflowNode, inputs: Dict[str, Any], context: ExecutionContext
    ) -> Dict[str, Any]:
        merged = dict(inputs)
        branches = merged.pop(MERGE_BRANCHES_KEY, None)
        if branches is None:
            branches = [dict(inputs)]
        skipped = merged.pop(MERGE_SKIPPED_KEY, 0)

        if skipped and self.get_config_value(node, "requireAll", False):
            raise ValueError(
                f"Merge requires all branches but {skipped} of "
                f"{len(branches) + skipped} were skipped"
            )

        context.log(f"Merged {len(branches)} branches ({skipped} skipped)")
        return {**merged, "branches": branches, "branchCount": len(branches)}


class SplitHandler(NodeHandler):
    """Explicit fan-out; the engine copies the payload onto every outgoing edge"""

    node_type = NodeKind.SPLIT
    display_name = "Split"
    category = NodeCategory.CONTROL
    description = "Send an independent copy of the input down every branch"

    async def execute(
        self, node: WorkflowNode, inputs: Dict[str, Any], context: ExecutionContext
    ) -> Dict[str, Any]:
        branch_count = len(context.outgoing_edges.get(node.id, []))
        context.log(f"Splitting into {branch_count} branches")
        return {"split": True, "branchCount": branch_count}
