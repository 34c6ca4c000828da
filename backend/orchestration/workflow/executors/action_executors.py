"""
Action and Tool Node Handlers - Side effects and registered tool calls
"""

from typing import Dict, Any
import json

from ..models import NodeKind, NodeCategory, WorkflowNode
from .base import NodeHandler, ExecutionContext


def _parse_config(raw: Any) -> Dict[str, Any]:
    if raw is None or raw == "":
        return {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise ValueError(f"Invalid JSON configuration: {e}")
    if not isinstance(raw, dict):
        raise ValueError("Configuration must be an object")
    return raw


class ActionHandler(NodeHandler):
    """Dispatch a side effect to the action collaborators"""

    node_type = NodeKind.ACTION
    display_name = "Action"
    category = NodeCategory.ACTION
    description = "Send an email, call an API, create a file or notify"

    async def execute(
        self, node: WorkflowNode, inputs: Dict[str, Any], context: ExecutionContext
    ) -> Dict[str, Any]:
        action_type = self.get_config_value(node, "actionType")
        if not action_type:
            raise ValueError("Action node requires an actionType")
        if context.actions is None:
            raise RuntimeError("No action dispatcher configured")

        action_config = _parse_config(node.config.get("actionConfig"))
        context.log(f"Dispatching action: {action_type}")

        context.check_cancelled()
        result = await context.actions.dispatch(
            action_type, action_config, inputs, cancel_token=context.cancel_token
        )
        context.check_cancelled()
        return result


class ToolHandler(NodeHandler):
    """Invoke a registered tool implementation"""

    node_type = NodeKind.TOOL
    display_name = "Tool"
    category = NodeCategory.TOOLS
    description = "Call a registered tool (API caller, file operations)"

    async def execute(
        self, node: WorkflowNode, inputs: Dict[str, Any], context: ExecutionContext
    ) -> Dict[str, Any]:
        tool_type = self.get_config_value(node, "toolType")
        if not tool_type:
            raise ValueError("Tool node requires a toolType")
        if context.tools is None:
            raise RuntimeError("No tool registry configured")

        tool = context.tools.resolve(tool_type)

        args = dict(_parse_config(node.config.get("parameters")))
        overrides = inputs.get("args")
        if isinstance(overrides, dict):
            args.update(overrides)

        context.log(f"Calling tool: {tool_type}")
        context.check_cancelled()
        result = await tool.execute(args, cancel_token=context.cancel_token)
        context.check_cancelled()

        return {"toolType": tool_type, "result": result}
