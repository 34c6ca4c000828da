"""
Trigger Node Handlers - Entry points for workflow execution
"""

from typing import Dict, Any

from ..models import NodeKind, NodeCategory, WorkflowNode, utcnow
from .base import NodeHandler, PassthroughHandler, ExecutionContext


class TriggerHandler(NodeHandler):
    """Marks the start of a run and stamps it"""

    node_type = NodeKind.TRIGGER
    display_name = "Trigger"
    category = NodeCategory.TRIGGER
    description = "Start workflow execution (manual, webhook or schedule)"

    async def execute(
        self, node: WorkflowNode, inputs: Dict[str, Any], context: ExecutionContext
    ) -> Dict[str, Any]:
        trigger_type = self.get_config_value(node, "triggerType", "manual")
        context.log(f"{trigger_type} trigger activated")

        return {
            "triggered": True,
            "triggerType": trigger_type,
            "timestamp": utcnow().isoformat(),
            "input": inputs.get("input", inputs),
        }


class InputHandler(PassthroughHandler):
    """Workflow input"""

    node_type = NodeKind.INPUT
    display_name = "Input"
    category = NodeCategory.DATA
    description = "Entry point that forwards the workflow input"
