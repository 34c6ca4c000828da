"""
Output Node Handlers - Workflow outputs
"""

from typing import Dict, Any

from ..models import NodeKind, NodeCategory, WorkflowNode
from .base import PassthroughHandler, ExecutionContext

OUTPUT_VARIABLE_PREFIX = "_output_"


class OutputHandler(PassthroughHandler):
    """Workflow output"""

    node_type = NodeKind.OUTPUT
    display_name = "Output"
    category = NodeCategory.DATA
    description = "Final output of the workflow"

    async def execute(
        self, node: WorkflowNode, inputs: Dict[str, Any], context: ExecutionContext
    ) -> Dict[str, Any]:
        output_name = self.get_config_value(node, "name", "result")
        value = await super().execute(node, inputs, context)

        context.log(f"Workflow output '{output_name}': {len(value)} fields")

        # Store in context for final result
        context.set_variable(f"{OUTPUT_VARIABLE_PREFIX}{output_name}", value)

        return value
