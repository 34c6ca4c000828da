"""
Agent Node Handler - Delegates to the agent execution loop
"""

from typing import Dict, Any
import json

from ...errors import ExecutionCancelled
from ..models import NodeKind, NodeCategory, ExecutionStatus, WorkflowNode
from .base import NodeHandler, ExecutionContext


def input_to_text(inputs: Dict[str, Any]) -> str:
    """Use a plain string ``input``/``text`` value as-is, otherwise serialize to JSON"""
    for key in ("input", "text"):
        value = inputs.get(key)
        if isinstance(value, str):
            return value
    return json.dumps(inputs, default=str)


class AgentHandler(NodeHandler):
    """Run a registered agent on the node input"""

    node_type = NodeKind.AGENT
    display_name = "Agent"
    category = NodeCategory.AGENT
    description = "Run a configured LLM agent"

    async def execute(
        self, node: WorkflowNode, inputs: Dict[str, Any], context: ExecutionContext
    ) -> Dict[str, Any]:
        agent_id = self.get_config_value(node, "agentId")
        if not agent_id:
            raise ValueError("Agent node requires an agentId")

        agent = context.agents.get(agent_id) if context.agents is not None else None
        if agent is None:
            raise ValueError(f"Agent not found: {agent_id}")
        if context.agent_runner is None:
            raise RuntimeError("No agent runner configured")

        text_input = input_to_text(inputs)
        context.log(f"Running agent {agent.name} ({agent.type.value})")

        execution = await context.agent_runner.run(
            agent,
            text_input,
            debug_mode=bool(self.get_config_value(node, "debugMode", False)),
            cancel_token=context.cancel_token,
            workflow_execution_id=context.execution_id,
        )
        context.record_usage(execution.metrics.tokenCount, execution.metrics.cost)

        if execution.status == ExecutionStatus.CANCELLED:
            raise ExecutionCancelled(context.execution_id)
        if execution.status == ExecutionStatus.FAILED:
            raise RuntimeError(execution.error or "Agent execution failed")

        context.log(
            f"Agent finished in {len(execution.steps)} steps, "
            f"{execution.metrics.tokenCount} tokens"
        )
        return {
            "result": execution.output,
            "execution": execution.model_dump(mode="json"),
        }
