"""
Node Handlers - One implementation per workflow node kind
"""

from typing import Dict, List, Mapping, Optional

from ...errors import NodeHandlerMissing
from ..models import NodeKind, NodeTypeDefinition
from .base import NodeHandler, PassthroughHandler, ExecutionContext, CancellationToken
from .trigger_executors import TriggerHandler, InputHandler
from .output_executors import OutputHandler, OUTPUT_VARIABLE_PREFIX
from .control_executors import (
    ConditionHandler,
    DelayHandler,
    LoopHandler,
    MergeHandler,
    SplitHandler,
    MERGE_BRANCHES_KEY,
    MERGE_SKIPPED_KEY,
)
from .agent_executors import AgentHandler
from .action_executors import ActionHandler, ToolHandler


def build_registry(handlers: List[NodeHandler]) -> Dict[NodeKind, NodeHandler]:
    """Index handlers by kind; every NodeKind must be covered exactly once"""
    registry: Dict[NodeKind, NodeHandler] = {}
    for handler in handlers:
        if handler.node_type in registry:
            raise ValueError(f"Duplicate handler for node type: {handler.node_type.value}")
        registry[handler.node_type] = handler

    missing = [kind.value for kind in NodeKind if kind not in registry]
    if missing:
        raise ValueError(f"No handler registered for node types: {', '.join(missing)}")
    return registry


# Registry of all node handlers
NODE_HANDLERS: Dict[NodeKind, NodeHandler] = build_registry([
    # Triggers / IO
    TriggerHandler(),
    InputHandler(),
    OutputHandler(),

    # Agents
    AgentHandler(),

    # Control
    ConditionHandler(),
    DelayHandler(),
    LoopHandler(),
    MergeHandler(),
    SplitHandler(),

    # Side effects
    ActionHandler(),
    ToolHandler(),
])


def get_handler(
    node_type: NodeKind,
    registry: Optional[Mapping[NodeKind, NodeHandler]] = None,
) -> NodeHandler:
    """Get the handler for a node kind"""
    handlers = NODE_HANDLERS if registry is None else registry
    handler = handlers.get(node_type)
    if handler is None:
        raise NodeHandlerMissing(getattr(node_type, "value", str(node_type)))
    return handler


def get_available_node_types(
    registry: Optional[Mapping[NodeKind, NodeHandler]] = None,
) -> List[NodeTypeDefinition]:
    handlers = NODE_HANDLERS if registry is None else registry
    return [
        NodeTypeDefinition(
            type=kind,
            displayName=handler.display_name,
            category=handler.category,
            description=handler.description,
        )
        for kind, handler in handlers.items()
    ]


__all__ = [
    'NodeHandler',
    'PassthroughHandler',
    'ExecutionContext',
    'CancellationToken',
    'NODE_HANDLERS',
    'OUTPUT_VARIABLE_PREFIX',
    'MERGE_BRANCHES_KEY',
    'MERGE_SKIPPED_KEY',
    'build_registry',
    'get_handler',
    'get_available_node_types',
]
