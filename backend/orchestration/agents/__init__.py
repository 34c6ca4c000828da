"""
Agents Module

Agent definitions, the registry and the execution loop.
"""

from .models import (
    Agent,
    AgentType,
    AgentTool,
    AgentExecution,
    ExecutionStep,
    PromptConfig,
)
from .registry import AgentRegistry
from .runner import AgentRunner

__all__ = [
    'Agent',
    'AgentType',
    'AgentTool',
    'AgentExecution',
    'ExecutionStep',
    'PromptConfig',
    'AgentRegistry',
    'AgentRunner',
]
