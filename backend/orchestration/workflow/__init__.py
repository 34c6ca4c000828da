"""
Workflow Module

Graph definitions, the dataflow engine and execution bookkeeping.
"""

from .models import (
    Workflow,
    WorkflowNode,
    WorkflowEdge,
    WorkflowExecution,
    NodeExecution,
    ExecutionStatus,
    NodeKind,
    NodeCategory,
)
from .store import ExecutionStore
from .storage import WorkflowRepository, InMemoryWorkflowRepository, SQLiteWorkflowRepository
from .engine import WorkflowEngine
from .executors import CancellationToken, ExecutionContext

__all__ = [
    'Workflow',
    'WorkflowNode',
    'WorkflowEdge',
    'WorkflowExecution',
    'NodeExecution',
    'ExecutionStatus',
    'NodeKind',
    'NodeCategory',
    'ExecutionStore',
    'WorkflowRepository',
    'InMemoryWorkflowRepository',
    'SQLiteWorkflowRepository',
    'WorkflowEngine',
    'CancellationToken',
    'ExecutionContext',
]
