"""
Workflow Data Models
"""

from pydantic import BaseModel, Field, model_validator
from typing import List, Dict, Any, Optional
from enum import Enum
from datetime import datetime, timezone
import uuid

from ..errors import InvalidStateTransition


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NodeKind(str, Enum):
    """Closed set of node kinds the engine can dispatch"""
    AGENT = "agent"
    TRIGGER = "trigger"
    CONDITION = "condition"
    ACTION = "action"
    TOOL = "tool"
    INPUT = "input"
    OUTPUT = "output"
    DELAY = "delay"
    LOOP = "loop"
    MERGE = "merge"
    SPLIT = "split"


class NodeCategory(str, Enum):
    """Categories for workflow nodes"""
    TRIGGER = "trigger"
    AGENT = "agent"
    CONTROL = "control"
    TOOLS = "tools"
    ACTION = "action"
    DATA = "data"


class ExecutionStatus(str, Enum):
    """Status of workflow, node, agent and step executions"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            ExecutionStatus.COMPLETED,
            ExecutionStatus.FAILED,
            ExecutionStatus.CANCELLED,
        )


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"


class EdgeCondition(BaseModel):
    """Gate on an edge: compare a dot-path of the source output to a value"""
    field: str = Field(min_length=1)
    operator: ConditionOperator
    value: Any = None


class Position(BaseModel):
    """Position on the canvas"""
    x: float = 0
    y: float = 0


class WorkflowNodeData(BaseModel):
    """Data associated with a workflow node"""
    label: str = ""
    description: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)


class WorkflowNode(BaseModel):
    """A node in the workflow"""
    id: str
    type: NodeKind
    position: Position = Field(default_factory=Position)
    data: WorkflowNodeData = Field(default_factory=WorkflowNodeData)

    @property
    def config(self) -> Dict[str, Any]:
        return self.data.config

    @property
    def label(self) -> str:
        return self.data.label or self.id


class WorkflowEdge(BaseModel):
    """A directed connection between two nodes"""
    id: str = Field(default_factory=lambda: f"edge-{uuid.uuid4().hex[:8]}")
    source: str
    target: str
    sourceHandle: Optional[str] = None
    targetHandle: Optional[str] = None
    # Raw condition data; parsed at evaluation time so a malformed condition
    # still loads and behaves as an unconditional edge.
    condition: Optional[Any] = None


class RetryPolicy(BaseModel):
    maxRetries: int = Field(default=0, ge=0)
    backoffStrategy: str = "exponential"  # linear | exponential
    retryDelay: float = Field(default=1.0, ge=0)  # Seconds


class ErrorHandlingConfig(BaseModel):
    strategy: str = "stop"  # stop | continue | retry | fallback
    maxRetries: int = 0


class WorkflowSettings(BaseModel):
    """Workflow execution settings"""
    timeout: int = 300  # Seconds
    retryPolicy: RetryPolicy = Field(default_factory=RetryPolicy)
    errorHandling: ErrorHandlingConfig = Field(default_factory=ErrorHandlingConfig)
    logLevel: str = "info"


class Workflow(BaseModel):
    """Complete workflow definition"""
    id: str = Field(default_factory=lambda: f"wf-{uuid.uuid4().hex[:12]}")
    name: str = "Untitled workflow"
    description: Optional[str] = None
    nodes: List[WorkflowNode] = Field(default_factory=list)
    edges: List[WorkflowEdge] = Field(default_factory=list)
    variables: Dict[str, Any] = Field(default_factory=dict)
    settings: WorkflowSettings = Field(default_factory=WorkflowSettings)
    createdAt: datetime = Field(default_factory=utcnow)
    updatedAt: datetime = Field(default_factory=utcnow)
    version: int = 1

    @model_validator(mode="after")
    def check_references(self) -> "Workflow":
        node_ids = set()
        for node in self.nodes:
            if node.id in node_ids:
                raise ValueError(f"Duplicate node id: {node.id}")
            node_ids.add(node.id)
        for edge in self.edges:
            if edge.source not in node_ids:
                raise ValueError(f"Edge {edge.id} references unknown source node: {edge.source}")
            if edge.target not in node_ids:
                raise ValueError(f"Edge {edge.id} references unknown target node: {edge.target}")
        return self

    def get_node(self, node_id: str) -> Optional[WorkflowNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None


class NodeExecutionMetrics(BaseModel):
    duration: int = 0  # Milliseconds
    cost: float = 0.0
    tokens: int = 0


class NodeExecution(BaseModel):
    """Execution record of a single node dispatch"""
    id: str = Field(default_factory=lambda: f"nexec-{uuid.uuid4().hex[:12]}")
    nodeId: str
    nodeType: NodeKind
    status: ExecutionStatus = ExecutionStatus.RUNNING
    input: Dict[str, Any] = Field(default_factory=dict)
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    startedAt: datetime = Field(default_factory=utcnow)
    completedAt: Optional[datetime] = None
    metrics: NodeExecutionMetrics = Field(default_factory=NodeExecutionMetrics)
    logs: List[str] = Field(default_factory=list)


class WorkflowExecutionMetrics(BaseModel):
    totalDuration: int = 0  # Milliseconds
    nodeExecutions: int = 0
    successfulExecutions: int = 0
    failedExecutions: int = 0
    totalCost: float = 0.0
    totalTokens: int = 0


class WorkflowExecution(BaseModel):
    """Execution state of a workflow"""
    id: str = Field(default_factory=lambda: f"exec-{uuid.uuid4().hex[:12]}")
    workflowId: str
    workflowVersion: int = 1
    status: ExecutionStatus = ExecutionStatus.RUNNING
    startedAt: datetime = Field(default_factory=utcnow)
    completedAt: Optional[datetime] = None
    initialInput: Dict[str, Any] = Field(default_factory=dict)
    nodeExecutions: List[NodeExecution] = Field(default_factory=list)
    variables: Dict[str, Any] = Field(default_factory=dict)
    metrics: WorkflowExecutionMetrics = Field(default_factory=WorkflowExecutionMetrics)
    finalOutput: Optional[Any] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def record_node(self, node_exec: NodeExecution):
        """Append a finished node record and fold its metrics into the totals"""
        self.nodeExecutions.append(node_exec)
        self.metrics.nodeExecutions += 1
        if node_exec.status == ExecutionStatus.COMPLETED:
            self.metrics.successfulExecutions += 1
        elif node_exec.status == ExecutionStatus.FAILED:
            self.metrics.failedExecutions += 1
        self.metrics.totalCost += node_exec.metrics.cost
        self.metrics.totalTokens += node_exec.metrics.tokens

    def finish(self, status: ExecutionStatus, error: Optional[str] = None):
        """Single terminal transition out of RUNNING"""
        if self.status != ExecutionStatus.RUNNING:
            raise InvalidStateTransition(
                f"Execution {self.id} is already {self.status.value}"
            )
        if not status.is_terminal:
            raise InvalidStateTransition(f"{status.value} is not a terminal status")
        self.status = status
        self.error = error
        self.completedAt = utcnow()
        self.metrics.totalDuration = int(
            (self.completedAt - self.startedAt).total_seconds() * 1000
        )

    def dispatch_order(self) -> List[str]:
        return [n.nodeId for n in self.nodeExecutions]


class NodeTypeDefinition(BaseModel):
    """Definition of a node type for the registry"""
    type: NodeKind
    displayName: str
    category: NodeCategory
    description: str
