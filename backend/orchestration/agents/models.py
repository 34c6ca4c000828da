"""
Agent Data Models
"""

from pydantic import BaseModel, Field
from typing import List, Dict, Any, Optional
from enum import Enum
from datetime import datetime
import uuid

from ..workflow.models import ExecutionStatus, RetryPolicy, utcnow


class AgentType(str, Enum):
    """Execution archetypes"""
    PROMPT_BASED = "prompt_based"
    TOOL_USING = "tool_using"
    MULTI_AGENT = "multi_agent"
    WORKFLOW = "workflow"
    AUTONOMOUS = "autonomous"


class ModelConfig(BaseModel):
    provider: str = "openai"
    modelName: str = "gpt-3.5-turbo"
    temperature: float = Field(default=0.7, ge=0, le=2)
    maxTokens: int = Field(default=2048, gt=0)


class PromptVariable(BaseModel):
    name: str
    type: str = "string"
    defaultValue: Optional[Any] = None
    description: Optional[str] = None
    required: bool = False


class PromptConfig(BaseModel):
    id: str = Field(default_factory=lambda: f"prompt-{uuid.uuid4().hex[:8]}")
    name: str = ""
    type: str = "system"  # system | user | assistant | function
    content: str
    variables: List[PromptVariable] = Field(default_factory=list)
    isActive: bool = True


class ExecutionConfig(BaseModel):
    maxSteps: int = Field(default=10, gt=0)
    timeout: float = Field(default=0, ge=0)  # Seconds, 0 = no limit
    retryPolicy: RetryPolicy = Field(default_factory=RetryPolicy)
    debugMode: bool = False


class MemoryConfig(BaseModel):
    type: str = "short_term"  # short_term | long_term | hybrid
    maxSize: int = 100
    retention: int = 24  # Hours
    strategy: str = "fifo"  # fifo | lru | importance


class AgentConfig(BaseModel):
    model: ModelConfig = Field(default_factory=ModelConfig)
    prompts: List[PromptConfig] = Field(default_factory=list)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)


class AgentTool(BaseModel):
    """Tool declaration as the model sees it"""
    id: str = Field(default_factory=lambda: f"tool-{uuid.uuid4().hex[:8]}")
    name: str
    description: str = ""
    type: str  # Implementation key in the tool registry
    config: Dict[str, Any] = Field(default_factory=dict)
    parameters: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []}
    )


class Agent(BaseModel):
    id: str = Field(default_factory=lambda: f"agent-{uuid.uuid4().hex[:12]}")
    name: str = "Agent"
    description: str = ""
    type: AgentType = AgentType.PROMPT_BASED
    config: AgentConfig = Field(default_factory=AgentConfig)
    tools: List[AgentTool] = Field(default_factory=list)
    workflowId: Optional[str] = None

    def find_tool(self, name: str) -> Optional[AgentTool]:
        for tool in self.tools:
            if tool.name == name:
                return tool
        return None


class ExecutionStep(BaseModel):
    id: str = Field(default_factory=lambda: f"step-{uuid.uuid4().hex[:12]}")
    type: str
    status: ExecutionStatus = ExecutionStatus.RUNNING
    input: Dict[str, Any] = Field(default_factory=dict)
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    startedAt: datetime = Field(default_factory=utcnow)
    completedAt: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def complete(self, output: Dict[str, Any]):
        self.output = output
        self.status = ExecutionStatus.COMPLETED
        self.completedAt = utcnow()

    def fail(self, error: str, status: ExecutionStatus = ExecutionStatus.FAILED):
        self.error = error
        self.status = status
        self.completedAt = utcnow()


class AgentExecutionMetrics(BaseModel):
    duration: int = 0  # Milliseconds
    tokenCount: int = 0
    cost: float = 0.0
    apiCalls: int = 0
    errorCount: int = 0


class AgentExecution(BaseModel):
    id: str = Field(default_factory=lambda: f"agent-exec-{uuid.uuid4().hex[:12]}")
    agentId: str
    workflowExecutionId: Optional[str] = None
    input: str = ""
    output: Optional[str] = None
    status: ExecutionStatus = ExecutionStatus.RUNNING
    steps: List[ExecutionStep] = Field(default_factory=list)
    startedAt: datetime = Field(default_factory=utcnow)
    completedAt: Optional[datetime] = None
    error: Optional[str] = None
    errorCode: Optional[str] = None
    metrics: AgentExecutionMetrics = Field(default_factory=AgentExecutionMetrics)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal
