"""
Base Node Handler - Abstract base class for all node handlers
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
import asyncio
import logging

from ...errors import ExecutionCancelled
from ..models import NodeKind, NodeCategory, WorkflowNode

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag shared by an execution and its handlers"""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, execution_id: Optional[str] = None):
        if self._event.is_set():
            raise ExecutionCancelled(execution_id)

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Sleep for up to ``timeout`` seconds, waking early on cancellation.

        Returns True if the token was cancelled.
        """
        if timeout is not None and timeout <= 0:
            return self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def guard(self, awaitable: Awaitable[Any], execution_id: Optional[str] = None) -> Any:
        """Await ``awaitable`` but abandon it as soon as the token is cancelled"""
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise ExecutionCancelled(execution_id)
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
        if not task.done() or task.cancelled():
            raise ExecutionCancelled(execution_id)
        return task.result()


@dataclass
class ExecutionContext:
    """Context passed to node handlers during execution"""

    # Workflow context
    workflow_id: str
    execution_id: str
    variables: Dict[str, Any] = field(default_factory=dict)

    # Service references (populated by engine)
    agent_runner: Any = None
    agents: Any = None
    tools: Any = None
    actions: Any = None

    # Graph shape, node id -> outgoing edges
    outgoing_edges: Dict[str, List[Any]] = field(default_factory=dict)

    # Execution state
    cancel_token: CancellationToken = field(default_factory=CancellationToken)
    logs: List[str] = field(default_factory=list)
    _tokens: int = field(default=0, init=False, repr=False)
    _cost: float = field(default=0.0, init=False, repr=False)

    def log(self, message: str, level: str = "info"):
        """Add a log message"""
        self.logs.append(f"[{level.upper()}] {message}")
        getattr(logger, level, logger.info)(f"[{self.execution_id}] {message}")

    def get_variable(self, name: str, default: Any = None) -> Any:
        """Get a workflow variable"""
        return self.variables.get(name, default)

    def set_variable(self, name: str, value: Any):
        """Set a workflow variable"""
        self.variables[name] = value

    @property
    def cancelled(self) -> bool:
        return self.cancel_token.cancelled

    def check_cancelled(self):
        self.cancel_token.raise_if_cancelled(self.execution_id)

    # Usage reported by the node currently dispatched
    def record_usage(self, tokens: int = 0, cost: float = 0.0):
        self._tokens += tokens
        self._cost += cost

    def reset_usage(self):
        self._tokens = 0
        self._cost = 0.0

    def take_usage(self) -> Tuple[int, float]:
        usage = (self._tokens, self._cost)
        self.reset_usage()
        return usage


class NodeHandler(ABC):
    """
    Abstract base class for node handlers.

    Handlers are stateless: one instance per node kind serves every node of
    that kind, so all per-node settings come from ``node.config``.
    """

    # Node metadata (override in subclasses)
    node_type: NodeKind
    display_name: str = "Base Node"
    category: NodeCategory = NodeCategory.DATA
    description: str = "Base node handler"

    @abstractmethod
    async def execute(
        self,
        node: WorkflowNode,
        inputs: Dict[str, Any],
        context: ExecutionContext,
    ) -> Dict[str, Any]:
        """
        Execute the node logic.

        Args:
            node: The node being dispatched
            inputs: Merged payload delivered by upstream edges
            context: Execution context with services and state

        Returns:
            Output dictionary, forwarded downstream merged over the input
        """
        raise NotImplementedError

    @staticmethod
    def get_config_value(node: WorkflowNode, key: str, default: Any = None) -> Any:
        """Helper to get a config value with default"""
        value = node.config.get(key)
        return default if value is None else value


class PassthroughHandler(NodeHandler):
    """Passes input through unchanged"""

    display_name = "Passthrough"
    description = "Passes input through unchanged"

    async def execute(
        self, node: WorkflowNode, inputs: Dict[str, Any], context: ExecutionContext
    ) -> Dict[str, Any]:
        return dict(inputs)
