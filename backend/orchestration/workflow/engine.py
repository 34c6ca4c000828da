"""
Workflow Engine - Executes workflows by dataflow over the node graph
"""

import asyncio
import copy
import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Mapping, Optional, Set, Tuple, Union

from pydantic import ValidationError

from ..errors import (
    ExecutionCancelled,
    NodeExecutionFailed,
    WorkflowValidationError,
)
from .conditions import evaluate_edge_condition, parse_condition
from .executors import (
    NODE_HANDLERS,
    OUTPUT_VARIABLE_PREFIX,
    MERGE_BRANCHES_KEY,
    MERGE_SKIPPED_KEY,
    get_handler,
    get_available_node_types,
)
from .executors.base import CancellationToken, ExecutionContext, NodeHandler
from .models import (
    ExecutionStatus,
    NodeExecution,
    NodeKind,
    NodeTypeDefinition,
    Workflow,
    WorkflowEdge,
    WorkflowExecution,
    WorkflowNode,
    utcnow,
)
from .store import ExecutionStore

logger = logging.getLogger(__name__)


@dataclass
class _RunState:
    """Scheduler bookkeeping for one execution"""
    node_map: Dict[str, WorkflowNode]
    outgoing: Dict[str, List[WorkflowEdge]]
    edge_order: Dict[int, int]
    participating: Set[str]
    pending: Dict[str, int]
    queue: Deque[str] = field(default_factory=deque)
    inputs: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    delivered: Dict[str, List[Tuple[int, Dict[str, Any]]]] = field(
        default_factory=lambda: defaultdict(list)
    )
    skipped_edges: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    resolved: Set[str] = field(default_factory=set)
    last_output: Optional[Dict[str, Any]] = None


def _wrap_input(initial_input: Any) -> Dict[str, Any]:
    if initial_input is None:
        return {}
    if isinstance(initial_input, dict):
        return dict(initial_input)
    return {"input": initial_input}


def _outgoing_edges(workflow: Workflow) -> Dict[str, List[WorkflowEdge]]:
    outgoing: Dict[str, List[WorkflowEdge]] = {node.id: [] for node in workflow.nodes}
    for edge in workflow.edges:
        outgoing[edge.source].append(edge)
    return outgoing


def find_start_nodes(workflow: Workflow) -> List[str]:
    """Nodes with no incoming edge, in declaration order"""
    targets = {edge.target for edge in workflow.edges}
    return [node.id for node in workflow.nodes if node.id not in targets]


def reachable_from(start_ids: List[str], outgoing: Mapping[str, List[WorkflowEdge]]) -> Set[str]:
    seen: Set[str] = set()
    stack = list(start_ids)
    while stack:
        node_id = stack.pop()
        if node_id in seen:
            continue
        seen.add(node_id)
        stack.extend(edge.target for edge in outgoing.get(node_id, []))
    return seen


def find_cyclic_nodes(workflow: Workflow) -> List[str]:
    """Nodes left over by a topological sort: on a cycle or downstream of one"""
    in_degree = {node.id: 0 for node in workflow.nodes}
    outgoing = _outgoing_edges(workflow)
    for edge in workflow.edges:
        in_degree[edge.target] += 1

    # Kahn's algorithm for topological sort
    queue = deque(node_id for node_id, degree in in_degree.items() if degree == 0)
    visited = 0
    while queue:
        node_id = queue.popleft()
        visited += 1
        for edge in outgoing[node_id]:
            in_degree[edge.target] -= 1
            if in_degree[edge.target] == 0:
                queue.append(edge.target)

    if visited == len(workflow.nodes):
        return []
    return [node_id for node_id, degree in in_degree.items() if degree > 0]


class WorkflowEngine:
    """
    Executes workflows as a dataflow graph.

    The engine:
    1. Picks the start nodes and the set of nodes reachable from them
    2. Counts, per node, the incoming edges from participating nodes
    3. Dispatches ready nodes one at a time in FIFO order
    4. Resolves each outgoing edge of a finished node: a passing condition
       delivers the payload, a failing one delivers nothing
    5. Readies a node once all its incoming edges resolved with at least one
       delivery, or skips it and propagates the skip downstream
    """

    def __init__(
        self,
        store: Optional[ExecutionStore] = None,
        handlers: Optional[Mapping[NodeKind, NodeHandler]] = None,
        agent_runner: Any = None,
        agents: Any = None,
        tools: Any = None,
        actions: Any = None,
        repository: Any = None,
    ):
        self.store = store if store is not None else ExecutionStore()
        self.handlers = NODE_HANDLERS if handlers is None else handlers
        self.agent_runner = agent_runner
        self.agents = agents
        self.tools = tools
        self.actions = actions
        self.repository = repository
        self._tasks: Set[asyncio.Task] = set()

    async def run(
        self,
        workflow: Workflow,
        initial_input: Any = None,
        start_node_id: Optional[str] = None,
        variable_overrides: Optional[Dict[str, Any]] = None,
        execution_id: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> WorkflowExecution:
        """
        Execute a workflow from its start nodes until no node is ready.

        Args:
            workflow: The workflow to execute
            initial_input: Payload for the start nodes; non-dicts are wrapped as {"input": value}
            start_node_id: Run from this node only instead of every root node
            variable_overrides: Merged over a copy of the workflow variables
            execution_id: Optional custom execution ID
            cancel_token: Shared token, e.g. from an enclosing agent execution

        Returns:
            WorkflowExecution in a terminal state

        Raises:
            WorkflowValidationError: unknown start node or no start node at all
        """
        execution, context, state = self._prepare(
            workflow, initial_input, start_node_id, variable_overrides, execution_id, cancel_token
        )
        await self._drive(execution, context, state)
        return execution

    def start(
        self,
        workflow: Workflow,
        initial_input: Any = None,
        start_node_id: Optional[str] = None,
        variable_overrides: Optional[Dict[str, Any]] = None,
        execution_id: Optional[str] = None,
    ) -> WorkflowExecution:
        """Register an execution and drive it in a background task"""
        execution, context, state = self._prepare(
            workflow, initial_input, start_node_id, variable_overrides, execution_id, None
        )
        task = asyncio.create_task(self._drive(execution, context, state))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return execution

    async def run_by_id(
        self,
        workflow_id: str,
        initial_input: Any = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> WorkflowExecution:
        """Load a saved workflow from the repository and run it"""
        workflow = self.repository.load(workflow_id) if self.repository is not None else None
        if workflow is None:
            raise WorkflowValidationError(f"Workflow not found: {workflow_id}")
        return await self.run(workflow, initial_input, cancel_token=cancel_token)

    def cancel_execution(self, execution_id: str) -> bool:
        """Cancel a running execution"""
        return self.store.cancel(execution_id)

    def _prepare(
        self,
        workflow: Workflow,
        initial_input: Any,
        start_node_id: Optional[str],
        variable_overrides: Optional[Dict[str, Any]],
        execution_id: Optional[str],
        cancel_token: Optional[CancellationToken],
    ) -> Tuple[WorkflowExecution, ExecutionContext, _RunState]:
        if start_node_id is not None:
            if workflow.get_node(start_node_id) is None:
                raise WorkflowValidationError(f"Start node not found: {start_node_id}")
            start_ids = [start_node_id]
        else:
            start_ids = find_start_nodes(workflow)
            if not start_ids:
                raise WorkflowValidationError("Workflow has no start node")

        outgoing = _outgoing_edges(workflow)
        participating = reachable_from(start_ids, outgoing)
        pending: Dict[str, int] = {}
        for node_id in participating:
            if node_id not in start_ids:
                pending[node_id] = 0
        for edge in workflow.edges:
            if edge.source in participating and edge.target in pending:
                pending[edge.target] += 1

        payload = _wrap_input(initial_input)
        variables = copy.deepcopy(workflow.variables)
        variables.update(variable_overrides or {})

        execution = WorkflowExecution(
            workflowId=workflow.id,
            workflowVersion=workflow.version,
            initialInput=payload,
            variables=variables,
        )
        if execution_id:
            execution.id = execution_id

        token = cancel_token if cancel_token is not None else CancellationToken()
        context = ExecutionContext(
            workflow_id=workflow.id,
            execution_id=execution.id,
            variables=execution.variables,
            agent_runner=self.agent_runner,
            agents=self.agents,
            tools=self.tools,
            actions=self.actions,
            outgoing_edges=outgoing,
            cancel_token=token,
        )

        state = _RunState(
            node_map={node.id: node for node in workflow.nodes},
            outgoing=outgoing,
            edge_order={id(edge): index for index, edge in enumerate(workflow.edges)},
            participating=participating,
            pending=pending,
        )
        for node_id in start_ids:
            state.queue.append(node_id)
            state.inputs[node_id] = dict(payload)

        self.store.put(execution)
        self.store.register_token(execution.id, token)
        return execution, context, state

    async def _drive(
        self,
        execution: WorkflowExecution,
        context: ExecutionContext,
        state: _RunState,
    ):
        logger.info(f"Starting workflow execution: {execution.id} ({execution.workflowId})")

        try:
            while state.queue:
                if context.cancelled:
                    execution.finish(ExecutionStatus.CANCELLED, "Execution cancelled")
                    break

                node = state.node_map[state.queue.popleft()]
                node_input = state.inputs.pop(node.id)
                node_exec = await self._execute_node(node, node_input, context)
                execution.record_node(node_exec)
                state.resolved.add(node.id)

                if node_exec.status == ExecutionStatus.CANCELLED:
                    execution.finish(ExecutionStatus.CANCELLED, "Execution cancelled")
                    break
                if node_exec.status == ExecutionStatus.FAILED:
                    # Fail fast: nothing else is dispatched
                    error = NodeExecutionFailed(node.id, node_exec.error or "unknown error")
                    execution.finish(ExecutionStatus.FAILED, error.message)
                    break

                output = node_exec.output or {}
                state.last_output = output
                forwarded = {
                    k: v for k, v in node_input.items()
                    if k not in (MERGE_BRANCHES_KEY, MERGE_SKIPPED_KEY)
                }
                forwarded.update(output)
                self._resolve_edges(node, forwarded, output, context, state)

            if not execution.is_terminal:
                unresolved = state.participating - state.resolved
                if unresolved:
                    logger.warning(
                        f"Execution {execution.id} finished with nodes that never became "
                        f"ready (cycle?): {sorted(unresolved)}"
                    )
                execution.finalOutput = self._extract_final_output(state, context)
                execution.finish(ExecutionStatus.COMPLETED)

        except Exception as e:
            logger.error(f"Workflow execution failed: {execution.id} - {e}")
            if not execution.is_terminal:
                execution.finish(ExecutionStatus.FAILED, str(e))

        finally:
            self.store.release_token(execution.id)

        logger.info(f"Workflow execution finished: {execution.id} - {execution.status.value}")

    def _resolve_edges(
        self,
        node: WorkflowNode,
        payload: Optional[Dict[str, Any]],
        output: Optional[Dict[str, Any]],
        context: ExecutionContext,
        state: _RunState,
    ):
        """
        Resolve the outgoing edges of a dispatched node (``payload`` set) or a
        skipped one (``payload`` None), propagating skips breadth-first.
        """
        work: Deque[Tuple[WorkflowNode, Optional[Dict[str, Any]], Optional[Dict[str, Any]]]] = deque()
        work.append((node, payload, output))

        while work:
            source, source_payload, source_output = work.popleft()
            for index, edge in enumerate(state.outgoing[source.id]):
                target_id = edge.target
                if target_id not in state.pending:
                    # Start node, already resolved, or not participating
                    continue

                taken = source_payload is not None and evaluate_edge_condition(
                    edge.condition, source_output, context.variables
                )
                if taken:
                    delivery = source_payload
                    if source.type == NodeKind.SPLIT:
                        delivery = copy.deepcopy(source_payload)
                        delivery["branch"] = edge.sourceHandle or index
                    state.delivered[target_id].append((state.edge_order[id(edge)], delivery))
                else:
                    state.skipped_edges[target_id] += 1

                state.pending[target_id] -= 1
                if state.pending[target_id] > 0:
                    continue

                del state.pending[target_id]
                target = state.node_map[target_id]
                deliveries = state.delivered.pop(target_id, [])
                if deliveries:
                    state.inputs[target_id] = self._gather_inputs(
                        target, deliveries, state.skipped_edges.pop(target_id, 0)
                    )
                    state.queue.append(target_id)
                else:
                    context.log(f"Skipping node {target.label}: no incoming branch was taken", level="debug")
                    state.resolved.add(target_id)
                    work.append((target, None, None))

    @staticmethod
    def _gather_inputs(
        node: WorkflowNode,
        deliveries: List[Tuple[int, Dict[str, Any]]],
        skipped: int,
    ) -> Dict[str, Any]:
        """Shallow-merge delivered payloads in edge declaration order"""
        ordered = [payload for _, payload in sorted(deliveries, key=lambda d: d[0])]
        inputs: Dict[str, Any] = {}
        for payload in ordered:
            inputs.update(payload)
        if node.type == NodeKind.MERGE:
            inputs[MERGE_BRANCHES_KEY] = ordered
            inputs[MERGE_SKIPPED_KEY] = skipped
        return inputs

    async def _execute_node(
        self,
        node: WorkflowNode,
        inputs: Dict[str, Any],
        context: ExecutionContext,
    ) -> NodeExecution:
        """Execute a single node"""
        node_exec = NodeExecution(
            nodeId=node.id,
            nodeType=node.type,
            input=inputs,
        )
        log_start = len(context.logs)
        context.reset_usage()

        try:
            handler = get_handler(node.type, self.handlers)
            context.log(f"Executing node: {node.label} ({node.type.value})")

            outputs = await handler.execute(node, dict(inputs), context)
            if outputs is None:
                outputs = {}
            elif not isinstance(outputs, dict):
                outputs = {"output": outputs}

            node_exec.status = ExecutionStatus.COMPLETED
            node_exec.output = outputs

        except ExecutionCancelled:
            context.log(f"Node cancelled: {node.label}", level="warning")
            node_exec.status = ExecutionStatus.CANCELLED
            node_exec.error = "Execution cancelled"

        except Exception as e:
            logger.error(f"Node execution failed: {node.id} - {e}")
            node_exec.status = ExecutionStatus.FAILED
            node_exec.error = str(e)

        node_exec.completedAt = utcnow()
        tokens, cost = context.take_usage()
        node_exec.metrics.duration = int(
            (node_exec.completedAt - node_exec.startedAt).total_seconds() * 1000
        )
        node_exec.metrics.tokens = tokens
        node_exec.metrics.cost = cost
        node_exec.logs = context.logs[log_start:]

        if node_exec.status == ExecutionStatus.COMPLETED:
            context.log(f"Node completed: {node.label} ({node_exec.metrics.duration}ms)")
        return node_exec

    @staticmethod
    def _extract_final_output(state: _RunState, context: ExecutionContext) -> Any:
        """Extract the final output from workflow execution"""
        # Check for explicit outputs
        outputs = {}
        for key, value in context.variables.items():
            if key.startswith(OUTPUT_VARIABLE_PREFIX):
                outputs[key[len(OUTPUT_VARIABLE_PREFIX):]] = value

        if outputs:
            return outputs if len(outputs) > 1 else list(outputs.values())[0]

        # Return last node's output
        return state.last_output

    def validate_workflow(self, workflow: Union[Workflow, Dict[str, Any]]) -> Dict[str, Any]:
        """
        Check a workflow definition without running it.

        Returns:
            {"valid": bool, "errors": [...], "warnings": [...]}
        """
        errors: List[str] = []
        warnings: List[str] = []

        if not isinstance(workflow, Workflow):
            try:
                workflow = Workflow.model_validate(workflow)
            except ValidationError as e:
                for err in e.errors():
                    location = ".".join(str(part) for part in err.get("loc", ()))
                    message = err.get("msg", "invalid value")
                    errors.append(f"{location}: {message}" if location else message)
                return {"valid": False, "errors": errors, "warnings": warnings}

        if not workflow.nodes:
            errors.append("Workflow has no nodes")
            return {"valid": False, "errors": errors, "warnings": warnings}

        start_ids = find_start_nodes(workflow)
        if not start_ids:
            errors.append("Workflow has no start node (every node has an incoming edge)")

        cyclic = find_cyclic_nodes(workflow)
        if cyclic:
            warnings.append(f"Workflow contains a cycle; these nodes may never run: {', '.join(cyclic)}")

        if start_ids:
            reachable = reachable_from(start_ids, _outgoing_edges(workflow))
            unreachable = [node.id for node in workflow.nodes if node.id not in reachable]
            if unreachable:
                warnings.append(f"Nodes unreachable from any start node: {', '.join(unreachable)}")

        for edge in workflow.edges:
            if edge.condition not in (None, "", {}) and parse_condition(edge.condition) is None:
                warnings.append(f"Edge {edge.id} has an unreadable condition and will always pass")

        for node in workflow.nodes:
            if node.type not in self.handlers:
                errors.append(f"No handler found for node type: {node.type.value}")
            if node.type == NodeKind.AGENT:
                agent_id = node.config.get("agentId")
                if not agent_id:
                    errors.append(f"Agent node {node.id} has no agentId")
                elif self.agents is not None and agent_id not in self.agents:
                    warnings.append(f"Agent node {node.id} references unknown agent: {agent_id}")
            elif node.type == NodeKind.ACTION and self.actions is not None:
                action_type = node.config.get("actionType")
                if action_type and action_type not in self.actions.supported_actions():
                    warnings.append(f"Action node {node.id} uses unsupported action type: {action_type}")

        return {"valid": not errors, "errors": errors, "warnings": warnings}

    def get_available_node_types(self) -> List[NodeTypeDefinition]:
        """Get list of available node types"""
        return get_available_node_types(self.handlers)
