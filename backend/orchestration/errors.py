"""
Orchestration Errors - Exception taxonomy shared by the workflow engine,
node handlers and the agent runner
"""

from typing import Optional


class OrchestrationError(Exception):
    """Base class for all orchestration errors"""

    code: str = "ORCHESTRATION_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class WorkflowValidationError(OrchestrationError):
    """Workflow definition references unknown nodes or is otherwise malformed"""

    code = "WORKFLOW_INVALID"


class NodeHandlerMissing(OrchestrationError):
    """No handler is registered for a node kind"""

    code = "NODE_HANDLER_MISSING"

    def __init__(self, node_type: str):
        super().__init__(f"No handler found for node type: {node_type}")
        self.node_type = node_type


class NodeExecutionFailed(OrchestrationError):
    """A node handler raised while executing"""

    code = "NODE_EXECUTION_FAILED"

    def __init__(self, node_id: str, error_message: str):
        super().__init__(f"Node '{node_id}' failed: {error_message}")
        self.node_id = node_id
        self.error_message = error_message


class MaxIterationsExceeded(OrchestrationError):
    """Tool-using agent ran out of iterations before producing final content"""

    code = "MAX_ITERATIONS_EXCEEDED"

    def __init__(self, max_iterations: int):
        super().__init__(
            f"Maximum iterations reached without completion ({max_iterations})"
        )
        self.max_iterations = max_iterations


class ToolNotFound(OrchestrationError):
    """Requested tool name or type is not declared/registered"""

    code = "TOOL_NOT_FOUND"


class ToolResolutionFailed(OrchestrationError):
    """Tool is declared but no implementation exists for its type"""

    code = "TOOL_RESOLUTION_FAILED"


class ConditionEvaluationError(OrchestrationError):
    """Condition expression or comparison could not be evaluated"""

    code = "CONDITION_EVALUATION_ERROR"


class ActionNotSupported(OrchestrationError):
    """Action node names an action type with no collaborator"""

    code = "ACTION_NOT_SUPPORTED"


class ExecutionCancelled(OrchestrationError):
    """Cancellation was requested for the running execution"""

    code = "EXECUTION_CANCELLED"

    def __init__(self, execution_id: Optional[str] = None):
        super().__init__(
            f"Execution cancelled: {execution_id}" if execution_id else "Execution cancelled"
        )
        self.execution_id = execution_id


class InvalidStateTransition(OrchestrationError):
    """Attempt to move an execution out of a terminal state"""

    code = "INVALID_STATE_TRANSITION"


class LLMProviderError(OrchestrationError):
    """
    Provider failure re-surfaced with a stable code.

    Codes: INVALID_API_KEY, QUOTA_EXCEEDED, RATE_LIMIT, CONTENT_FILTERED,
    BAD_REQUEST, SERVER_ERROR, API_ERROR, NO_CONTENT, PROVIDER_NOT_FOUND
    """

    code = "API_ERROR"

    TRANSIENT_CODES = frozenset({"RATE_LIMIT", "SERVER_ERROR"})

    def __init__(self, message: str, code: str = "API_ERROR", status_code: Optional[int] = None):
        super().__init__(message, code)
        self.status_code = status_code

    @property
    def is_transient(self) -> bool:
        return self.code in self.TRANSIENT_CODES
