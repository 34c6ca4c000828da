"""
Pytest configuration and fixtures for orchestration tests.

Sets up the Python path to properly import backend modules and provides
small builders for workflows, agents and a wired engine.
"""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add the backend directory to the Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from orchestration.actions import ActionDispatcher  # noqa: E402
from orchestration.agents.models import Agent  # noqa: E402
from orchestration.agents.registry import AgentRegistry  # noqa: E402
from orchestration.agents.runner import AgentRunner  # noqa: E402
from orchestration.llm import LLMResponse, MockProvider, ProviderRegistry, ToolCall  # noqa: E402
from orchestration.tools.builtin import create_default_tool_registry  # noqa: E402
from orchestration.workflow.engine import WorkflowEngine  # noqa: E402
from orchestration.workflow.models import Workflow  # noqa: E402
from orchestration.workflow.storage import InMemoryWorkflowRepository  # noqa: E402
from orchestration.workflow.store import ExecutionStore  # noqa: E402


def node(node_id: str, node_type: str, **config) -> Dict[str, Any]:
    """Workflow node dict as the frontend sends it"""
    return {"id": node_id, "type": node_type, "data": {"label": node_id, "config": config}}


def edge(source: str, target: str, condition: Any = None, **extra) -> Dict[str, Any]:
    data = {"id": f"{source}->{target}", "source": source, "target": target, **extra}
    if condition is not None:
        data["condition"] = condition
    return data


def make_workflow(
    nodes: List[Dict[str, Any]],
    edges: Optional[List[Dict[str, Any]]] = None,
    **fields,
) -> Workflow:
    return Workflow.model_validate({"nodes": nodes, "edges": edges or [], **fields})


def content(text: str, tokens: int = 10) -> LLMResponse:
    return LLMResponse(content=text, prompt_tokens=tokens, completion_tokens=tokens)


def tool_call(name: str, arguments: str = "{}", call_id: str = "call_1") -> LLMResponse:
    return LLMResponse(tool_calls=[ToolCall(id=call_id, name=name, arguments=arguments)], prompt_tokens=5)


@pytest.fixture
def mock_provider():
    return MockProvider()


@pytest.fixture
def providers(mock_provider):
    registry = ProviderRegistry()
    registry.register("openai", mock_provider, default=True)
    return registry


@pytest.fixture
def store():
    return ExecutionStore()


@pytest.fixture
def tool_registry(tmp_path):
    return create_default_tool_registry(str(tmp_path / "tool_files"))


@pytest.fixture
def actions(tmp_path):
    return ActionDispatcher(str(tmp_path / "tool_files"))


@pytest.fixture
def agent_registry():
    return AgentRegistry([
        Agent(id="echo-agent", name="Echo", type="prompt_based"),
    ])


@pytest.fixture
def repository():
    return InMemoryWorkflowRepository()


@pytest.fixture
def agent_runner(providers, tool_registry, store):
    return AgentRunner(providers, tools=tool_registry, store=store)


@pytest.fixture
def engine(store, agent_runner, agent_registry, tool_registry, actions, repository):
    workflow_engine = WorkflowEngine(
        store=store,
        agent_runner=agent_runner,
        agents=agent_registry,
        tools=tool_registry,
        actions=actions,
        repository=repository,
    )
    agent_runner.workflow_runner = workflow_engine.run_by_id
    return workflow_engine
