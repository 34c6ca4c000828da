"""
Agent API Routes
Register agent definitions, run them directly and inspect their step logs.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field, ValidationError
from typing import NamedTuple

from enhanced_logger import enhanced_logger as logger
from orchestration.agents.models import Agent, AgentExecution
from orchestration.agents.registry import AgentRegistry
from orchestration.agents.runner import AgentRunner
from orchestration.workflow.store import ExecutionStore

router = APIRouter(prefix="/api/v1/agents", tags=["agents"])


class RunAgentRequest(BaseModel):
    """Request to run an agent"""
    input: str = Field(..., description="User input for the agent")
    debugMode: bool = Field(default=False, description="Record message lists on each step")


class AgentComponents(NamedTuple):
    registry: AgentRegistry
    runner: AgentRunner
    store: ExecutionStore


def agent_components(request: Request) -> AgentComponents:
    state = request.app.state
    components = AgentComponents(
        getattr(state, 'agent_registry', None),
        getattr(state, 'agent_runner', None),
        getattr(state, 'execution_store', None),
    )
    if any(c is None for c in components):
        raise HTTPException(status_code=503, detail="Agent runtime not ready")
    return components


def _require_agent(components: AgentComponents, agent_id: str) -> Agent:
    agent = components.registry.get(agent_id)
    if agent is None:
        raise HTTPException(status_code=404, detail="Agent not found")
    return agent


@router.get("")
async def list_agents(components: AgentComponents = Depends(agent_components)):
    agents = components.registry.list()
    return {"agents": [a.model_dump(mode="json") for a in agents], "total": len(agents)}


@router.post("")
async def register_agent(request: Request, components: AgentComponents = Depends(agent_components)):
    """Create an agent definition, replacing any with the same id."""
    try:
        agent = Agent.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        logger.warning(f"Rejected agent definition: {e}")
        raise HTTPException(status_code=400, detail=f"Invalid agent: {e}")
    return components.registry.register(agent).model_dump(mode="json")


@router.get("/executions/{execution_id}")
async def read_agent_execution(execution_id: str, components: AgentComponents = Depends(agent_components)):
    execution = components.store.get(execution_id)
    if not isinstance(execution, AgentExecution):
        raise HTTPException(status_code=404, detail="Execution not found")
    return execution.model_dump(mode="json")


@router.post("/executions/{execution_id}/cancel")
async def cancel_agent_execution(execution_id: str, components: AgentComponents = Depends(agent_components)):
    """Cancels the token the agent shares with any workflow that launched it."""
    if not components.store.cancel(execution_id):
        raise HTTPException(status_code=404, detail="Execution not found or not running")
    logger.info(f"Cancellation requested for {execution_id}")
    return {"status": "cancelling", "execution_id": execution_id}


@router.get("/{agent_id}")
async def read_agent(agent_id: str, components: AgentComponents = Depends(agent_components)):
    return _require_agent(components, agent_id).model_dump(mode="json")


@router.delete("/{agent_id}")
async def remove_agent(agent_id: str, components: AgentComponents = Depends(agent_components)):
    if not components.registry.remove(agent_id):
        raise HTTPException(status_code=404, detail="Agent not found")
    return {"status": "deleted", "agent_id": agent_id}


@router.post("/{agent_id}/run")
async def run_agent(
    agent_id: str,
    body: RunAgentRequest,
    components: AgentComponents = Depends(agent_components),
):
    """Run an agent to a terminal state and return its execution record."""
    agent = _require_agent(components, agent_id)
    execution = await components.runner.run(agent, body.input, debug_mode=body.debugMode)
    logger.log_execution(execution)
    return execution.model_dump(mode="json")
