"""
Agent Registry - Agents addressable by id from workflow nodes and the API
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from .models import Agent

logger = logging.getLogger(__name__)


class AgentRegistry:
    """In-process catalogue of agent definitions"""

    def __init__(self, agents: Optional[Iterable[Agent]] = None):
        self._agents: Dict[str, Agent] = {}
        for agent in agents or []:
            self.register(agent)

    def register(self, agent: Agent) -> Agent:
        if agent.id in self._agents:
            logger.info(f"Replacing agent definition: {agent.id}")
        self._agents[agent.id] = agent
        return agent

    def register_many(self, definitions: Iterable[Dict[str, Any]]) -> List[Agent]:
        return [self.register(Agent.model_validate(d)) for d in definitions]

    def get(self, agent_id: str) -> Optional[Agent]:
        return self._agents.get(agent_id)

    def list(self) -> List[Agent]:
        return list(self._agents.values())

    def remove(self, agent_id: str) -> bool:
        return self._agents.pop(agent_id, None) is not None

    def __contains__(self, agent_id: str) -> bool:
        return agent_id in self._agents
