"""
Tool contract, registry and the bridge to OpenAI function calling format
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..errors import ToolNotFound

logger = logging.getLogger(__name__)


class ToolImplementation(ABC):
    """An external capability callable by agents and tool nodes"""

    tool_type: str = "custom"
    description: str = ""

    @abstractmethod
    async def execute(self, args: Dict[str, Any], cancel_token: Any = None) -> Any:
        raise NotImplementedError


class ToolRegistry:
    """Tool implementations keyed by tool type"""

    def __init__(self):
        self._tools: Dict[str, ToolImplementation] = {}

    def register(self, tool_type: str, implementation: ToolImplementation):
        self._tools[tool_type] = implementation
        logger.debug(f"Registered tool implementation: {tool_type}")

    def get(self, tool_type: str) -> Optional[ToolImplementation]:
        return self._tools.get(tool_type)

    def resolve(self, tool_type: str) -> ToolImplementation:
        tool = self._tools.get(tool_type)
        if tool is None:
            raise ToolNotFound(f"Tool implementation for {tool_type} not found")
        return tool

    def types(self) -> List[str]:
        return sorted(self._tools)


class ToolsBridge:
    """Converts between agent tool declarations and OpenAI function definitions."""

    @staticmethod
    def to_openai(tools: List[Any]) -> List[Dict]:
        """Convert agent tool declarations to OpenAI function format.

        Args:
            tools: AgentTool models or plain dicts with name/description/parameters

        Returns:
            List of OpenAI-compatible tool definitions
        """
        openai_tools = []

        for tool in tools:
            # Handle both dict and object representations
            if hasattr(tool, 'name'):
                tool_name = tool.name
                tool_description = getattr(tool, 'description', '')
                parameters = getattr(tool, 'parameters', {})
            else:
                tool_name = tool.get('name', '')
                tool_description = tool.get('description', '')
                parameters = tool.get('parameters', {})

            openai_tools.append({
                "type": "function",
                "function": {
                    "name": tool_name,
                    "description": tool_description,
                    "parameters": parameters if parameters else {
                        "type": "object",
                        "properties": {},
                        "required": []
                    }
                }
            })

        return openai_tools

    @staticmethod
    def format_tool_result(result: Any) -> str:
        """Format a tool result for inclusion in chat messages.

        Args:
            result: Raw result from tool execution

        Returns:
            Formatted string representation
        """
        if result is None:
            return "Tool executed successfully (no output)"

        if isinstance(result, str):
            return result

        return json.dumps(result, default=str)
