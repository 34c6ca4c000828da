"""
Agent and workflow tools
"""

from .base import ToolImplementation, ToolRegistry, ToolsBridge
from .builtin import ApiCallerTool, FileOperationsTool, create_default_tool_registry

__all__ = [
    'ToolImplementation',
    'ToolRegistry',
    'ToolsBridge',
    'ApiCallerTool',
    'FileOperationsTool',
    'create_default_tool_registry',
]
