"""
Agent workflow orchestration: dataflow workflow engine and agent execution loop
"""

from .config import EngineSettings
from .errors import OrchestrationError

__version__ = "0.1.0"

__all__ = [
    'EngineSettings',
    'OrchestrationError',
]
