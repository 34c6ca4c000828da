"""
Route modules for the Orchestration API.
Each module contains a FastAPI APIRouter for a specific feature area.
"""

from .workflows import router as workflows_router
from .agents import router as agents_router

__all__ = [
    'workflows_router',
    'agents_router',
]
