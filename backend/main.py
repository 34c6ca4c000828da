"""
FastAPI Backend for Agent Workflow Orchestration
Provides APIs for storing, validating and executing workflows and agents
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
import os
import time
from datetime import datetime
from typing import Any, Dict, Optional
from contextlib import asynccontextmanager

from enhanced_logger import enhanced_logger as logger, configure_logging
from orchestration import __version__
from orchestration.actions import ActionDispatcher
from orchestration.agents.registry import AgentRegistry
from orchestration.agents.runner import AgentRunner
from orchestration.config import EngineSettings
from orchestration.llm import MockProvider, OpenAICompatibleProvider, ProviderRegistry
from orchestration.tools.builtin import create_default_tool_registry
from orchestration.workflow.engine import WorkflowEngine
from orchestration.workflow.storage import InMemoryWorkflowRepository, SQLiteWorkflowRepository
from orchestration.workflow.store import ExecutionStore
from orchestration.workflow.templates import AGENT_TEMPLATES
from routes import agents_router, workflows_router


def build_providers(settings: EngineSettings) -> ProviderRegistry:
    """The configured OpenAI-compatible endpoint, or the offline mock without credentials"""
    providers = ProviderRegistry()
    if settings.has_llm_credentials:
        providers.register(
            settings.default_provider,
            OpenAICompatibleProvider(
                settings.llm_api_url,
                api_key=settings.llm_api_key,
                timeout=settings.llm_timeout,
                name=settings.default_provider,
            ),
            default=True,
        )
    else:
        logger.warning("No LLM credentials configured, using mock provider")
        providers.register("mock", MockProvider(), default=True)
    return providers


def build_components(
    settings: EngineSettings,
    providers: Optional[ProviderRegistry] = None,
) -> Dict[str, Any]:
    """Wire the engine, runner, registries and stores for one application"""
    if settings.workflow_db_path:
        os.makedirs(os.path.dirname(settings.workflow_db_path) or ".", exist_ok=True)
        repository = SQLiteWorkflowRepository(settings.workflow_db_path)
        store = ExecutionStore(settings.execution_retention_seconds, archive=repository.archive_execution)
    else:
        repository = InMemoryWorkflowRepository()
        store = ExecutionStore(settings.execution_retention_seconds)

    tools = create_default_tool_registry(settings.tool_files_dir)
    agents = AgentRegistry()
    agents.register_many(AGENT_TEMPLATES)

    runner = AgentRunner(
        providers if providers is not None else build_providers(settings),
        tools=tools,
        store=store,
        default_model=settings.default_model,
    )
    engine = WorkflowEngine(
        store=store,
        agent_runner=runner,
        agents=agents,
        tools=tools,
        actions=ActionDispatcher(settings.tool_files_dir, strict=settings.strict_actions),
        repository=repository,
    )
    # Workflow-type agents run saved workflows through the engine
    runner.workflow_runner = engine.run_by_id

    return {
        'settings': settings,
        'workflow_engine': engine,
        'workflow_repository': repository,
        'execution_store': store,
        'agent_registry': agents,
        'agent_runner': runner,
    }


# Create a logging middleware
class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        logger.log_api_call(
            request.method,
            request.url.path,
            response.status_code,
            time.time() - start_time
        )
        return response


def create_app(
    settings: Optional[EngineSettings] = None,
    providers: Optional[ProviderRegistry] = None,
) -> FastAPI:
    """Application factory; settings default to the environment"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        resolved = settings if settings is not None else EngineSettings.from_env()
        configure_logging(resolved.log_level)
        logger.log_startup(
            "orchestration",
            provider=resolved.default_provider,
            storage="sqlite" if resolved.workflow_db_path else "memory",
            strict_actions=resolved.strict_actions,
        )
        for name, component in build_components(resolved, providers).items():
            setattr(app.state, name, component)

        yield

        # Shutdown
        logger.info("Shutting down orchestration API")
        pending = app.state.execution_store.list()
        for record in pending:
            if not record.status.is_terminal:
                app.state.execution_store.cancel(record.id)

    app = FastAPI(
        title="Agent Workflow Orchestration API",
        description="API for building and executing agent workflows",
        version=__version__,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    @app.get("/health")
    async def health_check(request: Request):
        """API health check"""
        store = getattr(request.app.state, 'execution_store', None)
        return {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "version": __version__,
            "executions": len(store) if store is not None else 0,
        }

    app.include_router(workflows_router)
    app.include_router(agents_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "handlers": {
            "null": {
                "class": "logging.NullHandler",
            },
        },
        "loggers": {
            "uvicorn": {"handlers": ["null"], "level": "WARNING"},
            "uvicorn.error": {"handlers": ["null"], "level": "WARNING"},
            "uvicorn.access": {"handlers": ["null"], "level": "WARNING"},
        },
    }

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8700")), log_config=log_config)
