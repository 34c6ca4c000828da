"""
Workflow API Routes
Save, validate and run workflow graphs, and follow their executions.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError
from typing import Any, Dict, NamedTuple, Optional

from enhanced_logger import enhanced_logger as logger
from orchestration.errors import WorkflowValidationError
from orchestration.workflow.engine import WorkflowEngine
from orchestration.workflow.models import Workflow, WorkflowExecution
from orchestration.workflow.store import ExecutionStore
from orchestration.workflow.templates import get_workflow_templates, get_workflow_template

router = APIRouter(prefix="/api/v1/workflows", tags=["workflows"])


class WorkflowComponents(NamedTuple):
    engine: WorkflowEngine
    repository: Any
    store: ExecutionStore


def workflow_components(request: Request) -> WorkflowComponents:
    """Engine, repository and execution store wired by the app lifespan"""
    state = request.app.state
    components = WorkflowComponents(
        getattr(state, 'workflow_engine', None),
        getattr(state, 'workflow_repository', None),
        getattr(state, 'execution_store', None),
    )
    if any(c is None for c in components):
        raise HTTPException(status_code=503, detail="Workflow engine not ready")
    return components


async def _read_json(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _parse_workflow(data: Any) -> Workflow:
    try:
        return Workflow.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Rejected workflow definition: {e.error_count()} errors")
        raise HTTPException(status_code=400, detail=f"Invalid workflow: {e}")


async def _run(engine: WorkflowEngine, workflow: Workflow, body: Dict[str, Any]) -> Dict[str, Any]:
    options = dict(
        initial_input=body.get("input"),
        start_node_id=body.get("startNodeId"),
        variable_overrides=body.get("variables"),
    )
    try:
        if body.get("background"):
            execution = engine.start(workflow, **options)
            logger.info(f"Started background execution {execution.id} for {workflow.id}")
            return {"execution_id": execution.id, "workflow_id": workflow.id, "status": "started"}
        execution = await engine.run(workflow, **options)
    except WorkflowValidationError as e:
        logger.warning(f"Cannot run {workflow.id}: {e.message}")
        raise HTTPException(status_code=400, detail=e.message)

    logger.log_execution(execution)
    return execution.model_dump(mode="json")


def _summary(execution: WorkflowExecution) -> Dict[str, Any]:
    return {
        "id": execution.id,
        "workflowId": execution.workflowId,
        "status": execution.status.value,
        "startedAt": execution.startedAt.isoformat(),
        "completedAt": execution.completedAt.isoformat() if execution.completedAt else None,
    }


@router.get("")
async def list_workflows(components: WorkflowComponents = Depends(workflow_components)):
    saved = components.repository.list()
    return {"workflows": [w.model_dump(mode="json") for w in saved], "total": len(saved)}


@router.post("")
async def save_workflow(request: Request, components: WorkflowComponents = Depends(workflow_components)):
    """Create a workflow, or replace one with the same id and bump its version."""
    workflow = _parse_workflow(await _read_json(request))
    return components.repository.save(workflow).model_dump(mode="json")


# Static segments are declared ahead of /{workflow_id}
@router.get("/templates")
async def list_templates():
    return {"templates": get_workflow_templates()}


@router.get("/templates/{template_id}")
async def read_template(template_id: str):
    template = get_workflow_template(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail=f"No template named {template_id}")
    return template


@router.post("/templates/{template_id}/instantiate")
async def instantiate_template(
    request: Request,
    template_id: str,
    components: WorkflowComponents = Depends(workflow_components),
):
    """Save a new workflow built from a template; body may override name, description and variables."""
    template = get_workflow_template(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail=f"No template named {template_id}")

    overrides = await _read_json(request)
    workflow = _parse_workflow({
        "name": overrides.get("name", template["name"]),
        "description": overrides.get("description", template["description"]),
        "nodes": template["nodes"],
        "edges": template["edges"],
        "variables": overrides.get("variables", {}),
    })
    return components.repository.save(workflow).model_dump(mode="json")


@router.get("/nodes/types")
async def node_types(components: WorkflowComponents = Depends(workflow_components)):
    return {"node_types": [t.model_dump(mode="json") for t in components.engine.get_available_node_types()]}


@router.post("/validate")
async def validate(request: Request, components: WorkflowComponents = Depends(workflow_components)):
    """Structural check of a definition: {"valid", "errors", "warnings"}."""
    return components.engine.validate_workflow(await _read_json(request))


@router.post("/run")
async def run_inline(request: Request, components: WorkflowComponents = Depends(workflow_components)):
    """
    Run a workflow definition sent in the body.

    Body: {"workflow": {...}, "input": ..., "startNodeId": ..., "variables": {...},
    "background": false}. With background set the response only carries the
    execution id; poll /executions/{id} for the result.
    """
    body = await _read_json(request)
    return await _run(components.engine, _parse_workflow(body.get("workflow")), body)


@router.get("/executions")
async def list_executions(
    workflow_id: Optional[str] = None,
    components: WorkflowComponents = Depends(workflow_components),
):
    executions = [
        e for e in components.store.list(WorkflowExecution)
        if workflow_id is None or e.workflowId == workflow_id
    ]
    return {"executions": [_summary(e) for e in executions], "total": len(executions)}


@router.get("/executions/{execution_id}")
async def read_execution(execution_id: str, components: WorkflowComponents = Depends(workflow_components)):
    """Live record from the store, else the archived copy when the repository keeps one."""
    execution = components.store.get(execution_id)
    if isinstance(execution, WorkflowExecution):
        return execution.model_dump(mode="json")

    lookup = getattr(components.repository, 'get_archived_execution', None)
    archived = lookup(execution_id) if lookup else None
    if archived and archived["kind"] == WorkflowExecution.__name__:
        return archived["execution"]

    raise HTTPException(status_code=404, detail="Execution not found")


@router.post("/executions/{execution_id}/cancel")
async def cancel(execution_id: str, components: WorkflowComponents = Depends(workflow_components)):
    if not components.engine.cancel_execution(execution_id):
        raise HTTPException(status_code=404, detail="Execution not found or not running")
    logger.info(f"Cancellation requested for {execution_id}")
    return {"status": "cancelling", "execution_id": execution_id}


@router.get("/{workflow_id}")
async def read_workflow(workflow_id: str, components: WorkflowComponents = Depends(workflow_components)):
    workflow = components.repository.load(workflow_id)
    if workflow is None:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return workflow.model_dump(mode="json")


@router.delete("/{workflow_id}")
async def remove_workflow(workflow_id: str, components: WorkflowComponents = Depends(workflow_components)):
    if not components.repository.delete(workflow_id):
        raise HTTPException(status_code=404, detail="Workflow not found")
    return {"status": "deleted", "workflow_id": workflow_id}


@router.post("/{workflow_id}/run")
async def run_saved(
    request: Request,
    workflow_id: str,
    components: WorkflowComponents = Depends(workflow_components),
):
    """Run a saved workflow. Body as for /run, minus "workflow"."""
    workflow = components.repository.load(workflow_id)
    if workflow is None:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return await _run(components.engine, workflow, await _read_json(request))
