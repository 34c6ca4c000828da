"""
Tests for workflow persistence, templates and the workflow model itself.
"""

import pytest
from pydantic import ValidationError

from conftest import edge, make_workflow, node
from orchestration.errors import InvalidStateTransition
from orchestration.workflow.models import ExecutionStatus, Workflow, WorkflowExecution
from orchestration.workflow.storage import InMemoryWorkflowRepository, SQLiteWorkflowRepository
from orchestration.workflow.templates import (
    AGENT_TEMPLATES,
    WORKFLOW_TEMPLATES,
    get_workflow_template,
    get_workflow_templates,
)
from orchestration.agents.models import Agent


@pytest.fixture(params=["memory", "sqlite"])
def any_repository(request, tmp_path):
    if request.param == "memory":
        return InMemoryWorkflowRepository()
    return SQLiteWorkflowRepository(str(tmp_path / "db" / "workflows.db"))


def sample_workflow() -> Workflow:
    return make_workflow(
        [node("in", "input"), node("out", "output", name="answer")],
        [edge("in", "out", {"field": "ok", "operator": "exists"})],
        name="Sample",
        variables={"threshold": 3},
    )


class TestWorkflowRepository:

    def test_save_and_load(self, any_repository):
        workflow = sample_workflow()
        saved = any_repository.save(workflow)
        loaded = any_repository.load(workflow.id)

        assert loaded == saved
        assert loaded.edges[0].condition == {"field": "ok", "operator": "exists"}
        assert loaded.variables == {"threshold": 3}

    def test_resave_bumps_version(self, any_repository):
        first = any_repository.save(sample_workflow())
        second = any_repository.save(first.model_copy(update={"name": "Renamed"}))

        assert second.version == first.version + 1
        assert second.createdAt == first.createdAt
        assert any_repository.load(first.id).name == "Renamed"

    def test_list_and_delete(self, any_repository):
        a = any_repository.save(sample_workflow())
        b = any_repository.save(sample_workflow())

        assert {w.id for w in any_repository.list()} == {a.id, b.id}
        assert any_repository.delete(a.id) is True
        assert any_repository.delete(a.id) is False
        assert any_repository.load(a.id) is None

    def test_load_missing(self, any_repository):
        assert any_repository.load("wf-missing") is None


class TestExecutionArchive:

    def test_archive_round_trip(self, tmp_path):
        repository = SQLiteWorkflowRepository(str(tmp_path / "workflows.db"))
        execution = WorkflowExecution(workflowId="wf-1")
        execution.finish(ExecutionStatus.COMPLETED)

        repository.archive_execution(execution)
        record = repository.get_archived_execution(execution.id)

        assert record["kind"] == "WorkflowExecution"
        assert WorkflowExecution.model_validate(record["execution"]) == execution
        assert repository.get_archived_execution("missing") is None


class TestWorkflowModel:

    def test_duplicate_node_ids_rejected(self):
        with pytest.raises(ValidationError, match="Duplicate node id"):
            make_workflow([node("a", "input"), node("a", "output")])

    def test_unknown_node_type_rejected(self):
        with pytest.raises(ValidationError):
            make_workflow([node("a", "webhook_magic")])

    def test_finish_is_single_transition(self):
        execution = WorkflowExecution(workflowId="wf-1")
        execution.finish(ExecutionStatus.FAILED, "boom")

        with pytest.raises(InvalidStateTransition):
            execution.finish(ExecutionStatus.COMPLETED)
        assert execution.status == ExecutionStatus.FAILED
        assert execution.error == "boom"

    def test_finish_requires_terminal_status(self):
        with pytest.raises(InvalidStateTransition):
            WorkflowExecution(workflowId="wf-1").finish(ExecutionStatus.PENDING)


class TestTemplates:

    def test_every_template_is_a_valid_workflow(self):
        for template in WORKFLOW_TEMPLATES:
            Workflow.model_validate({"nodes": template["nodes"], "edges": template["edges"]})

    def test_agent_templates_parse(self):
        agents = [Agent.model_validate(t) for t in AGENT_TEMPLATES]
        assert {a.id for a in agents} >= {"customer-service-chatbot", "content-creation-assistant"}

    def test_template_lookup(self):
        summaries = get_workflow_templates()
        assert summaries and all("nodeCount" in s for s in summaries)
        assert get_workflow_template(summaries[0]["id"])["nodes"]
        assert get_workflow_template("nope") is None
