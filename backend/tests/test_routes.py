"""
API tests for the workflow and agent routes.

Runs the real application factory with an in-memory repository and the mock
LLM provider.
"""

import time

import pytest
from fastapi.testclient import TestClient

from conftest import edge, node
from main import create_app
from orchestration.config import EngineSettings
from orchestration.llm import MockProvider, ProviderRegistry


@pytest.fixture
def client(tmp_path):
    providers = ProviderRegistry()
    providers.register("openai", MockProvider(), default=True)
    settings = EngineSettings(tool_files_dir=str(tmp_path / "tool_files"))
    with TestClient(create_app(settings, providers)) as test_client:
        yield test_client


def simple_workflow(**fields):
    return {
        "name": "Greeting",
        "nodes": [node("in", "trigger"), node("out", "output")],
        "edges": [edge("in", "out")],
        **fields,
    }


def poll_execution(client, execution_id: str, attempts: int = 100) -> dict:
    for _ in range(attempts):
        data = client.get(f"/api/v1/workflows/executions/{execution_id}").json()
        if data["status"] not in ("pending", "running"):
            return data
        time.sleep(0.02)
    raise AssertionError(f"Execution {execution_id} did not finish")


class TestHealth:

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["executions"] == 0


class TestWorkflowRoutes:

    def test_node_types(self, client):
        node_types = client.get("/api/v1/workflows/nodes/types").json()["node_types"]
        assert len(node_types) == 11
        assert {t["type"] for t in node_types} >= {"agent", "merge", "split", "loop"}

    def test_templates(self, client):
        templates = client.get("/api/v1/workflows/templates").json()["templates"]
        assert templates
        detail = client.get(f"/api/v1/workflows/templates/{templates[0]['id']}")
        assert detail.status_code == 200
        assert client.get("/api/v1/workflows/templates/nope").status_code == 404

    def test_instantiate_template(self, client):
        template_id = client.get("/api/v1/workflows/templates").json()["templates"][0]["id"]
        created = client.post(f"/api/v1/workflows/templates/{template_id}/instantiate", json={"name": "Mine"}).json()

        assert created["name"] == "Mine"
        assert client.get(f"/api/v1/workflows/{created['id']}").status_code == 200

    def test_save_load_list_delete(self, client):
        saved = client.post("/api/v1/workflows", json=simple_workflow()).json()
        workflow_id = saved["id"]

        assert client.get(f"/api/v1/workflows/{workflow_id}").json()["name"] == "Greeting"
        assert client.get("/api/v1/workflows").json()["total"] == 1

        resaved = client.post("/api/v1/workflows", json={**saved, "name": "Renamed"}).json()
        assert resaved["version"] == 2

        assert client.delete(f"/api/v1/workflows/{workflow_id}").status_code == 200
        assert client.get(f"/api/v1/workflows/{workflow_id}").status_code == 404
        assert client.delete(f"/api/v1/workflows/{workflow_id}").status_code == 404

    def test_save_invalid_workflow(self, client):
        response = client.post("/api/v1/workflows", json={"nodes": [node("a", "input")], "edges": [edge("a", "ghost")]})
        assert response.status_code == 400

    def test_validate(self, client):
        result = client.post("/api/v1/workflows/validate", json={"nodes": [node("a", "agent")]}).json()
        assert result["valid"] is False
        assert any("agentId" in e for e in result["errors"])

    def test_run_inline(self, client):
        response = client.post("/api/v1/workflows/run", json={"workflow": simple_workflow(), "input": "hello"})
        data = response.json()

        assert response.status_code == 200
        assert data["status"] == "completed"
        assert [n["nodeId"] for n in data["nodeExecutions"]] == ["in", "out"]
        assert data["finalOutput"]["input"] == "hello"

        stored = client.get(f"/api/v1/workflows/executions/{data['id']}").json()
        assert stored["status"] == "completed"

    def test_run_with_unknown_start_node(self, client):
        response = client.post(
            "/api/v1/workflows/run",
            json={"workflow": simple_workflow(), "startNodeId": "missing"},
        )
        assert response.status_code == 400

    def test_run_saved_workflow(self, client):
        workflow_id = client.post("/api/v1/workflows", json=simple_workflow()).json()["id"]
        data = client.post(f"/api/v1/workflows/{workflow_id}/run", json={"input": {"x": 1}}).json()

        assert data["status"] == "completed"
        assert data["workflowId"] == workflow_id
        assert client.post("/api/v1/workflows/wf-missing/run", json={}).status_code == 404

    def test_background_run(self, client):
        started = client.post(
            "/api/v1/workflows/run",
            json={"workflow": simple_workflow(), "input": "later", "background": True},
        ).json()

        assert started["status"] == "started"
        finished = poll_execution(client, started["execution_id"])
        assert finished["status"] == "completed"

        listed = client.get("/api/v1/workflows/executions").json()
        assert started["execution_id"] in [e["id"] for e in listed["executions"]]

    def test_cancel_running_background_execution(self, client):
        workflow = {
            "nodes": [node("in", "input"), node("wait", "delay", delayAmount=30), node("out", "output")],
            "edges": [edge("in", "wait"), edge("wait", "out")],
        }
        started = client.post("/api/v1/workflows/run", json={"workflow": workflow, "background": True}).json()
        time.sleep(0.05)

        response = client.post(f"/api/v1/workflows/executions/{started['execution_id']}/cancel")
        assert response.status_code == 200
        assert poll_execution(client, started["execution_id"])["status"] == "cancelled"

    def test_missing_execution(self, client):
        assert client.get("/api/v1/workflows/executions/exec-missing").status_code == 404
        assert client.post("/api/v1/workflows/executions/exec-missing/cancel").status_code == 404


class TestAgentRoutes:

    def test_templates_are_registered(self, client):
        ids = {a["id"] for a in client.get("/api/v1/agents").json()["agents"]}
        assert "customer-service-chatbot" in ids

    def test_register_and_run(self, client):
        agent = client.post("/api/v1/agents", json={"id": "greeter", "name": "Greeter", "type": "prompt_based"}).json()
        assert agent["id"] == "greeter"

        execution = client.post("/api/v1/agents/greeter/run", json={"input": "hello"}).json()
        assert execution["status"] == "completed"
        assert execution["output"].startswith("Hello!")
        assert len(execution["steps"]) == 1

        fetched = client.get(f"/api/v1/agents/executions/{execution['id']}").json()
        assert fetched["id"] == execution["id"]

    def test_invalid_agent(self, client):
        assert client.post("/api/v1/agents", json={"type": "telepathic"}).status_code == 400

    def test_unknown_agent(self, client):
        assert client.post("/api/v1/agents/ghost/run", json={"input": "x"}).status_code == 404
        assert client.get("/api/v1/agents/ghost").status_code == 404
        assert client.get("/api/v1/agents/executions/agent-exec-missing").status_code == 404

    def test_run_requires_input(self, client):
        client.post("/api/v1/agents", json={"id": "greeter", "type": "prompt_based"})
        assert client.post("/api/v1/agents/greeter/run", json={}).status_code == 422

    def test_agent_node_in_workflow(self, client):
        workflow = {
            "nodes": [
                node("in", "trigger"),
                node("bot", "agent", agentId="customer-service-chatbot"),
                node("out", "output"),
            ],
            "edges": [edge("in", "bot"), edge("bot", "out")],
        }
        data = client.post("/api/v1/workflows/run", json={"workflow": workflow, "input": "hi, I need help"}).json()

        assert data["status"] == "completed"
        assert data["metrics"]["totalTokens"] > 0
        assert data["finalOutput"]["result"]
