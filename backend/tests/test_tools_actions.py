"""
Tests for tool implementations, the tool registry and action dispatch.
"""

import pytest
from unittest.mock import Mock, patch, AsyncMock

from orchestration.actions import ActionDispatcher, render_placeholders
from orchestration.agents.models import AgentTool
from orchestration.errors import ActionNotSupported, ToolNotFound
from orchestration.tools import ApiCallerTool, FileOperationsTool, ToolRegistry, ToolsBridge


def http_response(status_code: int = 200, data=None) -> Mock:
    mock_response = Mock()
    mock_response.status_code = status_code
    mock_response.json.return_value = data if data is not None else {}
    return mock_response


class TestToolRegistry:

    def test_resolve(self):
        registry = ToolRegistry()
        tool = FileOperationsTool()
        registry.register("file_operation", tool)

        assert registry.resolve("file_operation") is tool
        assert registry.types() == ["file_operation"]
        with pytest.raises(ToolNotFound, match="Tool implementation for database not found"):
            registry.resolve("database")

    def test_bridge_to_openai(self):
        tools = ToolsBridge.to_openai([
            AgentTool(name="search", description="Search docs", type="api_call"),
            {"name": "raw", "parameters": {"type": "object", "properties": {"q": {"type": "string"}}}},
        ])
        assert tools[0]["function"]["name"] == "search"
        assert tools[0]["function"]["parameters"]["type"] == "object"
        assert tools[1]["function"]["parameters"]["properties"]["q"]["type"] == "string"

    def test_format_tool_result(self):
        assert ToolsBridge.format_tool_result(None) == "Tool executed successfully (no output)"
        assert ToolsBridge.format_tool_result("text") == "text"
        assert ToolsBridge.format_tool_result({"a": 1}) == '{"a": 1}'


class TestFileOperationsTool:

    async def test_write_read_list(self, tmp_path):
        tool = FileOperationsTool(str(tmp_path))
        await tool.execute({"operation": "write", "path": "notes/a.txt", "content": "hello"})

        read = await tool.execute({"operation": "read", "path": "notes/a.txt"})
        listing = await tool.execute({"operation": "list", "path": "notes"})

        assert read["content"] == "hello"
        assert listing["entries"] == ["a.txt"]

    async def test_path_escape_rejected(self, tmp_path):
        tool = FileOperationsTool(str(tmp_path / "sandbox"))
        with pytest.raises(ValueError, match="escapes"):
            await tool.execute({"operation": "read", "path": "../secret.txt"})

    async def test_unknown_operation(self, tmp_path):
        with pytest.raises(ValueError, match="Unsupported file operation"):
            await FileOperationsTool(str(tmp_path)).execute({"operation": "chmod"})


class TestApiCallerTool:

    @patch('httpx.AsyncClient')
    async def test_get_request(self, mock_client):
        request = AsyncMock(return_value=http_response(200, {"ok": True}))
        mock_client.return_value.__aenter__.return_value.request = request

        result = await ApiCallerTool().execute({"url": "https://api.example.com/items", "params": {"page": 2}})

        assert result == {"status": 200, "data": {"ok": True}}
        assert request.call_args.args == ("GET", "https://api.example.com/items")
        assert request.call_args.kwargs["params"] == {"page": 2}

    async def test_url_required(self):
        with pytest.raises(ValueError, match="URL is required"):
            await ApiCallerTool().execute({})


class TestActionDispatcher:

    def test_render_placeholders(self):
        payload = {"user": {"name": "Ann"}, "count": 3}
        rendered = render_placeholders({"msg": "Hi {{user.name}}, {{count}} new, {{missing}}"}, payload)
        assert rendered == {"msg": "Hi Ann, 3 new, {{missing}}"}

    async def test_send_notification_uses_result(self, tmp_path):
        dispatcher = ActionDispatcher(str(tmp_path))
        result = await dispatcher.dispatch("send_notification", {"channel": "ops"}, {"result": "all good"})

        assert result == {"actionType": "send_notification", "handled": True, "channel": "ops", "status": "sent"}
        assert dispatcher.outbox == [{"kind": "notification", "channel": "ops", "message": "all good"}]

    async def test_send_notification_joins_loop_results(self, tmp_path):
        dispatcher = ActionDispatcher(str(tmp_path))
        await dispatcher.dispatch("send_notification", {"channel": "digest"}, {"results": ["1. a", "2. b"]})

        assert dispatcher.outbox == [{"kind": "notification", "channel": "digest", "message": "1. a\n2. b"}]

    async def test_send_email_requires_recipient(self, tmp_path):
        with pytest.raises(ValueError, match="'to'"):
            await ActionDispatcher(str(tmp_path)).dispatch("send_email", {}, {})

    async def test_create_file(self, tmp_path):
        dispatcher = ActionDispatcher(str(tmp_path))
        result = await dispatcher.dispatch("create_file", {"path": "out/{{name}}.txt", "content": "{{body}}"}, {"name": "report", "body": "text"})

        assert result["written"] == 4
        assert (tmp_path / "out" / "report.txt").read_text() == "text"

    @patch('httpx.AsyncClient')
    async def test_call_api_posts_payload(self, mock_client, tmp_path):
        request = AsyncMock(return_value=http_response(201, {"id": 7}))
        mock_client.return_value.__aenter__.return_value.request = request

        result = await ActionDispatcher(str(tmp_path)).dispatch(
            "call_api", {"url": "https://hooks.example.com"}, {"event": "done"}
        )

        assert result["status"] == 201
        assert request.call_args.kwargs["json"] == {"event": "done"}

    @patch('httpx.AsyncClient')
    async def test_call_api_error_status(self, mock_client, tmp_path):
        mock_client.return_value.__aenter__.return_value.request = AsyncMock(return_value=http_response(500))
        with pytest.raises(ValueError, match="HTTP 500"):
            await ActionDispatcher(str(tmp_path)).dispatch("call_api", {"url": "https://x"}, {})

    async def test_unknown_action_lenient(self, tmp_path):
        result = await ActionDispatcher(str(tmp_path)).dispatch("fax", {"to": "123"}, {})
        assert result == {"actionType": "fax", "config": {"to": "123"}, "handled": False}

    async def test_unknown_action_strict(self, tmp_path):
        with pytest.raises(ActionNotSupported):
            await ActionDispatcher(str(tmp_path), strict=True).dispatch("fax", {}, {})
