"""
Tests for the API logger and its formatter.
"""

import logging

import pytest

from enhanced_logger import ColorCodes, EnhancedFormatter, EnhancedLogger, colors_enabled
from orchestration.agents.models import AgentExecution
from orchestration.workflow.models import ExecutionStatus, WorkflowExecution


class RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def recorded():
    api_logger = EnhancedLogger("orchestration-api-test")
    handler = RecordingHandler()
    api_logger.logger.handlers = [handler]
    api_logger.logger.setLevel(logging.DEBUG)
    return api_logger, handler.records


class TestEnhancedLogger:

    def test_records_caller(self, recorded):
        api_logger, records = recorded

        class Router:
            def handle(self):
                api_logger.info("routed")

        Router().handle()
        assert records[0].class_func == "Router.handle"

    def test_log_execution_levels(self, recorded):
        api_logger, records = recorded
        done = WorkflowExecution(workflowId="wf-1")
        done.finish(ExecutionStatus.COMPLETED)
        failed = AgentExecution(agentId="a", status=ExecutionStatus.FAILED, error="boom")

        api_logger.log_execution(done)
        api_logger.log_execution(failed)

        assert records[0].levelno == logging.INFO
        assert records[0].getMessage() == f"{done.id} completed tokens=0"
        assert records[1].levelno == logging.WARNING
        assert "reason='boom'" in records[1].getMessage()

    def test_server_errors_log_as_warning(self, recorded):
        api_logger, records = recorded
        api_logger.log_api_call("GET", "/health", 200, 0.002)
        api_logger.log_api_call("POST", "/api/v1/workflows/run", 503, 0.1)

        assert records[0].getMessage() == "GET /health status=200 took 2.0ms"
        assert records[1].levelno == logging.WARNING


class TestEnhancedFormatter:

    def make_record(self, message: str, name: str = "orchestration.workflow.engine") -> logging.LogRecord:
        return logging.LogRecord(name, logging.INFO, __file__, 1, message, None, None, func="_drive")

    def test_plain_format_uses_module_and_function(self):
        line = EnhancedFormatter(use_colors=False).format(self.make_record("Workflow execution finished"))
        assert "[INFO    ] [engine._drive] Workflow execution finished" in line
        assert "\033[" not in line

    def test_highlights_execution_ids(self):
        line = EnhancedFormatter(use_colors=True).format(self.make_record("exec-0123456789ab failed"))
        assert f"{ColorCodes.BRIGHT_CYAN}exec-0123456789ab{ColorCodes.RESET}" in line
        assert f"{ColorCodes.BRIGHT_RED}failed{ColorCodes.RESET}" in line


def test_color_environment(monkeypatch):
    monkeypatch.setenv("FORCE_COLOR", "1")
    assert colors_enabled() is True
    monkeypatch.setenv("NO_COLOR", "")
    assert colors_enabled() is False
