"""
Tests for the in-process execution store: lookup, cancellation and
retention-window eviction.
"""

from datetime import timedelta

from orchestration.agents.models import AgentExecution
from orchestration.workflow.executors.base import CancellationToken
from orchestration.workflow.models import ExecutionStatus, WorkflowExecution, utcnow
from orchestration.workflow.store import ExecutionStore


def finished(workflow_id: str = "wf-1", age_seconds: int = 0) -> WorkflowExecution:
    execution = WorkflowExecution(workflowId=workflow_id)
    execution.finish(ExecutionStatus.COMPLETED)
    execution.completedAt = utcnow() - timedelta(seconds=age_seconds)
    return execution


class TestExecutionStore:

    def test_put_get_and_list_by_kind(self):
        store = ExecutionStore()
        workflow_exec = WorkflowExecution(workflowId="wf-1")
        agent_exec = AgentExecution(agentId="agent-1")
        store.put(workflow_exec)
        store.put(agent_exec)

        assert store.get(workflow_exec.id) is workflow_exec
        assert store.list(WorkflowExecution) == [workflow_exec]
        assert store.list(AgentExecution) == [agent_exec]
        assert len(store) == 2
        assert store.get("missing") is None

    def test_cancel_sets_token(self):
        store = ExecutionStore()
        execution = WorkflowExecution(workflowId="wf-1")
        token = CancellationToken()
        store.put(execution)
        store.register_token(execution.id, token)

        assert store.cancel(execution.id) is True
        assert token.cancelled
        # The driver owns the transition
        assert execution.status == ExecutionStatus.RUNNING

    def test_cancel_refused_for_unknown_finished_or_released(self):
        store = ExecutionStore()
        assert store.cancel("exec-missing") is False

        done = finished()
        store.put(done)
        store.register_token(done.id, CancellationToken())
        assert store.cancel(done.id) is False

        running = WorkflowExecution(workflowId="wf-1")
        store.put(running)
        store.register_token(running.id, CancellationToken())
        store.release_token(running.id)
        assert store.cancel(running.id) is False

    def test_evicts_only_expired_terminal_records(self):
        store = ExecutionStore(retention_seconds=60)
        old = finished(age_seconds=120)
        recent = finished(age_seconds=10)
        running = WorkflowExecution(workflowId="wf-1")
        for record in (old, recent, running):
            store._records[record.id] = record

        assert store.evict_expired() == 1
        assert store.get(old.id) is None
        assert store.get(recent.id) is recent
        assert store.get(running.id) is running

    def test_put_evicts_lazily_and_archives(self):
        archived = []
        store = ExecutionStore(retention_seconds=60, archive=archived.append)
        old = finished(age_seconds=600)
        store.put(old)
        store.put(WorkflowExecution(workflowId="wf-2"))

        assert archived == [old]
        assert store.get(old.id) is None

    def test_archive_failure_does_not_block_eviction(self):
        def broken_archive(record):
            raise RuntimeError("disk full")

        store = ExecutionStore(retention_seconds=0, archive=broken_archive)
        old = finished(age_seconds=5)
        store._records[old.id] = old

        assert store.evict_expired() == 1
        assert len(store) == 0
