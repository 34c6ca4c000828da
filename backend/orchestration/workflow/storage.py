"""
Workflow Storage - Save/load contract with in-memory and SQLite backends
"""

import sqlite3
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from pathlib import Path
from contextlib import contextmanager

from .models import Workflow, utcnow

logger = logging.getLogger(__name__)


def _bump(existing: Optional[Workflow], workflow: Workflow) -> Workflow:
    """Copy of ``workflow`` with version and timestamps advanced past ``existing``"""
    now = utcnow()
    if existing is None:
        return workflow.model_copy(update={"updatedAt": now})
    return workflow.model_copy(update={
        "createdAt": existing.createdAt,
        "updatedAt": now,
        "version": existing.version + 1,
    })


class WorkflowRepository(ABC):
    """Persistence collaborator for workflow definitions"""

    @abstractmethod
    def save(self, workflow: Workflow) -> Workflow:
        """Insert or replace; replacing bumps the version"""

    @abstractmethod
    def load(self, workflow_id: str) -> Optional[Workflow]:
        ...

    @abstractmethod
    def list(self) -> List[Workflow]:
        ...

    @abstractmethod
    def delete(self, workflow_id: str) -> bool:
        ...


class InMemoryWorkflowRepository(WorkflowRepository):
    """Process-local repository; contents are lost on restart"""

    def __init__(self):
        self._workflows: Dict[str, Workflow] = {}

    def save(self, workflow: Workflow) -> Workflow:
        saved = _bump(self._workflows.get(workflow.id), workflow)
        self._workflows[saved.id] = saved
        logger.info(f"Saved workflow: {saved.id} - {saved.name} (v{saved.version})")
        return saved

    def load(self, workflow_id: str) -> Optional[Workflow]:
        return self._workflows.get(workflow_id)

    def list(self) -> List[Workflow]:
        return sorted(self._workflows.values(), key=lambda wf: wf.updatedAt, reverse=True)

    def delete(self, workflow_id: str) -> bool:
        return self._workflows.pop(workflow_id, None) is not None


class SQLiteWorkflowRepository(WorkflowRepository):
    """SQLite storage for workflows and archived executions"""

    def __init__(self, db_path: str = "data/workflows.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    @contextmanager
    def _get_connection(self):
        """Get a database connection with context manager"""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self):
        """Initialize database tables"""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            # Workflow definitions, stored whole as JSON
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS workflows (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    workflow_json TEXT NOT NULL,
                    version INTEGER DEFAULT 1,
                    updated_at TEXT NOT NULL
                )
            """)

            # Executions evicted from the in-memory store
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS execution_archive (
                    id TEXT PRIMARY KEY,
                    kind TEXT NOT NULL,
                    status TEXT NOT NULL,
                    execution_json TEXT NOT NULL,
                    completed_at TEXT
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_archive_kind
                ON execution_archive(kind)
            """)

        logger.info(f"Workflow database initialized: {self.db_path}")

    def save(self, workflow: Workflow) -> Workflow:
        saved = _bump(self.load(workflow.id), workflow)

        with self._get_connection() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO workflows (id, name, workflow_json, version, updated_at)
                VALUES (?, ?, ?, ?, ?)
            """, (
                saved.id,
                saved.name,
                saved.model_dump_json(),
                saved.version,
                saved.updatedAt.isoformat(),
            ))

        logger.info(f"Saved workflow: {saved.id} - {saved.name} (v{saved.version})")
        return saved

    def load(self, workflow_id: str) -> Optional[Workflow]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT workflow_json FROM workflows WHERE id = ?", (workflow_id,)
            ).fetchone()

        if not row:
            return None
        return Workflow.model_validate_json(row["workflow_json"])

    def list(self) -> List[Workflow]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT workflow_json FROM workflows ORDER BY updated_at DESC"
            ).fetchall()
        return [Workflow.model_validate_json(row["workflow_json"]) for row in rows]

    def delete(self, workflow_id: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM workflows WHERE id = ?", (workflow_id,))
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info(f"Deleted workflow: {workflow_id}")
        return deleted

    # ----- Execution archive -----

    def archive_execution(self, execution: Any):
        """Persist a terminal execution record; used as the store's archive hook"""
        with self._get_connection() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO execution_archive
                (id, kind, status, execution_json, completed_at)
                VALUES (?, ?, ?, ?, ?)
            """, (
                execution.id,
                type(execution).__name__,
                execution.status.value,
                execution.model_dump_json(),
                execution.completedAt.isoformat() if execution.completedAt else None,
            ))

    def get_archived_execution(self, execution_id: str) -> Optional[Dict[str, Any]]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT kind, execution_json FROM execution_archive WHERE id = ?",
                (execution_id,),
            ).fetchone()

        if not row:
            return None
        return {"kind": row["kind"], "execution": json.loads(row["execution_json"])}
