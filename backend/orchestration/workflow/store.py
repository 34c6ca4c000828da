"""
Execution State Store - In-process index of workflow and agent executions
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Type

from .models import utcnow
from .executors.base import CancellationToken

logger = logging.getLogger(__name__)


class ExecutionStore:
    """
    Holds execution records by id for inspection and cancellation.

    Records are owned by the driver that created them; the store only indexes
    them. Terminal records older than the retention window are evicted lazily
    on ``put`` and handed to the optional ``archive`` callback.
    """

    def __init__(
        self,
        retention_seconds: int = 3600,
        archive: Optional[Callable[[Any], None]] = None,
    ):
        self.retention = timedelta(seconds=retention_seconds)
        self.archive = archive
        self._records: Dict[str, Any] = {}
        self._tokens: Dict[str, CancellationToken] = {}

    def put(self, record: Any):
        self.evict_expired()
        self._records[record.id] = record

    def get(self, execution_id: str) -> Optional[Any]:
        return self._records.get(execution_id)

    def list(self, kind: Optional[Type] = None) -> List[Any]:
        records = list(self._records.values())
        if kind is not None:
            records = [r for r in records if isinstance(r, kind)]
        return records

    def register_token(self, execution_id: str, token: CancellationToken):
        self._tokens[execution_id] = token

    def release_token(self, execution_id: str):
        self._tokens.pop(execution_id, None)

    def cancel(self, execution_id: str) -> bool:
        """
        Request cancellation of a running execution.

        Only sets the token; the owning driver performs the terminal
        transition when it next checks. Returns False for unknown or finished
        executions.
        """
        record = self._records.get(execution_id)
        token = self._tokens.get(execution_id)
        if record is None or token is None or record.status.is_terminal:
            return False
        token.cancel()
        logger.info(f"Cancellation requested for: {execution_id}")
        return True

    def evict_expired(self, now: Optional[datetime] = None) -> int:
        """Drop terminal records that completed before the retention window"""
        now = now or utcnow()
        cutoff = now - self.retention
        expired = [
            record for record in self._records.values()
            if record.status.is_terminal
            and record.completedAt is not None
            and record.completedAt < cutoff
        ]
        for record in expired:
            del self._records[record.id]
            self._tokens.pop(record.id, None)
            if self.archive:
                try:
                    self.archive(record)
                except Exception as e:
                    logger.warning(f"Failed to archive execution {record.id}: {e}")

        if expired:
            logger.debug(f"Evicted {len(expired)} expired executions")
        return len(expired)

    def __len__(self) -> int:
        return len(self._records)
