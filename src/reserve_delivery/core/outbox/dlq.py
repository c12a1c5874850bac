"""
Dead Letter Management

Operator view over FAILED outbox rows across every outbox table. Requeues
them with an audit log line and reports per-table statistics.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional

from .models import OutboxRecord, OutboxStatus
from .store import OutboxStore

logger = logging.getLogger(__name__)


class DeadLetterAction(str, Enum):
    """Operator actions recorded in the audit log."""
    REQUEUE = "requeue"


class DeadLetterManager:
    """
    Manages dead-lettered outbox records.

    Responsibilities:
    - Requeue entries with a fresh retry budget
    - Report per-status counts for every table
    """

    def __init__(self, stores: Dict[str, OutboxStore]):
        self.stores = stores

    def _store(self, table: str) -> OutboxStore:
        try:
            return self.stores[table]
        except KeyError:
            raise ValueError(f"Unknown outbox table: {table}") from None

    async def retry_entry(
        self,
        table: str,
        record_id: str,
        operator_id: Optional[str] = None
    ) -> OutboxRecord:
        """
        Requeue a FAILED record.

        Args:
            table: Outbox table name
            record_id: The record ID
            operator_id: Who asked for it, for the audit log

        Raises:
            RecordNotFoundError: no such record
            InvalidTransitionError: the record is not FAILED
        """
        record = await self._store(table).requeue(record_id)
        self._log_action(table, record_id, DeadLetterAction.REQUEUE, operator_id)
        return record

    async def get_stats(self) -> Dict[str, Any]:
        """Per-status counts for every managed table."""
        tables = {}
        for name, store in self.stores.items():
            tables[name] = await store.stats()

        return {
            "tables": tables,
            "total_failed": sum(counts[OutboxStatus.FAILED.value] for counts in tables.values()),
            "total_pending": sum(counts[OutboxStatus.PENDING.value] for counts in tables.values()),
        }

    def _log_action(
        self,
        table: str,
        record_id: str,
        action: DeadLetterAction,
        operator_id: Optional[str]
    ):
        """Log operator action for audit."""
        logger.info(
            f"Dead letter action: {action.value} on {table}/{record_id} by {operator_id or 'unknown'}",
            extra={"audit_action": action.value, "table": table, "record_id": record_id}
        )
