"""
Outbox Store

Durable work items for one outbox table: enqueue, claim, state transitions,
administrative requeue and operator queries.

Claims are atomic across worker replicas. On PostgreSQL the claiming UPDATE
selects its rows with FOR UPDATE SKIP LOCKED; on SQLite the single
UPDATE ... RETURNING statement runs under the database write lock. Every
transition is a compare-and-swap on (status = PENDING, claimed_by = worker)
so a racing requeue or a second replica can never be overwritten.
"""

import json
import logging
import os
import socket
from datetime import timedelta
from typing import Any, Dict, Generic, Iterable, List, Optional, Sequence, Tuple, TypeVar
from uuid import uuid4

from ..database.adapter import DatabaseAdapter, affected_rows
from .clock import Clock, SystemClock
from .errors import InvalidTransitionError, RecordNotFoundError
from .models import ClaimFilter, OutboxRecord, OutboxStatus, OutboxTable

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=OutboxRecord)

MAX_ERROR_LENGTH = 500
DEFAULT_CLAIM_LEASE = timedelta(minutes=5)


def default_worker_id() -> str:
    """hostname:pid:random, unique per process."""
    return f"{socket.gethostname()}:{os.getpid()}:{uuid4().hex[:8]}"


def truncate_error(message: Optional[str]) -> Optional[str]:
    if message is None:
        return None
    return message[:MAX_ERROR_LENGTH]


def clamp(value: Optional[int], low: int, high: int, default: int) -> int:
    if value is None:
        return default
    return max(low, min(high, int(value)))


class OutboxStore(Generic[R]):
    """
    Persistence and state machine for one outbox table.

    Usage:
        store = OutboxStore(db, NOTIFICATION_TABLE)
        entries = await store.claim_batch(ClaimFilter(channels=("email",)), limit=10)
        await store.mark_success(entries[0].id, attempts=1)
    """

    def __init__(
        self,
        db: DatabaseAdapter,
        table: OutboxTable,
        clock: Optional[Clock] = None,
        worker_id: Optional[str] = None,
        claim_lease: timedelta = DEFAULT_CLAIM_LEASE,
    ):
        self.db = db
        self.table = table
        self.clock = clock or SystemClock()
        self.worker_id = worker_id or default_worker_id()
        self.claim_lease = claim_lease

    @property
    def name(self) -> str:
        return self.table.name

    def _to_record(self, row: Dict[str, Any]) -> R:
        return self.table.record_type.model_validate(row)

    def _encode(self, column: str, value: Any) -> Any:
        if column in self.table.json_columns:
            return json.dumps(value if value is not None else {})
        if hasattr(value, "value") and column == "status":
            return value.value
        return value

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    async def enqueue(self, record: R) -> R:
        """Insert a new PENDING record."""
        if record.status != OutboxStatus.PENDING:
            raise ValueError("Only PENDING records can be enqueued")

        now = self.clock.now()
        record = record.model_copy(update={"created_at": now, "updated_at": now})
        columns = self.table.columns
        values = [self._encode(col, getattr(record, col)) for col in columns]
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))

        await self.db.execute(
            f"INSERT INTO {self.table.name} ({', '.join(columns)}) VALUES ({placeholders})",
            *values
        )
        logger.debug(f"Enqueued {self.table.name} record {record.id} ({record.event})")
        return record

    # ------------------------------------------------------------------
    # Dispatcher side
    # ------------------------------------------------------------------

    async def claim_batch(self, claim_filter: Optional[ClaimFilter], limit: int) -> List[R]:
        """
        Claim up to ``limit`` due PENDING rows for this worker.

        Rows claimed by another worker are skipped unless that claim is older
        than the claim lease (the worker most likely died mid-batch).
        """
        if limit < 1:
            return []

        now = self.clock.now()
        stale_before = now - self.claim_lease
        args: List[Any] = [
            self.worker_id,
            now,
            OutboxStatus.PENDING.value,
            stale_before,
            limit,
        ]

        channel_clause = ""
        if claim_filter is not None:
            if claim_filter.channels is not None:
                if not claim_filter.channels:
                    return []
                channel_clause += f"AND channel IN ({self._placeholders(args, claim_filter.channels)}) "
            if claim_filter.exclude_channels:
                channel_clause += (
                    f"AND channel NOT IN ({self._placeholders(args, claim_filter.exclude_channels)}) "
                )

        lock_clause = "FOR UPDATE SKIP LOCKED" if self.db.is_postgres else ""

        rows = await self.db.fetch_returning(
            f"""
            UPDATE {self.table.name}
            SET claimed_by = $1, claimed_at = $2, updated_at = $2
            WHERE id IN (
                SELECT id FROM {self.table.name}
                WHERE status = $3
                  AND scheduled_at <= $2
                  AND (claimed_by IS NULL OR claimed_at < $4)
                  {channel_clause}
                ORDER BY scheduled_at ASC, created_at ASC
                LIMIT $5
                {lock_clause}
            )
            RETURNING *
            """,
            *args
        )

        records = [self._to_record(row) for row in rows]
        # RETURNING order is unspecified
        records.sort(key=lambda r: (r.scheduled_at, r.created_at))
        return records

    @staticmethod
    def _placeholders(args: List[Any], values: Sequence[Any]) -> str:
        """Append ``values`` to ``args`` and return their ``$n`` placeholders."""
        start = len(args) + 1
        args.extend(values)
        return ", ".join(f"${i}" for i in range(start, start + len(values)))

    def _extra_assignments(
        self, extra: Optional[Dict[str, Any]], start: int
    ) -> Tuple[str, List[Any]]:
        if not extra:
            return "", []
        unknown = set(extra) - set(self.table.extra_columns)
        if unknown:
            raise ValueError(
                f"{self.table.name} transitions cannot set: {', '.join(sorted(unknown))}"
            )
        parts = []
        values = []
        for offset, (column, value) in enumerate(sorted(extra.items())):
            parts.append(f", {column} = ${start + offset}")
            values.append(value)
        return "".join(parts), values

    async def _transition(
        self,
        record_id: str,
        assignments: str,
        args: Sequence[Any],
        extra: Optional[Dict[str, Any]],
        target: OutboxStatus,
    ) -> bool:
        base = list(args)
        where_start = len(base) + 1
        extra_sql, extra_values = self._extra_assignments(extra, where_start + 3)
        status = await self.db.execute(
            f"""
            UPDATE {self.table.name}
            SET {assignments}, claimed_by = NULL, claimed_at = NULL{extra_sql}
            WHERE id = ${where_start} AND status = ${where_start + 1} AND claimed_by = ${where_start + 2}
            """,
            *base, record_id, OutboxStatus.PENDING.value, self.worker_id, *extra_values
        )
        applied = affected_rows(status) > 0
        if not applied:
            logger.warning(
                f"{self.table.name} record {record_id}: transition to {target.value} "
                f"not applied (claim lost or record changed concurrently)"
            )
        return applied

    async def mark_success(
        self, record_id: str, attempts: int, extra: Optional[Dict[str, Any]] = None
    ) -> bool:
        """PENDING -> SUCCESS, clearing last_error."""
        now = self.clock.now()
        return await self._transition(
            record_id,
            "status = $1, attempts = $2, last_error = NULL, updated_at = $3",
            [OutboxStatus.SUCCESS.value, attempts, now],
            extra,
            OutboxStatus.SUCCESS,
        )

    async def mark_retry(
        self,
        record_id: str,
        attempts: int,
        error: str,
        next_scheduled_at,
        extra: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """PENDING -> PENDING with a later scheduled_at."""
        now = self.clock.now()
        return await self._transition(
            record_id,
            "status = $1, attempts = $2, last_error = $3, scheduled_at = $4, updated_at = $5",
            [OutboxStatus.PENDING.value, attempts, truncate_error(error), next_scheduled_at, now],
            extra,
            OutboxStatus.PENDING,
        )

    async def mark_dead_letter(
        self,
        record_id: str,
        attempts: int,
        error: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """PENDING -> FAILED. scheduled_at is left as it was."""
        now = self.clock.now()
        return await self._transition(
            record_id,
            "status = $1, attempts = $2, last_error = $3, failed_at = $4, updated_at = $4",
            [OutboxStatus.FAILED.value, attempts, truncate_error(error), now],
            extra,
            OutboxStatus.FAILED,
        )

    async def renew_claim(self, record_id: str) -> bool:
        """
        Restart the lease on a row this worker still holds.

        False when the claim was lost, e.g. another replica reclaimed the
        row after the lease ran out while earlier items of the batch were
        being delivered.
        """
        status = await self.db.execute(
            f"""
            UPDATE {self.table.name}
            SET claimed_at = $1
            WHERE id = $2 AND claimed_by = $3 AND status = $4
            """,
            self.clock.now(), record_id, self.worker_id, OutboxStatus.PENDING.value
        )
        return affected_rows(status) > 0

    async def release(self, record_ids: Iterable[str]) -> int:
        """Drop this worker's claim on rows it will not process."""
        released = 0
        for record_id in record_ids:
            status = await self.db.execute(
                f"""
                UPDATE {self.table.name}
                SET claimed_by = NULL, claimed_at = NULL
                WHERE id = $1 AND claimed_by = $2 AND status = $3
                """,
                record_id, self.worker_id, OutboxStatus.PENDING.value
            )
            released += affected_rows(status)
        if released:
            logger.info(f"Released {released} claimed {self.table.name} record(s)")
        return released

    # ------------------------------------------------------------------
    # Operator side
    # ------------------------------------------------------------------

    async def get(self, record_id: str) -> Optional[R]:
        row = await self.db.fetchrow(
            f"SELECT * FROM {self.table.name} WHERE id = $1",
            record_id
        )
        return self._to_record(row) if row else None

    async def requeue(self, record_id: str) -> R:
        """
        Reset a FAILED record to PENDING with a fresh retry budget.

        A single conditional UPDATE, so it cannot interleave with an
        in-flight dispatcher transition on the same row.
        """
        now = self.clock.now()
        resets = "".join(f", {column} = NULL" for column in self.table.requeue_resets)
        rows = await self.db.fetch_returning(
            f"""
            UPDATE {self.table.name}
            SET status = $1, attempts = 0, last_error = NULL, scheduled_at = $2,
                failed_at = NULL, claimed_by = NULL, claimed_at = NULL,
                updated_at = $2{resets}
            WHERE id = $3 AND status = $4
            RETURNING *
            """,
            OutboxStatus.PENDING.value, now, record_id, OutboxStatus.FAILED.value
        )
        if rows:
            logger.info(f"Requeued {self.table.name} record {record_id}")
            return self._to_record(rows[0])

        existing = await self.get(record_id)
        if existing is None:
            raise RecordNotFoundError(self.table.name, record_id)
        raise InvalidTransitionError(
            record_id, existing.status.value, OutboxStatus.PENDING.value
        )

    async def list(
        self,
        status: Optional[OutboxStatus] = None,
        search: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Tuple[List[R], int]:
        """Newest first. Returns (items, total matching)."""
        limit = clamp(limit, 1, 100, 25)
        offset = max(int(offset or 0), 0)

        clauses: List[str] = []
        args: List[Any] = []

        if status is not None:
            args.append(OutboxStatus(status).value)
            clauses.append(f"status = ${len(args)}")

        for column, value in (filters or {}).items():
            if value is None:
                continue
            if column not in self.table.filter_columns:
                raise ValueError(f"{self.table.name} cannot be filtered by {column}")
            args.append(value)
            clauses.append(f"{column} = ${len(args)}")

        term = (search or "").strip()
        if term:
            args.append(f"%{term.lower()}%")
            index = len(args)
            matches = " OR ".join(
                f"LOWER({column}) LIKE ${index}" for column in self.table.search_columns
            )
            clauses.append(f"({matches})")

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        total = await self.db.fetchval(
            f"SELECT COUNT(*) AS count FROM {self.table.name} {where}",
            *args
        )
        rows = await self.db.fetch(
            f"""
            SELECT * FROM {self.table.name} {where}
            ORDER BY created_at DESC
            LIMIT ${len(args) + 1} OFFSET ${len(args) + 2}
            """,
            *args, limit, offset
        )
        return [self._to_record(row) for row in rows], int(total or 0)

    async def stats(self) -> Dict[str, int]:
        """Row counts per status."""
        rows = await self.db.fetch(
            f"""
            SELECT status, COUNT(*) AS count
            FROM {self.table.name}
            GROUP BY status
            """
        )
        counts = {status.value: 0 for status in OutboxStatus}
        for row in rows:
            counts[row["status"]] = int(row["count"])
        return counts
