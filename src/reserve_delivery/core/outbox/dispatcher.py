"""
Outbox Dispatcher

Background loop that claims due outbox rows, hands each one to a
DeliveryHandler and records the outcome with retry and dead-lettering.

One dispatcher runs per worker process. The handler is the only part that
knows about a channel; claiming, backoff, timeouts and state transitions
live here.

Usage:
    dispatcher = OutboxDispatcher(store, handler, settings)
    stop = asyncio.Event()
    await dispatcher.run(stop)
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar
from uuid import uuid4

from ..observability import create_span, record_counter, record_histogram
from .backoff import BackoffPolicy
from .clock import Clock, SystemClock
from .errors import ConfigurationError, DeliveryError, TransientDeliveryError
from .models import ClaimFilter, OutboxRecord
from .store import OutboxStore

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=OutboxRecord)
P = TypeVar("P")


@dataclass
class DispatcherSettings:
    """Per-worker loop settings."""
    name: str
    enabled: bool = True
    poll_interval: float = 5.0
    batch_size: int = 10
    max_attempts: int = 5
    delivery_timeout: float = 10.0


@dataclass
class DeliveryResult:
    """What a successful delivery wants persisted with the SUCCESS transition."""
    extra: Dict[str, Any] = field(default_factory=dict)


class DeliveryOutcome(str, Enum):
    DELIVERED = "delivered"
    RETRIED = "retried"
    DEAD_LETTERED = "dead_lettered"
    # The CAS transition matched no row; someone else owns the record now.
    CONFLICT = "conflict"


@dataclass
class CycleResult:
    """Summary of one dispatcher cycle."""
    cycle_id: str
    skipped: bool = False
    reason: Optional[str] = None
    claimed: int = 0
    delivered: int = 0
    retried: int = 0
    dead_lettered: int = 0
    conflicts: int = 0
    released: int = 0
    errors: int = 0

    @property
    def processed(self) -> int:
        return self.delivered + self.retried + self.dead_lettered + self.conflicts

    def count(self, outcome: DeliveryOutcome):
        if outcome == DeliveryOutcome.DELIVERED:
            self.delivered += 1
        elif outcome == DeliveryOutcome.RETRIED:
            self.retried += 1
        elif outcome == DeliveryOutcome.DEAD_LETTERED:
            self.dead_lettered += 1
        else:
            self.conflicts += 1


class DeliveryHandler(ABC, Generic[R, P]):
    """
    Channel-specific half of a dispatcher.

    Subclasses validate the stored payload and perform the side effect.
    Raise PermanentPayloadError for rows that can never succeed,
    TransientDeliveryError (or any other exception) for retryable failures
    and ConfigurationError when the worker itself is misconfigured.
    """

    name: str = "outbox"

    def preflight(self) -> Optional[ClaimFilter]:
        """
        Checked before every claim.

        Returns the claim filter for this cycle, or raises ConfigurationError
        to skip the cycle without touching any row.
        """
        return None

    @abstractmethod
    def parse(self, record: R) -> P:
        """Validate the stored payload into its typed form."""

    @abstractmethod
    async def deliver(
        self, record: R, payload: P, attempt: int, audit: Dict[str, Any]
    ) -> DeliveryResult:
        """
        Perform the external side effect for one attempt.

        Columns written into ``audit`` before the side effect are persisted
        with whatever transition follows, including a timeout.
        """

    def describe(self, record: R) -> str:
        """Short, log-safe description of a record."""
        return f"{record.event} via {record.channel}"


class OutboxDispatcher(Generic[R]):
    """
    Claims and processes batches of outbox rows.

    Features:
    - Atomic claim so replicas never process the same row; the claim is
      renewed before each item and skipped if another replica took it over
    - Exponential backoff between attempts, dead-letter after max_attempts
    - Per-item failure isolation within a batch
    - Graceful stop: in-flight item finishes, the rest of the batch is released
    """

    def __init__(
        self,
        store: OutboxStore[R],
        handler: DeliveryHandler[R, Any],
        settings: DispatcherSettings,
        policy: Optional[BackoffPolicy] = None,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.handler = handler
        self.settings = settings
        self.policy = policy or BackoffPolicy()
        self.clock = clock or SystemClock()

    @property
    def name(self) -> str:
        return self.settings.name

    async def run(self, stop: asyncio.Event):
        """Main loop. Returns once ``stop`` is set and the current item is done."""
        logger.info(
            f"{self.name} dispatcher started "
            f"(poll={self.settings.poll_interval}s, batch={self.settings.batch_size}, "
            f"max_attempts={self.settings.max_attempts}, worker_id={self.store.worker_id})"
        )
        while not stop.is_set():
            try:
                await self.run_cycle(stop)
            except Exception as e:
                logger.error(f"{self.name} dispatcher cycle failed: {e}", exc_info=True)

            if stop.is_set():
                break
            await self.clock.sleep(self.settings.poll_interval, stop)

        logger.info(f"{self.name} dispatcher stopped")

    async def run_cycle(self, stop: Optional[asyncio.Event] = None) -> CycleResult:
        """Claim one batch and process it in order."""
        cycle_id = uuid4().hex[:8]
        result = CycleResult(cycle_id=cycle_id)
        log_extra = {"request_id": cycle_id, "worker": self.name}

        if not self.settings.enabled:
            logger.warning(
                f"[{cycle_id}] {self.name} delivery is disabled; skipping cycle",
                extra=log_extra
            )
            return self._skip(result, "disabled")

        try:
            claim_filter = self.handler.preflight()
        except ConfigurationError as e:
            logger.error(
                f"[{cycle_id}] {self.name} cycle skipped: {e.message}",
                extra=log_extra
            )
            return self._skip(result, "configuration")

        with create_span("outbox.cycle", {"outbox.worker": self.name, "outbox.cycle_id": cycle_id}) as span:
            records = await self.store.claim_batch(claim_filter, self.settings.batch_size)
            result.claimed = len(records)
            if records:
                logger.debug(f"[{cycle_id}] Claimed {len(records)} {self.store.name} record(s)", extra=log_extra)

            for index, record in enumerate(records):
                if stop is not None and stop.is_set():
                    result.released += await self._release(records[index:], cycle_id)
                    break

                try:
                    if await self.store.renew_claim(record.id):
                        outcome = await self.process_record(record, cycle_id)
                    else:
                        logger.warning(
                            f"[{cycle_id}] Claim on {self.store.name} record {record.id} "
                            f"expired before delivery; skipping",
                            extra=log_extra
                        )
                        outcome = DeliveryOutcome.CONFLICT
                except ConfigurationError as e:
                    logger.error(
                        f"[{cycle_id}] {self.name} cycle aborted: {e.message}",
                        extra=log_extra
                    )
                    result.reason = "configuration"
                    result.released += await self._release(records[index:], cycle_id)
                    break
                except Exception as e:
                    # Row keeps its claim; the lease makes it reclaimable later.
                    result.errors += 1
                    logger.error(
                        f"[{cycle_id}] Failed to record outcome for {self.store.name} "
                        f"record {record.id}: {e}",
                        exc_info=True,
                        extra=log_extra
                    )
                    continue

                result.count(outcome)

            span.set_attribute("outbox.claimed", result.claimed)
            span.set_attribute("outbox.delivered", result.delivered)
            span.set_attribute("outbox.retried", result.retried)
            span.set_attribute("outbox.dead_lettered", result.dead_lettered)

        if result.claimed:
            logger.info(
                f"[{cycle_id}] {self.name} cycle: claimed={result.claimed} "
                f"delivered={result.delivered} retried={result.retried} "
                f"dead_lettered={result.dead_lettered} released={result.released}",
                extra=log_extra
            )
        return result

    async def process_record(self, record: R, cycle_id: str = "-") -> DeliveryOutcome:
        """
        Attempt one record and persist the outcome.

        ConfigurationError propagates to the cycle; every other failure is
        turned into a retry or a dead-letter transition.
        """
        attempt = record.attempts + 1
        attributes = {"worker": self.name, "channel": record.channel}
        started = time.monotonic()
        audit: Dict[str, Any] = {}

        with create_span(
            "outbox.deliver",
            {
                "outbox.worker": self.name,
                "outbox.id": record.id,
                "outbox.channel": record.channel,
                "outbox.attempt": attempt,
            }
        ) as span:
            try:
                payload = self.handler.parse(record)
                delivery = await asyncio.wait_for(
                    self.handler.deliver(record, payload, attempt, audit),
                    timeout=self.settings.delivery_timeout
                )
            except ConfigurationError:
                raise
            except asyncio.TimeoutError:
                error = TransientDeliveryError(
                    f"Delivery timed out after {self.settings.delivery_timeout}s"
                )
                outcome = await self._handle_failure(record, attempt, error, cycle_id, audit)
            except Exception as e:
                outcome = await self._handle_failure(record, attempt, e, cycle_id, audit)
            else:
                applied = await self.store.mark_success(
                    record.id, attempt, {**audit, **delivery.extra}
                )
                if applied:
                    outcome = DeliveryOutcome.DELIVERED
                    record_counter("outbox_delivered_total", 1, attributes)
                    logger.info(
                        f"[{cycle_id}] Delivered {self.store.name} record {record.id} "
                        f"({self.handler.describe(record)}) on attempt {attempt}",
                        extra={"request_id": cycle_id, "worker": self.name}
                    )
                else:
                    outcome = DeliveryOutcome.CONFLICT
            finally:
                record_histogram(
                    "outbox_delivery_duration_seconds",
                    time.monotonic() - started,
                    attributes
                )

            span.set_attribute("outbox.outcome", outcome.value)

        return outcome

    async def _handle_failure(
        self,
        record: R,
        attempt: int,
        error: Exception,
        cycle_id: str,
        audit: Optional[Dict[str, Any]] = None,
    ) -> DeliveryOutcome:
        message = _error_message(error)
        extra = dict(audit or {})
        if isinstance(error, DeliveryError):
            extra.update(error.extra)
        permanent = isinstance(error, DeliveryError) and not error.retryable
        attributes = {"worker": self.name, "channel": record.channel}
        log_extra = {"request_id": cycle_id, "worker": self.name}

        if permanent or attempt >= self.settings.max_attempts:
            applied = await self.store.mark_dead_letter(record.id, attempt, message, extra)
            if not applied:
                return DeliveryOutcome.CONFLICT
            record_counter("outbox_dead_lettered_total", 1, attributes)
            reason = "permanent failure" if permanent else f"{attempt} attempts"
            logger.error(
                f"[{cycle_id}] {self.store.name} record {record.id} "
                f"({self.handler.describe(record)}) moved to FAILED after {reason}: {message}",
                extra=log_extra
            )
            return DeliveryOutcome.DEAD_LETTERED

        next_attempt = self.policy.next_attempt_at(attempt, self.clock.now())
        applied = await self.store.mark_retry(record.id, attempt, message, next_attempt, extra)
        if not applied:
            return DeliveryOutcome.CONFLICT
        record_counter("outbox_retried_total", 1, attributes)
        logger.warning(
            f"[{cycle_id}] {self.store.name} record {record.id} "
            f"({self.handler.describe(record)}) failed (attempt {attempt}/"
            f"{self.settings.max_attempts}), retry at {next_attempt.isoformat()}: {message}",
            extra=log_extra
        )
        return DeliveryOutcome.RETRIED

    async def _release(self, records: List[R], cycle_id: str) -> int:
        logger.debug(
            f"[{cycle_id}] Releasing {len(records)} unprocessed {self.store.name} record(s)",
            extra={"request_id": cycle_id, "worker": self.name}
        )
        return await self.store.release([r.id for r in records])

    def _skip(self, result: CycleResult, reason: str) -> CycleResult:
        result.skipped = True
        result.reason = reason
        record_counter("outbox_cycles_skipped_total", 1, {"worker": self.name, "reason": reason})
        return result


def _error_message(error: Exception) -> str:
    if isinstance(error, DeliveryError):
        return error.message
    text = str(error)
    return f"{error.__class__.__name__}: {text}" if text else error.__class__.__name__
