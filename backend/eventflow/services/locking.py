"""
Concrete per-event lock strategies.

RowLockStrategy (default)
  SELECT ... FOR UPDATE on the event row. Concurrent reservations and
  cancellations for the same event queue behind the holder; other events
  are untouched. On PostgreSQL the wait is bounded with SET LOCAL
  lock_timeout, so a stalled holder surfaces as LockTimeoutError instead of
  wedging the event.

OptimisticLockStrategy
  No blocking. The event's version is read with the row and the seat UPDATE
  only applies WHERE version still matches. A miss means another
  transaction won; the whole unit of work is rolled back and re-run with
  fresh state, with jittered exponential backoff, up to max_attempts.
"""

import asyncio
import random
import time
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from eventflow.core.errors import ConcurrentModificationError, LockTimeoutError
from eventflow.core.logging import get_logger
from eventflow.core.metrics import lock_wait, lock_timeouts, optimistic_retries
from eventflow.db.session import dialect_name
from eventflow.models.event import Event
from eventflow.repositories.inventory import InventoryRepository
from eventflow.services.interfaces.event_lock import EventLockStrategy, VersionConflict

logger = get_logger(__name__)

T = TypeVar("T")


class RowLockStrategy(EventLockStrategy):
    name = "row"

    def __init__(self, lock_timeout_ms: int = 5000):
        self.lock_timeout_ms = lock_timeout_ms

    async def lock_event(self, session: AsyncSession, event_id: int) -> Optional[Event]:
        if dialect_name(session) == "postgresql":
            # Scoped to the current transaction only
            await session.execute(text(f"SET LOCAL lock_timeout = '{int(self.lock_timeout_ms)}ms'"))

        started = time.perf_counter()
        event = await InventoryRepository(session).get_for_update(event_id)
        lock_wait.labels(strategy=self.name).observe(time.perf_counter() - started)
        return event

    async def adjust_available_seats(self, session: AsyncSession, event: Event, delta: int) -> None:
        applied = await InventoryRepository(session).adjust_available_seats(event.id, delta)
        if not applied:
            # The locked re-read already validated this; the guard caught a writer
            # that bypassed the lock.
            logger.error("seat_guard_rejected_update", event_id=event.id, delta=delta)
            raise ConcurrentModificationError(
                "Seat inventory changed while locked. Please retry.",
                event_id=event.id,
            )


class OptimisticLockStrategy(EventLockStrategy):
    name = "optimistic"

    def __init__(self, max_attempts: int = 3, backoff_seconds: float = 0.005, max_backoff_seconds: float = 0.1):
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds

    async def run_atomic(self, session: AsyncSession, unit: Callable[[], Awaitable[T]]) -> T:
        conflict: Optional[VersionConflict] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await super().run_atomic(session, unit)
            except VersionConflict as exc:
                conflict = exc
                optimistic_retries.inc()
                logger.info(
                    "lock_retry",
                    event_id=exc.event_id,
                    attempt=attempt,
                    reason="version_conflict",
                )
                if attempt < self.max_attempts and self.backoff_seconds:
                    delay = min(self.backoff_seconds * (2 ** (attempt - 1)), self.max_backoff_seconds)
                    await asyncio.sleep(delay + random.uniform(0, self.backoff_seconds))

        lock_timeouts.inc()
        logger.warning(
            "lock_timeout",
            event_id=conflict.event_id,
            attempts=self.max_attempts,
            strategy=self.name,
        )
        raise LockTimeoutError(
            f"Gave up after {self.max_attempts} version conflicts",
            event_id=conflict.event_id,
        )

    async def lock_event(self, session: AsyncSession, event_id: int) -> Optional[Event]:
        started = time.perf_counter()
        event = await InventoryRepository(session).get_for_update(event_id, lock=False)
        lock_wait.labels(strategy=self.name).observe(time.perf_counter() - started)
        return event

    async def adjust_available_seats(self, session: AsyncSession, event: Event, delta: int) -> None:
        applied = await InventoryRepository(session).adjust_available_seats(
            event.id, delta, expected_version=event.version
        )
        if not applied:
            raise VersionConflict(event.id)
