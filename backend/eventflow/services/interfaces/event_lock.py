"""
Per-event exclusive access strategy interface.
Allows swapping pessimistic row locks for optimistic version checks
without touching the coordinators.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from eventflow.core.logging import get_logger
from eventflow.models.event import Event

logger = get_logger(__name__)

T = TypeVar("T")


class VersionConflict(Exception):
    """Another transaction changed the event row between read and write."""

    def __init__(self, event_id: int):
        self.event_id = event_id
        super().__init__(f"Event {event_id} changed concurrently")


class EventLockStrategy(ABC):
    """
    Interface for serializing read-modify-write of one event's seat counter.

    Implementations:
    - RowLockStrategy: SELECT ... FOR UPDATE, blocks until the holder finishes
    - OptimisticLockStrategy: version compare-and-swap, re-runs the unit on conflict

    A lock on one event never blocks work on another event.
    """

    name = "abstract"

    async def run_atomic(self, session: AsyncSession, unit: Callable[[], Awaitable[T]]) -> T:
        """
        Run one unit of work as a single transaction on `session`.

        Commits when `unit` returns. Any exception, including task
        cancellation from an aborted caller, rolls everything back and
        releases the lock before propagating.
        """
        try:
            result = await unit()
            await session.commit()
        except BaseException:
            try:
                await session.rollback()
            except SQLAlchemyError:
                # Closing the session discards the transaction anyway
                logger.warning("rollback_failed", strategy=self.name, exc_info=True)
            raise
        return result

    @abstractmethod
    async def lock_event(self, session: AsyncSession, event_id: int) -> Optional[Event]:
        """
        Acquire exclusive access to the event row and return its current state.

        Returns None if the event does not exist.
        """

    @abstractmethod
    async def adjust_available_seats(self, session: AsyncSession, event: Event, delta: int) -> None:
        """
        Apply `delta` to the event's available seats.

        `event` must come from lock_event in the same unit of work.
        """

    async def with_exclusive_event_lock(
        self,
        session: AsyncSession,
        event_id: int,
        work: Callable[[Optional[Event]], Awaitable[T]],
    ) -> T:
        """Lock the event and hand its freshly read state to `work`."""
        event = await self.lock_event(session, event_id)
        return await work(event)
