"""
Row-level access to event seat inventory.

Only the lock strategies call the write path. Every seat UPDATE re-states its
own guard in the WHERE clause, so a lost update is a zero-row result rather
than an oversold event, even if the caller skipped the lock.
"""

from typing import Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from eventflow.models.booking import Booking, BookingStatus
from eventflow.models.event import Event


class InventoryRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, event_id: int) -> Optional[Event]:
        """Unlocked read. Fine for display, never for reservation decisions."""
        result = await self.session.execute(select(Event).where(Event.id == event_id))
        return result.scalar_one_or_none()

    async def get_for_update(self, event_id: int, *, lock: bool = True) -> Optional[Event]:
        """
        Re-read the event, bypassing whatever the identity map already holds.
        With lock=True this is SELECT ... FOR UPDATE and blocks until the
        current holder commits or rolls back.
        """
        query = (
            select(Event)
            .where(Event.id == event_id)
            .execution_options(populate_existing=True)
        )
        if lock:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def adjust_available_seats(
        self,
        event_id: int,
        delta: int,
        expected_version: Optional[int] = None,
    ) -> bool:
        """
        available_seats += delta, bumping version. Returns False when the guard
        matched no row: not enough seats, capacity would be exceeded, or (with
        expected_version) someone else changed the row first.
        """
        conditions = [Event.id == event_id]
        if delta < 0:
            conditions.append(Event.available_seats >= -delta)
        else:
            conditions.append(Event.available_seats + delta <= Event.capacity)
        if expected_version is not None:
            conditions.append(Event.version == expected_version)

        result = await self.session.execute(
            update(Event)
            .where(*conditions)
            .values(
                available_seats=Event.available_seats + delta,
                version=Event.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def confirmed_ticket_total(self, event_id: int) -> int:
        result = await self.session.execute(
            select(func.coalesce(func.sum(Booking.number_of_tickets), 0)).where(
                Booking.event_id == event_id,
                Booking.status == BookingStatus.CONFIRMED.value,
            )
        )
        return int(result.scalar_one())
