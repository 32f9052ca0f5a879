"""
Booking ledger: append-only apart from the single confirmed -> cancelled flip.
"""

from typing import Optional

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from eventflow.core.errors import DuplicateBookingError
from eventflow.models.booking import Booking, BookingStatus
from eventflow.models.event import Event

# Markers of the partial unique index in PostgreSQL and SQLite error messages
_ACTIVE_BOOKING_VIOLATIONS = (
    "uq_active_booking_per_user_event",
    "unique constraint failed: bookings.user_id, bookings.event_id",
)


class BookingLedger:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_active(self, user_id: int, event_id: int) -> Optional[Booking]:
        result = await self.session.execute(
            select(Booking).where(
                Booking.user_id == user_id,
                Booking.event_id == event_id,
                Booking.status == BookingStatus.CONFIRMED.value,
            )
        )
        return result.scalars().first()

    async def get(self, booking_id: int, *, refresh: bool = False) -> Optional[Booking]:
        query = select(Booking).where(Booking.id == booking_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def append(self, user_id: int, event_id: int, number_of_tickets: int) -> Booking:
        booking = Booking(
            user_id=user_id,
            event_id=event_id,
            number_of_tickets=number_of_tickets,
            status=BookingStatus.CONFIRMED.value,
        )
        self.session.add(booking)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            message = str(exc.orig).lower()
            if any(marker in message for marker in _ACTIVE_BOOKING_VIOLATIONS):
                raise DuplicateBookingError(
                    "You already have an active booking for this event.",
                    event_id=event_id,
                ) from exc
            raise
        await self.session.refresh(booking)
        return booking

    async def mark_cancelled(self, booking_id: int) -> bool:
        """Flip confirmed -> cancelled. False if the row was not confirmed anymore."""
        result = await self.session.execute(
            update(Booking)
            .where(
                Booking.id == booking_id,
                Booking.status == BookingStatus.CONFIRMED.value,
            )
            .values(status=BookingStatus.CANCELLED.value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list_for_user(
        self,
        user_id: int,
        limit: int,
        offset: int,
    ) -> tuple[list[tuple[Booking, Optional[Event]]], int]:
        """Newest first, each booking paired with its event (None if the event is gone)."""
        rows = await self.session.execute(
            select(Booking, Event)
            .outerjoin(Event, Event.id == Booking.event_id)
            .where(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .limit(limit)
            .offset(offset)
        )
        total = await self.session.execute(
            select(func.count()).select_from(Booking).where(Booking.user_id == user_id)
        )
        return [(booking, event) for booking, event in rows.all()], total.scalar_one()
