"""
Cancellation compensator: releases a confirmed booking's seats.

The booking row is never deleted. Its status flips confirmed -> cancelled
and the tickets go back to the event, both in one transaction holding the
same per-event lock reservations use.
"""

from functools import partial
from typing import Callable, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from eventflow.core.clock import has_elapsed, utcnow
from eventflow.core.errors import (
    AlreadyCancelledError,
    BookingError,
    BookingNotFoundError,
    ConcurrentModificationError,
    EventClosedError,
    EventNotFoundError,
    ForbiddenError,
)
from eventflow.core.logging import get_logger
from eventflow.core.metrics import record_cancellation
from eventflow.core.policy import Action, is_allowed
from eventflow.core.security import Principal, Role
from eventflow.db.session import Database, storage_errors
from eventflow.models.booking import Booking
from eventflow.models.event import Event
from eventflow.repositories.ledger import BookingLedger
from eventflow.services.interfaces.event_lock import EventLockStrategy

logger = get_logger(__name__)


class CancellationCompensator:
    def __init__(
        self,
        database: Database,
        locks: EventLockStrategy,
        clock: Callable = utcnow,
    ):
        self.database = database
        self.locks = locks
        self.clock = clock

    async def cancel(
        self,
        booking_id: int,
        requesting_user_id: int,
        requesting_role: Union[Role, str],
    ) -> Booking:
        try:
            async with storage_errors("cancel", booking_id=booking_id, user_id=requesting_user_id):
                async with self.database.session() as session:
                    booking = await self.locks.run_atomic(
                        session,
                        partial(
                            self._cancel_unit,
                            session,
                            booking_id,
                            requesting_user_id,
                            requesting_role,
                        ),
                    )
        except BookingError as exc:
            record_cancellation(exc.code)
            context = {"booking_id": booking_id, "user_id": requesting_user_id}
            logger.info("cancellation_rejected", code=exc.code, **{**context, **exc.context})
            raise

        record_cancellation("success")
        logger.info(
            "booking_cancelled",
            booking_id=booking.id,
            user_id=booking.user_id,
            cancelled_by=requesting_user_id,
            event_id=booking.event_id,
            seats_restored=booking.number_of_tickets,
        )
        return booking

    async def _cancel_unit(
        self,
        session: AsyncSession,
        booking_id: int,
        requesting_user_id: int,
        requesting_role: Union[Role, str],
    ) -> Booking:
        ledger = BookingLedger(session)

        booking = await ledger.get(booking_id, refresh=True)
        if booking is None:
            raise BookingNotFoundError("Booking not found.", booking_id=booking_id)
        try:
            requester = Principal(user_id=requesting_user_id, role=Role(requesting_role))
        except ValueError:
            raise ForbiddenError("Not authorized to cancel this booking.") from None
        if not is_allowed(Action.CANCEL, requester, booking.user_id):
            raise ForbiddenError("Not authorized to cancel this booking.")
        if booking.is_cancelled:
            raise AlreadyCancelledError("This booking is already cancelled.")

        return await self.locks.with_exclusive_event_lock(
            session,
            booking.event_id,
            partial(self._release_seats, session, ledger, booking),
        )

    async def _release_seats(
        self,
        session: AsyncSession,
        ledger: BookingLedger,
        booking: Booking,
        event: Optional[Event],
    ) -> Booking:
        if event is None:
            # Orphaned booking: the catalog removed the event
            raise EventNotFoundError("Associated event not found.", event_id=booking.event_id)
        if has_elapsed(event.event_time, self.clock()):
            raise EventClosedError("Cannot cancel booking for a past event.")

        if not await ledger.mark_cancelled(booking.id):
            raise ConcurrentModificationError(
                "Booking was modified by another request.",
                booking_id=booking.id,
            )
        await self.locks.adjust_available_seats(session, event, booking.number_of_tickets)

        await session.refresh(booking)
        return booking
