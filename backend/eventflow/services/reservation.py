"""
Reservation coordinator: turns available seats into a confirmed booking.

One reservation is one transaction on one pooled connection:

  1. cheap unlocked pre-checks (event exists, no confirmed booking yet)
  2. exclusive access to the event row (see services/locking.py)
  3. locked re-read: event still exists, not elapsed, no confirmed booking,
     enough seats; only this read decides
  4. guarded decrement of available_seats
  5. append the confirmed booking
  6. commit

Any failure in 1-6 rolls the whole transaction back, so "seats taken but no
booking row" is never visible. The confirmation email is queued only after
the commit and is never awaited.
"""

import time
from functools import partial
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from eventflow.core.clock import has_elapsed, utcnow
from eventflow.core.errors import (
    BookingError,
    DuplicateBookingError,
    EventClosedError,
    EventNotFoundError,
    ForbiddenError,
    InsufficientCapacityError,
    InvalidTicketCountError,
)
from eventflow.core.logging import get_logger
from eventflow.core.metrics import record_reservation, reservation_latency
from eventflow.core.policy import Action, is_allowed
from eventflow.core.security import Principal
from eventflow.db.session import Database, storage_errors
from eventflow.models.booking import Booking
from eventflow.models.event import Event
from eventflow.repositories.inventory import InventoryRepository
from eventflow.repositories.ledger import BookingLedger
from eventflow.services.interfaces.event_lock import EventLockStrategy
from eventflow.services.notifications import NotificationDispatcher, booking_confirmation

logger = get_logger(__name__)


def validate_ticket_count(number_of_tickets) -> int:
    # bool is an int subclass; True is not "1 ticket"
    if isinstance(number_of_tickets, bool) or not isinstance(number_of_tickets, int):
        raise InvalidTicketCountError("Number of tickets must be a positive integer.")
    if number_of_tickets <= 0:
        raise InvalidTicketCountError("Number of tickets must be a positive integer.")
    return number_of_tickets


class ReservationCoordinator:
    def __init__(
        self,
        database: Database,
        locks: EventLockStrategy,
        notifier: Optional[NotificationDispatcher] = None,
        clock: Callable = utcnow,
    ):
        self.database = database
        self.locks = locks
        self.notifier = notifier
        self.clock = clock

    async def reserve(
        self,
        user_id: int,
        event_id: int,
        number_of_tickets: int,
        *,
        requester: Optional[Principal] = None,
        contact_email: Optional[str] = None,
    ) -> Booking:
        """
        Reserve seats for `user_id`.

        `requester` is the authenticated caller when it may differ from the
        booking owner; `contact_email` receives the confirmation.
        """
        started = time.perf_counter()
        try:
            validate_ticket_count(number_of_tickets)
            if requester is not None and not is_allowed(Action.RESERVE, requester, user_id):
                raise ForbiddenError("Not authorized to book for this user.")

            async with storage_errors("reserve", event_id=event_id, user_id=user_id):
                async with self.database.session() as session:
                    booking, event = await self.locks.run_atomic(
                        session,
                        partial(self._reserve_unit, session, user_id, event_id, number_of_tickets),
                    )
        except BookingError as exc:
            record_reservation(exc.code)
            context = {"event_id": event_id, "user_id": user_id, "requested": number_of_tickets}
            logger.info("booking_rejected", code=exc.code, **{**context, **exc.context})
            raise
        finally:
            reservation_latency.observe(time.perf_counter() - started)

        record_reservation("success")
        logger.info(
            "booking_created",
            booking_id=booking.id,
            user_id=user_id,
            event_id=event_id,
            tickets=number_of_tickets,
            strategy=self.locks.name,
        )

        if self.notifier is not None and contact_email:
            self.notifier.submit(booking_confirmation(contact_email, event, booking))
        return booking

    async def _reserve_unit(
        self,
        session: AsyncSession,
        user_id: int,
        event_id: int,
        number_of_tickets: int,
    ) -> tuple[Booking, Event]:
        inventory = InventoryRepository(session)
        ledger = BookingLedger(session)

        if await inventory.get(event_id) is None:
            raise EventNotFoundError("Event not found.", event_id=event_id)
        if await ledger.find_active(user_id, event_id) is not None:
            raise DuplicateBookingError("You already have an active booking for this event.")

        return await self.locks.with_exclusive_event_lock(
            session,
            event_id,
            partial(self._claim_seats, session, ledger, user_id, event_id, number_of_tickets),
        )

    async def _claim_seats(
        self,
        session: AsyncSession,
        ledger: BookingLedger,
        user_id: int,
        event_id: int,
        number_of_tickets: int,
        event: Optional[Event],
    ) -> tuple[Booking, Event]:
        if event is None:
            raise EventNotFoundError("Event not found.", event_id=event_id)
        if has_elapsed(event.event_time, self.clock()):
            raise EventClosedError("Cannot book past events.")
        # Re-checked under the lock: two requests from the same user may both
        # have passed the unlocked pre-check.
        if await ledger.find_active(user_id, event_id) is not None:
            raise DuplicateBookingError("You already have an active booking for this event.")
        if event.available_seats < number_of_tickets:
            raise InsufficientCapacityError(
                remaining_seats=event.available_seats,
                requested=number_of_tickets,
            )

        await self.locks.adjust_available_seats(session, event, -number_of_tickets)
        booking = await ledger.append(user_id, event_id, number_of_tickets)
        return booking, event
