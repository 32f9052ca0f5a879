"""
Read-only booking queries. No locking: these never feed a reservation decision.
"""

import math
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from eventflow.core.errors import BookingNotFoundError, ForbiddenError, InvalidPaginationError
from eventflow.core.policy import Action, is_allowed
from eventflow.core.security import Principal
from eventflow.models.booking import Booking
from eventflow.models.event import Event
from eventflow.repositories.ledger import BookingLedger


async def list_bookings_for_user(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    page_size: int = 10,
) -> tuple[list[tuple[Booking, Optional[Event]]], int]:
    """One page of a user's bookings (all statuses), newest first, plus the total count."""
    if page < 1 or page_size < 1:
        raise InvalidPaginationError(
            "Invalid pagination parameters. Page and page size must be positive integers."
        )
    return await BookingLedger(db).list_for_user(
        user_id,
        limit=page_size,
        offset=(page - 1) * page_size,
    )


def total_pages(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if page_size else 0


async def get_booking(db: AsyncSession, booking_id: int, requester: Principal) -> Booking:
    booking = await BookingLedger(db).get(booking_id)
    if booking is None:
        raise BookingNotFoundError("Booking not found.", booking_id=booking_id)
    if not is_allowed(Action.VIEW_BOOKINGS, requester, booking.user_id):
        raise ForbiddenError("Not authorized to view this booking.")
    return booking
