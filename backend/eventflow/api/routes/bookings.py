"""
Booking endpoints: reserve, cancel, and the caller's booking history.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventflow.api.dependencies import get_cancellation_compensator, get_reservation_coordinator
from eventflow.core.errors import ForbiddenError
from eventflow.core.logging import get_logger
from eventflow.core.policy import Action, is_allowed
from eventflow.core.security import Principal, get_current_principal
from eventflow.db.session import get_db
from eventflow.schemas.booking import (
    BookingCancelResponse,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingSummary,
)
from eventflow.schemas.error import ErrorResponse
from eventflow.services.booking_service import get_booking, list_bookings_for_user, total_pages
from eventflow.services.cache_service import invalidate_availability
from eventflow.services.cancellation import CancellationCompensator
from eventflow.services.reservation import ReservationCoordinator

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


@router.post(
    "/",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def create_booking(
    booking_data: BookingCreate,
    principal: Principal = Depends(get_current_principal),
    coordinator: ReservationCoordinator = Depends(get_reservation_coordinator),
):
    """
    Reserve seats for the authenticated user.

    The event row is locked for the duration of the transaction, so concurrent
    requests for the same event are serialized and can never oversell it.
    A 409 `insufficient_capacity` response carries `remaining_seats`.
    """
    booking = await coordinator.reserve(
        principal.user_id,
        booking_data.event_id,
        booking_data.number_of_tickets,
        requester=principal,
        contact_email=principal.email,
    )
    await invalidate_availability(booking.event_id)
    return booking


@router.delete("/{booking_id}", response_model=BookingCancelResponse, responses=ERROR_RESPONSES)
async def cancel_booking_endpoint(
    booking_id: int,
    principal: Principal = Depends(get_current_principal),
    compensator: CancellationCompensator = Depends(get_cancellation_compensator),
):
    """Cancel a booking (owner or admin) and release its seats."""
    booking = await compensator.cancel(booking_id, principal.user_id, principal.role)
    await invalidate_availability(booking.event_id)
    return BookingCancelResponse(
        message="Booking cancelled successfully.",
        booking_id=booking.id,
        status=booking.status,
    )


@router.get("/", response_model=BookingListResponse)
async def list_user_bookings(
    request: Request,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    user_id: Optional[int] = Query(None, description="Admins only: another user's bookings"),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Paginated booking history, newest first, cancelled bookings included."""
    settings = request.app.state.settings
    page_size = min(page_size or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
    owner_id = principal.user_id if user_id is None else user_id
    if not is_allowed(Action.VIEW_BOOKINGS, principal, owner_id):
        raise ForbiddenError("Not authorized to view these bookings.")

    rows, total = await list_bookings_for_user(db, owner_id, page, page_size)
    bookings = []
    for booking, event in rows:
        summary = BookingSummary.model_validate(booking)
        if event is not None:
            summary = summary.model_copy(update={
                "event_title": event.title,
                "event_time": event.event_time,
                "event_venue": event.venue,
            })
        bookings.append(summary)

    return BookingListResponse(
        bookings=bookings,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total, page_size),
    )


@router.get("/{booking_id}", response_model=BookingResponse, responses=ERROR_RESPONSES)
async def get_booking_endpoint(
    booking_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return await get_booking(db, booking_id, principal)
