"""
Tests for the reservation coordinator.
"""

import pytest

from eventflow.core.errors import (
    DuplicateBookingError,
    EventClosedError,
    EventNotFoundError,
    ForbiddenError,
    InsufficientCapacityError,
    InvalidTicketCountError,
)
from eventflow.core.security import Principal, Role
from eventflow.models.booking import BookingStatus

from conftest import USER_ID, OTHER_USER_ID


@pytest.mark.asyncio
async def test_reserve_decrements_available_seats(coordinator, make_event, inventory_state):
    """Successful booking takes exactly the requested seats."""
    event = await make_event(capacity=10)

    booking = await coordinator.reserve(USER_ID, event.id, 3)

    assert booking.id is not None
    assert booking.user_id == USER_ID
    assert booking.event_id == event.id
    assert booking.number_of_tickets == 3
    assert booking.status == BookingStatus.CONFIRMED.value
    assert booking.created_at is not None
    assert await inventory_state(event.id) == (7, 3)


@pytest.mark.asyncio
async def test_reserve_last_seats(coordinator, make_event, inventory_state):
    event = await make_event(capacity=5, available_seats=2)

    await coordinator.reserve(USER_ID, event.id, 2)

    available, _ = await inventory_state(event.id)
    assert available == 0


@pytest.mark.asyncio
async def test_reserve_more_than_available(coordinator, make_event, inventory_state):
    """Rejection reports what is left and changes nothing."""
    event = await make_event(capacity=10, available_seats=2)

    with pytest.raises(InsufficientCapacityError) as exc_info:
        await coordinator.reserve(USER_ID, event.id, 3)

    assert exc_info.value.remaining_seats == 2
    assert exc_info.value.to_dict()["remaining_seats"] == 2
    assert "Only 2 seats remaining" in exc_info.value.message
    assert await inventory_state(event.id) == (2, 0)


@pytest.mark.asyncio
async def test_reserve_sold_out(coordinator, make_event):
    event = await make_event(capacity=5, available_seats=0)

    with pytest.raises(InsufficientCapacityError) as exc_info:
        await coordinator.reserve(USER_ID, event.id, 1)
    assert exc_info.value.remaining_seats == 0


@pytest.mark.asyncio
async def test_reserve_unknown_event(coordinator):
    with pytest.raises(EventNotFoundError):
        await coordinator.reserve(USER_ID, 999999, 1)


@pytest.mark.asyncio
async def test_reserve_past_event(coordinator, make_event, inventory_state):
    event = await make_event(capacity=10, days_ahead=-1)

    with pytest.raises(EventClosedError):
        await coordinator.reserve(USER_ID, event.id, 1)
    assert await inventory_state(event.id) == (10, 0)


@pytest.mark.asyncio
async def test_duplicate_booking_rejected(coordinator, make_event, inventory_state):
    """Same user booking same event twice is rejected; seats are taken once."""
    event = await make_event(capacity=10)
    await coordinator.reserve(USER_ID, event.id, 2)

    with pytest.raises(DuplicateBookingError):
        await coordinator.reserve(USER_ID, event.id, 1)

    assert await inventory_state(event.id) == (8, 2)


@pytest.mark.asyncio
async def test_different_users_can_book_same_event(coordinator, make_event, inventory_state):
    event = await make_event(capacity=10)

    await coordinator.reserve(USER_ID, event.id, 2)
    await coordinator.reserve(OTHER_USER_ID, event.id, 3)

    assert await inventory_state(event.id) == (5, 5)


@pytest.mark.asyncio
@pytest.mark.parametrize("tickets", [0, -1, True, "2", 1.5, None])
async def test_invalid_ticket_count(coordinator, make_event, inventory_state, tickets):
    event = await make_event(capacity=10)

    with pytest.raises(InvalidTicketCountError):
        await coordinator.reserve(USER_ID, event.id, tickets)
    assert await inventory_state(event.id) == (10, 0)


@pytest.mark.asyncio
async def test_organizer_cannot_reserve(coordinator, make_event):
    event = await make_event(capacity=10)
    organizer = Principal(user_id=USER_ID, role=Role.ORGANIZER)

    with pytest.raises(ForbiddenError):
        await coordinator.reserve(USER_ID, event.id, 1, requester=organizer)


@pytest.mark.asyncio
async def test_user_cannot_reserve_for_someone_else(coordinator, make_event):
    event = await make_event(capacity=10)
    requester = Principal(user_id=OTHER_USER_ID, role=Role.USER)

    with pytest.raises(ForbiddenError):
        await coordinator.reserve(USER_ID, event.id, 1, requester=requester)


@pytest.mark.asyncio
async def test_admin_can_reserve_on_behalf_of_user(coordinator, make_event):
    event = await make_event(capacity=10)
    admin = Principal(user_id=99, role=Role.ADMIN)

    booking = await coordinator.reserve(USER_ID, event.id, 1, requester=admin)

    assert booking.user_id == USER_ID


@pytest.mark.asyncio
async def test_reserve_again_after_cancelling(coordinator, compensator, make_event, inventory_state):
    """A cancelled booking no longer counts as the user's active booking."""
    event = await make_event(capacity=10)
    first = await coordinator.reserve(USER_ID, event.id, 4)
    await compensator.cancel(first.id, USER_ID, "user")

    second = await coordinator.reserve(USER_ID, event.id, 2)

    assert second.id != first.id
    assert await inventory_state(event.id) == (8, 2)
