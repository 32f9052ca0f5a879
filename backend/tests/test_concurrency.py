"""
Concurrency scenarios: many requests race for the same event's seats.

Each scenario runs against both lock strategies. Whatever the interleaving,
available_seats + confirmed tickets must equal capacity and seats never go
negative.
"""

import asyncio

import pytest

from eventflow.core.errors import (
    AlreadyCancelledError,
    ConcurrentModificationError,
    DuplicateBookingError,
    InsufficientCapacityError,
)

from conftest import USER_ID


def split_results(results):
    successes = [r for r in results if not isinstance(r, BaseException)]
    failures = [r for r in results if isinstance(r, BaseException)]
    return successes, failures


@pytest.mark.asyncio
async def test_no_overbooking_under_concurrency(coordinator, make_event, inventory_state):
    """20 users race for 10 seats: exactly 10 win."""
    event = await make_event(capacity=10)

    results = await asyncio.gather(
        *[coordinator.reserve(1000 + i, event.id, 1) for i in range(20)],
        return_exceptions=True,
    )

    successes, failures = split_results(results)
    assert len(successes) == 10
    assert len(failures) == 10
    assert all(isinstance(f, InsufficientCapacityError) for f in failures)
    assert await inventory_state(event.id) == (0, 10)


@pytest.mark.asyncio
async def test_multi_ticket_requests_never_oversell(coordinator, make_event, inventory_state):
    """8 users ask for 3 seats each out of 10: three fit, one seat is left over."""
    event = await make_event(capacity=10)

    results = await asyncio.gather(
        *[coordinator.reserve(2000 + i, event.id, 3) for i in range(8)],
        return_exceptions=True,
    )

    successes, failures = split_results(results)
    assert len(successes) == 3
    assert all(isinstance(f, InsufficientCapacityError) for f in failures)
    # Whoever lost saw the real remainder, never a negative one
    assert all(f.remaining_seats == 1 for f in failures)
    assert await inventory_state(event.id) == (1, 9)


@pytest.mark.asyncio
async def test_same_user_concurrent_duplicates(coordinator, make_event, inventory_state):
    """One user double-clicking: one booking, the rest are duplicates."""
    event = await make_event(capacity=10)

    results = await asyncio.gather(
        *[coordinator.reserve(USER_ID, event.id, 2) for _ in range(5)],
        return_exceptions=True,
    )

    successes, failures = split_results(results)
    assert len(successes) == 1
    assert all(isinstance(f, DuplicateBookingError) for f in failures)
    assert await inventory_state(event.id) == (8, 2)


@pytest.mark.asyncio
async def test_concurrent_cancellations_restore_once(coordinator, compensator, make_event, inventory_state):
    event = await make_event(capacity=10)
    booking = await coordinator.reserve(USER_ID, event.id, 4)

    results = await asyncio.gather(
        *[compensator.cancel(booking.id, USER_ID, "user") for _ in range(5)],
        return_exceptions=True,
    )

    successes, failures = split_results(results)
    assert len(successes) == 1
    # Losers that read the booking before the winner committed see the guard fail instead
    assert all(isinstance(f, (AlreadyCancelledError, ConcurrentModificationError)) for f in failures)
    assert await inventory_state(event.id) == (10, 0)


@pytest.mark.asyncio
async def test_mixed_reserve_and_cancel_keeps_inventory_consistent(
    coordinator, compensator, make_event, inventory_state
):
    """Cancellations free seats that concurrent reservations may pick up."""
    event = await make_event(capacity=6)
    holders = [await coordinator.reserve(3000 + i, event.id, 2) for i in range(3)]
    assert await inventory_state(event.id) == (0, 6)

    results = await asyncio.gather(
        *[compensator.cancel(b.id, b.user_id, "user") for b in holders],
        *[coordinator.reserve(4000 + i, event.id, 1) for i in range(10)],
        return_exceptions=True,
    )

    _, failures = split_results(results)
    assert all(isinstance(f, InsufficientCapacityError) for f in failures)
    available, confirmed = await inventory_state(event.id)
    assert available >= 0
    assert available + confirmed == 6


@pytest.mark.asyncio
async def test_independent_events_do_not_interfere(coordinator, make_event, inventory_state):
    """
    Interleaved bookings on two events each settle on their own inventory.

    SQLite's BEGIN IMMEDIATE serializes every writer in the database, so this
    only shows that a lock on one event never blocks another when
    TEST_DATABASE_URL points at PostgreSQL.
    """
    first = await make_event(capacity=3, title="First")
    second = await make_event(capacity=3, title="Second")

    await asyncio.gather(
        *[coordinator.reserve(5000 + i, first.id, 1) for i in range(3)],
        *[coordinator.reserve(6000 + i, second.id, 1) for i in range(3)],
    )

    assert await inventory_state(first.id) == (0, 3)
    assert await inventory_state(second.id) == (0, 3)


@pytest.mark.asyncio
async def test_two_requests_for_the_whole_event(coordinator, make_event, inventory_state):
    """Capacity 2, two concurrent requests for 2: one wins, the other sees 0 left."""
    event = await make_event(capacity=2)

    results = await asyncio.gather(
        coordinator.reserve(7001, event.id, 2),
        coordinator.reserve(7002, event.id, 2),
        return_exceptions=True,
    )

    successes, failures = split_results(results)
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientCapacityError)
    assert failures[0].remaining_seats == 0
    assert await inventory_state(event.id) == (0, 2)
