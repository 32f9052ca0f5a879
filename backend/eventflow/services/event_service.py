"""
Display-only view of an event's seat inventory.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from eventflow.core.clock import as_utc, has_elapsed, utcnow
from eventflow.core.errors import EventNotFoundError
from eventflow.repositories.inventory import InventoryRepository


async def get_event_availability(db: AsyncSession, event_id: int) -> dict:
    """
    Unlocked snapshot of capacity, remaining seats and tickets held by
    confirmed bookings. May be stale by the time the caller reads it;
    reservations re-check under lock.
    """
    inventory = InventoryRepository(db)
    event = await inventory.get(event_id)
    if event is None:
        raise EventNotFoundError("Event not found.", event_id=event_id)

    return {
        "event_id": event.id,
        "title": event.title,
        "capacity": event.capacity,
        "available_seats": event.available_seats,
        "booked_tickets": await inventory.confirmed_ticket_total(event.id),
        "event_time": as_utc(event.event_time),
        "is_closed": has_elapsed(event.event_time, utcnow()),
    }
