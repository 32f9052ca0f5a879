"""
Pydantic schemas for the event availability view.
"""

from datetime import datetime
from pydantic import BaseModel


class EventAvailabilityResponse(BaseModel):
    event_id: int
    title: str
    capacity: int
    available_seats: int
    booked_tickets: int = 0
    event_time: datetime
    is_closed: bool
    cached: bool = False
