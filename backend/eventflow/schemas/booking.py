"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class BookingCreate(BaseModel):
    event_id: int = Field(..., gt=0)
    number_of_tickets: int = Field(default=1, gt=0, strict=True)


class BookingResponse(BaseModel):
    id: int
    user_id: int
    event_id: int
    number_of_tickets: int
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingSummary(BookingResponse):
    """A booking as shown in a user's history, with its event's headline details."""
    event_title: Optional[str] = None
    event_time: Optional[datetime] = None
    event_venue: Optional[str] = None


class BookingListResponse(BaseModel):
    bookings: list[BookingSummary]
    total: int
    page: int
    page_size: int
    total_pages: int


class BookingCancelResponse(BaseModel):
    message: str
    booking_id: int
    status: str
