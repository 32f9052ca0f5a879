from eventflow.schemas.booking import (
    BookingCreate, BookingResponse, BookingSummary, BookingListResponse, BookingCancelResponse,
)
from eventflow.schemas.event import EventAvailabilityResponse
from eventflow.schemas.error import ErrorResponse

__all__ = [
    "BookingCreate", "BookingResponse", "BookingSummary", "BookingListResponse",
    "BookingCancelResponse", "EventAvailabilityResponse", "ErrorResponse",
]
