from eventflow.models.event import Event
from eventflow.models.booking import Booking, BookingStatus

__all__ = ["Event", "Booking", "BookingStatus"]
