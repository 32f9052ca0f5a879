"""
Typed failures raised by the reservation and cancellation coordinators.

Every failure carries a stable machine-readable ``code``, a taxonomy ``kind``
and the HTTP status the API layer maps it to. Business-rule failures are
recoverable: the unit of work has already rolled back when they reach the
caller. ``InternalError`` (and ``LockTimeoutError``) mark storage or
coordination failures and are rendered with a generic message.
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    CONFLICT = "conflict"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    TEMPORAL_CONSTRAINT = "temporal_constraint"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"


class BookingError(Exception):
    code = "booking_error"
    kind = ErrorKind.INTERNAL
    status_code = 500

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "detail": self.message,
            "code": self.code,
            "kind": self.kind.value,
            **self.context,
        }


class InvalidTicketCountError(BookingError):
    code = "invalid_ticket_count"
    kind = ErrorKind.VALIDATION
    status_code = 422


class EventNotFoundError(BookingError):
    code = "event_not_found"
    kind = ErrorKind.NOT_FOUND
    status_code = 404


class BookingNotFoundError(BookingError):
    code = "booking_not_found"
    kind = ErrorKind.NOT_FOUND
    status_code = 404


class DuplicateBookingError(BookingError):
    code = "duplicate_booking"
    kind = ErrorKind.CONFLICT
    status_code = 409


class AlreadyCancelledError(BookingError):
    code = "already_cancelled"
    kind = ErrorKind.CONFLICT
    status_code = 409


class ConcurrentModificationError(BookingError):
    code = "concurrent_modification"
    kind = ErrorKind.CONFLICT
    status_code = 409


class InsufficientCapacityError(BookingError):
    code = "insufficient_capacity"
    kind = ErrorKind.CAPACITY_EXCEEDED
    status_code = 409

    def __init__(self, remaining_seats: int, requested: int):
        super().__init__(
            f"Not enough available seats. Only {remaining_seats} seats remaining.",
            remaining_seats=remaining_seats,
            requested=requested,
        )
        self.remaining_seats = remaining_seats


class EventClosedError(BookingError):
    code = "event_closed"
    kind = ErrorKind.TEMPORAL_CONSTRAINT
    status_code = 400


class ForbiddenError(BookingError):
    code = "forbidden"
    kind = ErrorKind.AUTHORIZATION
    status_code = 403


class InternalError(BookingError):
    code = "internal_error"
    kind = ErrorKind.INTERNAL
    status_code = 500
    public_message = "Internal error while processing the booking request."

    def to_dict(self) -> dict:
        return {"detail": self.public_message, "code": self.code, "kind": self.kind.value}


class LockTimeoutError(InternalError):
    code = "timeout"
    status_code = 503
    public_message = "Timed out waiting for the event's seat inventory. Please retry."


class InvalidPaginationError(BookingError):
    code = "invalid_pagination"
    kind = ErrorKind.VALIDATION
    status_code = 422
