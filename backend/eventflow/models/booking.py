"""
Booking ledger row: a user's claim on some of an event's seats.

Key design decisions:
- Rows are never deleted; cancellation flips status (confirmed -> cancelled)
- Partial unique index allows one *confirmed* booking per (user, event),
  so a user can book again after cancelling
- number_of_tickets is fixed at creation
"""

import enum

from sqlalchemy import Column, Integer, String, ForeignKey, Index, CheckConstraint, text
from sqlalchemy.orm import relationship

from eventflow.db.base import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    # Owned by the identity service; no FK into it
    user_id = Column(Integer, nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    number_of_tickets = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value)

    event = relationship("Event", back_populates="bookings", lazy="raise")

    __table_args__ = (
        Index(
            "uq_active_booking_per_user_event",
            "user_id",
            "event_id",
            unique=True,
            postgresql_where=text("status = 'confirmed'"),
            sqlite_where=text("status = 'confirmed'"),
        ),
        CheckConstraint("number_of_tickets > 0", name="check_booking_tickets_positive"),
        CheckConstraint("status IN ('confirmed', 'cancelled')", name="check_booking_status"),
    )

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED.value

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, event={self.event_id}, status={self.status})>"
