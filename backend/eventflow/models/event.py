"""
Event inventory row: the contended resource.

Key design decisions:
- `capacity` and `event_time` belong to the event catalog; this service
  only ever writes `available_seats` (and `version` alongside it)
- `available_seats` is denormalized to avoid summing bookings under lock
- `version` enables the optimistic compare-and-swap lock strategy
- CHECK constraints are the last line of defence against oversell
"""

from sqlalchemy import Column, Integer, String, DateTime, Index, CheckConstraint
from sqlalchemy.orm import relationship

from eventflow.db.base import Base, TimestampMixin


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    venue = Column(String(255), nullable=True)
    event_time = Column(DateTime(timezone=True), nullable=False)
    capacity = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    # Owned by the catalog's user store; no FK into it
    organizer_id = Column(Integer, nullable=True)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    bookings = relationship("Booking", back_populates="event", lazy="raise")

    __table_args__ = (
        CheckConstraint("available_seats >= 0", name="check_available_seats_non_negative"),
        CheckConstraint("capacity > 0", name="check_capacity_positive"),
        CheckConstraint("available_seats <= capacity", name="check_available_lte_capacity"),
        Index("ix_events_event_time", "event_time"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, available={self.available_seats}/{self.capacity})>"
