"""
Event model with spot inventory tracking.

Key design decisions:
- `spots_left` and `attendees` are denormalized; `spots - spots_left == len(attendees)`
- `date`/`time` stay free text as entered by admins; the effective status is
  computed from them on read and `status` is only a cache of that value
- `version` column enables optimistic locking for concurrent booking
"""

from sqlalchemy import JSON, CheckConstraint, Column, Float, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from huntbook.db.base import Base, TimestampMixin

EVENT_TYPES = ("hunt", "workshop", "exhibition", "walk")


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    type = Column(String(20), nullable=False)
    date = Column(String(50), nullable=False)  # "April 20, 2025"
    time = Column(String(50), nullable=False)  # "6:00 PM - 9:00 PM"
    location = Column(String(255), nullable=False)
    venue_name = Column(String(255), nullable=True)
    description = Column(Text, nullable=False, default="")
    image = Column(Text, nullable=True)

    spots = Column(Integer, nullable=False)
    spots_left = Column(Integer, nullable=False)
    attendees = Column(JSON, nullable=False, default=list)
    pending_bookings = Column(JSON, nullable=False, default=list)

    status = Column(String(20), nullable=False, default="upcoming")

    member_price = Column(Float, nullable=True)
    non_member_price = Column(Float, nullable=True)
    payment_amount = Column(Float, nullable=True)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    bookings = relationship(
        "Booking",
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("spots >= 0", name="check_spots_non_negative"),
        CheckConstraint("spots_left >= 0", name="check_spots_left_non_negative"),
        CheckConstraint("spots_left <= spots", name="check_spots_left_lte_total"),
        CheckConstraint(
            "type IN ('hunt', 'workshop', 'exhibition', 'walk')", name="check_event_type"
        ),
        Index("ix_events_status_type", "status", "type"),
    )

    @property
    def requires_payment(self) -> bool:
        return bool(self.payment_amount and self.payment_amount > 0)

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, left={self.spots_left}/{self.spots})>"
