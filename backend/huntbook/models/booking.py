"""
Booking model representing a user's reservation for an event.

Key design decisions:
- Partial unique index on (user_id, event_id) for non-cancelled rows backs the
  booking pre-check: at most one active booking per user per event, while
  cancelled rows stay as history and a re-booking inserts a fresh row
- `payment_status` mirrors the provider's status text
- Contact info is a snapshot taken at booking time
"""

from sqlalchemy import JSON, CheckConstraint, Column, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import relationship

from huntbook.db.base import Base, TimestampMixin

BOOKING_CONFIRMED = "confirmed"
BOOKING_CANCELLED = "cancelled"
BOOKING_PAYMENT_PENDING = "payment-pending"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(String(20), nullable=False, default=BOOKING_CONFIRMED)
    payment_status = Column(String(20), nullable=False, default="NOT_REQUIRED")

    contact_email = Column(String(255), nullable=False, default="")
    contact_phone = Column(String(50), nullable=False, default="")
    contact_display_name = Column(String(255), nullable=False, default="")
    specific_request = Column(Text, nullable=True)

    # Snapshot of the client-side payment details, if any
    payment = Column(JSON, nullable=True)

    user = relationship("User", back_populates="bookings")
    event = relationship("Event", back_populates="bookings")

    __table_args__ = (
        Index(
            "uq_active_booking_per_user_event",
            "user_id",
            "event_id",
            unique=True,
            postgresql_where=text("status != 'cancelled'"),
            sqlite_where=text("status != 'cancelled'"),
        ),
        CheckConstraint(
            "status IN ('confirmed', 'cancelled', 'payment-pending')",
            name="check_booking_status",
        ),
    )

    @property
    def contact_info(self) -> dict:
        return {
            "email": self.contact_email,
            "phone": self.contact_phone,
            "display_name": self.contact_display_name,
        }

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, event={self.event_id}, status={self.status})>"
