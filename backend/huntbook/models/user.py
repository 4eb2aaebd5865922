"""
User profile keyed by the auth provider's user id.

Membership is tracked per calendar year; `current_year_member` is derived from
`membership_years` and never stored.
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy.orm import relationship

from huntbook.db.base import Base, TimestampMixin

PERSONAL_DETAIL_FIELDS = ("name", "surname", "birth_date", "address", "tax_id", "instagram")
REQUIRED_PERSONAL_DETAILS = ("name", "surname", "birth_date", "address", "tax_id")


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(String(128), primary_key=True)
    email = Column(String(255), nullable=True, index=True)
    display_name = Column(String(255), nullable=True)
    photo_url = Column(Text, nullable=True)
    role = Column(String(20), nullable=False, default="user")

    membership_years = Column(JSON, nullable=False, default=list)
    last_booking_year = Column(Integer, nullable=True)
    personal_details_last_confirmed = Column(DateTime(timezone=True), nullable=True)
    events_booked = Column(JSON, nullable=False, default=list)
    pending_bookings = Column(JSON, nullable=False, default=list)

    # Filled in progressively, required before the first booking completes
    name = Column(String(100), nullable=True)
    surname = Column(String(100), nullable=True)
    birth_date = Column(String(20), nullable=True)
    address = Column(String(255), nullable=True)
    tax_id = Column(String(50), nullable=True)
    instagram = Column(String(100), nullable=True)

    bookings = relationship("Booking", back_populates="user")

    @property
    def current_year_member(self) -> bool:
        return datetime.now(timezone.utc).year in (self.membership_years or [])

    @property
    def has_complete_profile(self) -> bool:
        return all(getattr(self, field) for field in REQUIRED_PERSONAL_DETAILS)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
