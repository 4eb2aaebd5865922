"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from huntbook.schemas.payment import PaymentDetails


class BookingFailure(str, Enum):
    NOT_FOUND = "not_found"
    NO_SPOTS = "no_spots"
    CLOSED = "closed"
    CONFLICT = "conflict"


class Bookability(BaseModel):
    bookable: bool
    reason: Optional[str] = None
    failure: Optional[BookingFailure] = Field(default=None, exclude=True)


class BookingCreate(BaseModel):
    """What the booking form submits; identity comes from the bearer token."""

    event_id: int
    email: str = ""
    phone: str = ""
    display_name: str = ""
    requests: Optional[str] = Field(None, max_length=1000)

    name: Optional[str] = None
    surname: Optional[str] = None
    birth_date: Optional[str] = None
    address: Optional[str] = None
    tax_id: Optional[str] = None
    instagram: Optional[str] = None

    payment_details: Optional[PaymentDetails] = None

    def personal_details(self) -> dict:
        fields = ("name", "surname", "birth_date", "address", "tax_id", "instagram")
        return {field: getattr(self, field) for field in fields}


class BookingResult(BaseModel):
    success: bool
    message: str
    booking_id: Optional[int] = None
    status: Optional[str] = None
    requires_payment: bool = False
    failure: Optional[BookingFailure] = None
    # True only when this call wrote a new booking
    created: bool = Field(default=False, exclude=True)


class BookingState(BaseModel):
    is_booked: bool
    status: str = "none"
    booking_id: Optional[int] = None


class ContactInfo(BaseModel):
    email: str
    phone: str
    display_name: str


class BookingResponse(BaseModel):
    id: int
    user_id: str
    event_id: int
    status: str
    payment_status: str
    contact_info: ContactInfo
    specific_request: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingCancelResponse(BaseModel):
    message: str
    booking_id: int
    status: str
