"""
Pydantic schemas for user profiles and booking requirements.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UserSync(BaseModel):
    """Identity attributes forwarded from the auth provider on sign-in."""

    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None


class UserResponse(BaseModel):
    id: str
    email: Optional[str]
    display_name: Optional[str]
    role: str
    membership_years: list[int]
    current_year_member: bool
    last_booking_year: Optional[int]
    personal_details_last_confirmed: Optional[datetime]
    events_booked: list[int]
    name: Optional[str]
    surname: Optional[str]
    birth_date: Optional[str]
    address: Optional[str]
    tax_id: Optional[str]
    instagram: Optional[str]

    model_config = {"from_attributes": True}


class BookingRequirements(BaseModel):
    needs_personal_details: bool
    is_first_time: bool
    reason: str
    last_confirmed_year: Optional[int] = None
