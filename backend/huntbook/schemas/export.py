"""
Pydantic schemas for the admin data export.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from huntbook.schemas.event import EventResponse


class ExportSummary(BaseModel):
    total_events: int
    total_users: int
    total_bookings: int
    events_by_type: dict[str, int]
    events_by_status: dict[str, int]


class ExportedEvent(EventResponse):
    attendees: list[str]
    pending_bookings: list[int]


class ExportedUser(BaseModel):
    id: str
    email: Optional[str]
    display_name: Optional[str]
    role: str
    created_at: Optional[datetime]
    events_booked: list[int]

    model_config = {"from_attributes": True}


class ExportedBooking(BaseModel):
    id: int
    user_id: str
    event_id: int
    status: str
    payment_status: str
    contact_email: str
    contact_phone: str
    contact_display_name: str
    specific_request: Optional[str]
    created_at: Optional[datetime]

    model_config = {"from_attributes": True}


class ExportReport(BaseModel):
    generated_at: datetime
    summary: ExportSummary
    events: list[ExportedEvent]
    users: list[ExportedUser]
    bookings: list[ExportedBooking]
