"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

EventType = Literal["hunt", "workshop", "exhibition", "walk"]


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    type: EventType
    date: str = Field(..., min_length=1, max_length=50)
    time: str = Field(..., min_length=1, max_length=50)
    location: str = Field(..., min_length=1, max_length=255)
    venue_name: Optional[str] = Field(None, max_length=255)
    description: str = Field(..., min_length=1)
    image: Optional[str] = None
    spots: int = Field(..., ge=0, le=10000)
    member_price: Optional[float] = Field(None, ge=0)
    non_member_price: Optional[float] = Field(None, ge=0)
    payment_amount: Optional[float] = Field(None, ge=0)


class EventResponse(BaseModel):
    id: int
    title: str
    type: str
    date: str
    time: str
    location: str
    venue_name: Optional[str]
    description: str
    image: Optional[str] = None
    spots: int
    spots_left: int
    status: str
    actual_status: Optional[str] = None
    member_price: Optional[float]
    non_member_price: Optional[float]
    payment_amount: Optional[float]
    created_at: datetime

    model_config = {"from_attributes": True}


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    cached: bool = False


class EventStatusResponse(BaseModel):
    status: str


class EventStats(BaseModel):
    active: int = 0
    upcoming: int = 0
    past: int = 0
    unknown: int = 0
    total: int = 0
    by_type: dict[str, int] = {}
    total_bookings: int = 0

    @model_validator(mode="after")
    def _fill_total(self):
        self.total = self.active + self.upcoming + self.past + self.unknown
        return self


class StatusRefreshResponse(BaseModel):
    checked: int
    updated: int
