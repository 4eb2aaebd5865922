"""
Booking endpoints with concurrency-safe spot reservation.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from huntbook.core.logging import get_logger
from huntbook.core.security import get_current_user_id
from huntbook.db.session import get_db
from huntbook.schemas.booking import BookingCreate, BookingResponse, BookingResult, BookingState
from huntbook.services.booking_service import BookingEngine

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("", response_model=BookingResult)
async def create_booking(
    booking_data: BookingCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Book a spot on an event.

    Business outcomes come back with HTTP 200: `success=false` with the reason
    when the event is full, closed or missing, and `success=true` with
    "You have already booked this event" when the user already holds a booking.
    """
    return await BookingEngine(db).book_event(user_id, booking_data)


@router.get("", response_model=list[BookingResponse])
async def list_user_bookings(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get all bookings for the authenticated user."""
    return await BookingEngine(db).get_user_bookings(user_id)


@router.get("/check/{event_id}", response_model=BookingState)
async def check_booking(
    event_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await BookingEngine(db).get_user_booking_state(user_id, event_id)
