"""
Pure booking decisions shared by the engine and the booking strategies.
Nothing here touches the database.
"""

from datetime import datetime
from typing import Optional

from huntbook.models.booking import BOOKING_CONFIRMED, BOOKING_PAYMENT_PENDING, Booking
from huntbook.models.event import Event
from huntbook.schemas.booking import Bookability, BookingCreate, BookingFailure, BookingResult
from huntbook.schemas.payment import PaymentDetails
from huntbook.services.status_service import STATUS_PAST, determine_event_status

MSG_NOT_FOUND = "Event not found"
MSG_NO_SPOTS = "No spots left"
MSG_CLOSED = "Booking closed"
MSG_ALREADY_BOOKED = "You have already booked this event"
MSG_CREATED = "Booking created successfully"
MSG_CONFLICT = "Booking failed due to high demand. Please try again."

PAYMENT_NOT_REQUIRED = "NOT_REQUIRED"


def evaluate_bookability(event: Optional[Event], now: Optional[datetime] = None) -> Bookability:
    if event is None:
        return Bookability(bookable=False, reason=MSG_NOT_FOUND, failure=BookingFailure.NOT_FOUND)
    if (event.spots_left or 0) <= 0:
        return Bookability(bookable=False, reason=MSG_NO_SPOTS, failure=BookingFailure.NO_SPOTS)
    if determine_event_status(event.date, event.time, now) == STATUS_PAST:
        return Bookability(bookable=False, reason=MSG_CLOSED, failure=BookingFailure.CLOSED)
    return Bookability(bookable=True)


def resolve_booking_status(
    event: Event, payment: Optional[PaymentDetails]
) -> tuple[str, str]:
    """(booking status, payment status) for a new booking on `event`."""
    if event.requires_payment:
        if payment is not None and payment.is_completed:
            return BOOKING_CONFIRMED, "COMPLETED"
        return BOOKING_PAYMENT_PENDING, "PENDING"
    if payment is not None and payment.is_completed:
        return BOOKING_CONFIRMED, "COMPLETED"
    return BOOKING_CONFIRMED, PAYMENT_NOT_REQUIRED


def build_booking(
    event: Event, user_id: str, data: BookingCreate, status: str, payment_status: str
) -> Booking:
    return Booking(
        user_id=user_id,
        event_id=event.id,
        status=status,
        payment_status=payment_status,
        contact_email=data.email or "",
        contact_phone=data.phone or "",
        contact_display_name=data.display_name or "",
        specific_request=data.requests,
        payment=data.payment_details.model_dump(exclude_none=True) if data.payment_details else None,
    )


def rejected(verdict: Bookability) -> BookingResult:
    return BookingResult(success=False, message=verdict.reason, failure=verdict.failure)


def already_booked(booking: Booking) -> BookingResult:
    return BookingResult(
        success=True,
        message=MSG_ALREADY_BOOKED,
        booking_id=booking.id,
        status=booking.status,
    )


def created(booking: Booking) -> BookingResult:
    return BookingResult(
        success=True,
        message=MSG_CREATED,
        booking_id=booking.id,
        status=booking.status,
        requires_payment=booking.status == BOOKING_PAYMENT_PENDING,
        created=True,
    )


def conflict() -> BookingResult:
    return BookingResult(success=False, message=MSG_CONFLICT, failure=BookingFailure.CONFLICT)
