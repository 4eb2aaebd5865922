"""
Booking engine: bookability, booking state, reservation and cancellation.

The engine runs the cheap pre-checks (already booked, not bookable) and hands
the actual write to the configured BookingStrategy, which repeats those checks
against fresh data inside its own unit of work. Anything that is not part of
the booking itself (listing cache, confirmation mail, and for the sequential
strategy the profile bookkeeping) is queued as a side effect and run after
the booking committed.

Expected outcomes (already booked, no spots left, booking closed, event not
found) come back as BookingResult values; only infrastructure errors raise.
"""

from datetime import datetime
from functools import partial
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from huntbook.core.config import get_settings
from huntbook.core.logging import get_logger
from huntbook.core.metrics import booking_latency, booking_retries, record_booking_attempt
from huntbook.models.booking import BOOKING_CANCELLED, BOOKING_CONFIRMED, BOOKING_PAYMENT_PENDING, Booking
from huntbook.models.mail import OutboundMail
from huntbook.repositories import BookingRepository, EventRepository, UserRepository
from huntbook.schemas.booking import Bookability, BookingCreate, BookingFailure, BookingResult, BookingState
from huntbook.services import booking_rules
from huntbook.services.cache_service import invalidate_event_cache
from huntbook.services.interfaces.booking_strategy import BookingStrategy
from huntbook.services.side_effects import SideEffects
from huntbook.services.strategy_factory import get_strategy

logger = get_logger(__name__)


class BookingEngine:
    def __init__(self, db: AsyncSession, strategy: Optional[BookingStrategy] = None):
        self.db = db
        self.strategy = strategy or get_strategy()
        self.events = EventRepository(db)
        self.bookings = BookingRepository(db)
        self.users = UserRepository(db)

    async def is_event_bookable(self, event_id: int, now: Optional[datetime] = None) -> Bookability:
        event = await self.events.get(event_id)
        return booking_rules.evaluate_bookability(event, now)

    async def check_user_booking(self, user_id: str, event_id: int) -> bool:
        return await self.bookings.find_active(user_id, event_id) is not None

    async def get_user_booking_state(self, user_id: str, event_id: int) -> BookingState:
        booking = await self.bookings.find_latest(user_id, event_id)
        if booking is None:
            return BookingState(is_booked=False)
        return BookingState(
            is_booked=booking.status != BOOKING_CANCELLED,
            status=booking.status,
            booking_id=booking.id,
        )

    async def book_event(self, user_id: str, data: BookingCreate) -> BookingResult:
        """
        Book a spot on `data.event_id` for `user_id`.

        Booking an event twice is not an error: the second call answers
        success with "You have already booked this event" and changes nothing.
        """
        with booking_latency.time():
            try:
                result = await self._book(user_id, data)
            except Exception:
                record_booking_attempt("error")
                raise

        if result.created:
            record_booking_attempt("created")
        elif result.success:
            record_booking_attempt("already_booked")
        elif result.failure == BookingFailure.CONFLICT:
            record_booking_attempt("conflict")
        else:
            record_booking_attempt("rejected")
        return result

    async def _book(self, user_id: str, data: BookingCreate) -> BookingResult:
        existing = await self.bookings.find_active(user_id, data.event_id)
        if existing is not None:
            logger.info("booking_already_exists", user_id=user_id, event_id=data.event_id, booking_id=existing.id)
            return booking_rules.already_booked(existing)

        verdict = await self.is_event_bookable(data.event_id)
        if not verdict.bookable:
            logger.info("booking_rejected", user_id=user_id, event_id=data.event_id, reason=verdict.reason)
            return booking_rules.rejected(verdict)

        effects = SideEffects(self.db)
        result = await self.strategy.reserve(self.db, user_id, data, effects)

        if result.created:
            effects.add("listing_cache", invalidate_event_cache)
            effects.add("confirmation_mail", partial(self._queue_confirmation_mail, result.booking_id))
        await effects.run()
        return result

    async def _queue_confirmation_mail(self, booking_id: int) -> None:
        booking = await self.bookings.get(booking_id)
        if booking is None or not booking.contact_email:
            return
        event = await self.events.get(booking.event_id)
        title = event.title if event is not None else "Event"

        payment_id = (booking.payment or {}).get("payment_id")
        if booking.status == BOOKING_PAYMENT_PENDING:
            subject = f"Booking Received: {title}"
            closing = "Your spot is confirmed once the payment completes."
        else:
            subject = f"Booking Confirmed: {title}"
            closing = f"Payment ID: {payment_id}." if payment_id else "No payment required."

        lines = [f"Booking confirmed for {title}." if booking.status == BOOKING_CONFIRMED else f"Booking received for {title}."]
        if event is not None:
            lines.append(f"When: {event.date}, {event.time}")
            lines.append(f"Where: {event.venue_name or event.location}")
        lines.append(closing)

        self.db.add(
            OutboundMail(
                to=booking.contact_email,
                subject=subject,
                body="\n".join(lines),
                type="booking_confirmation",
                booking_id=booking.id,
            )
        )
        await self.db.flush()
        logger.info("confirmation_mail_queued", booking_id=booking.id, to=booking.contact_email)

    async def cancel_booking(self, booking_id: int) -> Booking:
        """
        Cancel a booking and give its spot back to the event.

        Payment-pending bookings never held a spot; cancelling one only
        clears it from the pending lists.
        """
        booking = await self.bookings.get(booking_id)
        if booking is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
        if booking.status == BOOKING_CANCELLED:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Booking is already cancelled")

        event_id, user_id, held_spot = booking.event_id, booking.user_id, booking.status == BOOKING_CONFIRMED

        for attempt in range(1, get_settings().BOOKING_MAX_RETRIES + 1):
            event = await self.events.get(event_id, refresh=True)
            if event is None:
                break
            if held_spot:
                released = await self.events.release_spot(event, user_id)
            else:
                released = await self.events.remove_pending_booking(event, booking_id)
            if released:
                break
            logger.info("cancellation_retry", booking_id=booking_id, attempt=attempt, reason="version_conflict")
            booking_retries.inc()
            await self.db.rollback()
        else:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Cancellation failed due to concurrent updates. Please try again.",
            )

        booking = await self.bookings.get(booking_id)
        await self.bookings.update(booking, status=BOOKING_CANCELLED)

        user = await self.users.get(user_id)
        if user is not None:
            if held_spot:
                await self.users.remove_event_booked(user, event_id)
            else:
                await self.users.remove_pending_booking(user, booking_id)

        await self.db.commit()
        await invalidate_event_cache()

        logger.info(
            "booking_cancelled",
            booking_id=booking_id,
            user_id=user_id,
            event_id=event_id,
            spot_released=held_spot,
        )
        return booking

    async def get_user_bookings(self, user_id: str) -> list[Booking]:
        return await self.bookings.list_for_user(user_id)

    async def get_event_bookings(self, event_id: int) -> list[Booking]:
        """Non-cancelled bookings, oldest first."""
        return await self.bookings.list_for_event(event_id)

    async def get_event_bookings_count(self, event_id: int) -> int:
        return await self.bookings.count_active_for_event(event_id)
